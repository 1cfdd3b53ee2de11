# appointly/modules/doctors/models.py
from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from appointly.modules.base import DocumentModel

DOCTORS = "doctors"
HOSPITALS = "hospitals"


class Doctor(DocumentModel):
    """
    A practitioner's public profile and slot template.
    `available_slots` is an ordered set of opaque labels ("09:00 AM"); it has
    no duration or timezone and is independent of any day.
    """

    name: str
    specialization: str = ""
    experience: int = 0  # years
    image_url: str = ""
    is_active: bool = True
    hospital_id: Optional[str] = None
    description: Optional[str] = None
    available_slots: List[str] = Field(default_factory=list)


class Hospital(DocumentModel):
    """Read-only display data."""

    name: str
    location: str = ""
    image_url: str = ""
    badges: List[str] = Field(default_factory=list)
