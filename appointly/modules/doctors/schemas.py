# appointly/modules/doctors/schemas.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DoctorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    specialization: Optional[str] = None
    experience: int = Field(default=5, ge=0, le=80)
    description: Optional[str] = None
    image_url: Optional[str] = None
    hospital_id: Optional[str] = None
    is_active: bool = True
    available_slots: Optional[List[str]] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class SlotRequest(BaseModel):
    label: str = Field(..., min_length=1, max_length=40)


class DoctorPublic(BaseModel):
    id: str
    name: str
    specialization: str
    experience: int
    image_url: str
    is_active: bool
    hospital_id: Optional[str] = None
    description: Optional[str] = None
    available_slots: List[str]

    model_config = ConfigDict(from_attributes=True)


class DoctorCreated(BaseModel):
    id: str


class HospitalPublic(BaseModel):
    id: str
    name: str
    location: str
    image_url: str
    badges: List[str]

    model_config = ConfigDict(from_attributes=True)
