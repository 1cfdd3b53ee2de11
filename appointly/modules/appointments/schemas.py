# appointly/modules/appointments/schemas.py
from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from appointly.modules.appointments.models import ApptStatus


class AppointmentCreateRequest(BaseModel):
    """
    Payload to create appointment.
    - patient id and default display name come from the current principal,
      not from the client.
    """
    doctor_id: str = Field(..., min_length=1)
    date: dt.date
    slot: str = Field(..., min_length=1)
    patient_name: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class AppointmentStatusUpdate(BaseModel):
    status: ApptStatus


class AppointmentCreated(BaseModel):
    id: str
    status: ApptStatus = ApptStatus.PENDING


class AppointmentPublic(BaseModel):
    """
    DTO returns a detailed appointment.
    """
    id: str
    user_id: str
    doctor_id: str
    patient_name: str
    date: str
    slot: str
    status: ApptStatus
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AppointmentListItem(AppointmentPublic):
    """
    Used for lists; carries the doctor's display name for the row.
    """
    doctor_name: str


class AppointmentListPage(BaseModel):
    """
    Page the appointments list (with pagination).
    """
    items: List[AppointmentListItem]
    total: int
    limit: int
    offset: int
    has_next: bool


class AvailabilityResponse(BaseModel):
    doctor_id: str
    date: str
    slots: List[str]
