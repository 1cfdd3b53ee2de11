# appointly/modules/appointments/models.py
from __future__ import annotations

import datetime as dt
from enum import Enum as PyEnum
from typing import Dict, FrozenSet, Optional

from pydantic import field_validator

from appointly.modules.base import DocumentModel

APPOINTMENTS = "appointments"


class ApptStatus(str, PyEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"


# Edges of the status state machine. CANCELLED has none: it is terminal.
ALLOWED_TRANSITIONS: Dict[ApptStatus, FrozenSet[ApptStatus]] = {
    ApptStatus.PENDING: frozenset({ApptStatus.APPROVED, ApptStatus.CANCELLED}),
    ApptStatus.APPROVED: frozenset({ApptStatus.CANCELLED}),
    ApptStatus.CANCELLED: frozenset(),
}

# Statuses that hold their slot
ACTIVE_STATUSES: FrozenSet[ApptStatus] = frozenset({ApptStatus.PENDING, ApptStatus.APPROVED})


def can_transition(current: ApptStatus, new: ApptStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


def normalize_day(value: str | dt.date) -> str:
    """
    Return the calendar day as "YYYY-MM-DD". Dates are compared by string
    equality, so anything else (times, other formats) is rejected.
    """
    if isinstance(value, dt.datetime):
        raise ValueError("date must be a calendar day without time")
    if isinstance(value, dt.date):
        return value.isoformat()
    text = str(value).strip()
    try:
        parsed = dt.date.fromisoformat(text)
    except ValueError as exc:
        raise ValueError("date must be YYYY-MM-DD") from exc
    if parsed.isoformat() != text:
        raise ValueError("date must be YYYY-MM-DD")
    return text


def slot_key(doctor_id: str, day: str, slot: str) -> str:
    """Uniqueness key of a live booking."""
    return f"{doctor_id}|{day}|{slot}"


class Appointment(DocumentModel):
    """
    A booking. `slot` is a snapshot of the label at creation time and never
    changes afterwards; only `status` moves.
    """

    user_id: str
    doctor_id: str
    patient_name: str
    date: str
    slot: str
    status: ApptStatus = ApptStatus.PENDING
    notes: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, v):
        return normalize_day(v)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def claim_key(self) -> str:
        return slot_key(self.doctor_id, self.date, self.slot)
