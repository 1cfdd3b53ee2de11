# appointly/modules/availability/service.py
from __future__ import annotations

from typing import AbstractSet, Iterable, List, Sequence

from appointly.modules.appointments.models import Appointment


def resolve(template: Sequence[str], booked: AbstractSet[str]) -> List[str]:
    """
    Slots of `template` not in `booked`, in template order.
    Pure and total: an empty template gives an empty list.
    """
    return [slot for slot in template if slot not in booked]


def booked_slots(appointments: Iterable[Appointment], doctor_id: str, day: str) -> set[str]:
    """
    Slot labels held on `day` for `doctor_id`: exact date string match,
    cancelled appointments excluded.
    """
    return {
        a.slot
        for a in appointments
        if a.doctor_id == doctor_id and a.date == day and a.is_active
    }
