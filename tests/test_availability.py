"""
Unit tests for the availability resolver and the appointment state machine.
"""

import datetime as dt

import pytest

from appointly.modules.appointments.models import (
    Appointment,
    ApptStatus,
    can_transition,
    normalize_day,
    slot_key,
)
from appointly.modules.availability.service import booked_slots, resolve


def _appt(slot, status=ApptStatus.PENDING, doctor_id="d1", date="2024-06-01", appt_id=None):
    return Appointment(
        id=appt_id or f"a-{slot}-{status.value}",
        user_id="u1",
        doctor_id=doctor_id,
        patient_name="Pat",
        date=date,
        slot=slot,
        status=status,
    )


class TestResolve:
    def test_removes_booked_and_keeps_template_order(self):
        template = ["09:00 AM", "10:00 AM", "11:00 AM"]
        assert resolve(template, {"10:00 AM"}) == ["09:00 AM", "11:00 AM"]

    def test_order_is_template_order_not_alphabetical(self):
        template = ["04:00 PM", "09:00 AM", "02:00 PM"]
        assert resolve(template, set()) == template

    def test_empty_template(self):
        assert resolve([], {"09:00 AM"}) == []

    def test_everything_booked(self):
        assert resolve(["09:00 AM"], {"09:00 AM"}) == []

    def test_booked_labels_outside_template_are_ignored(self):
        assert resolve(["09:00 AM"], {"07:30 AM"}) == ["09:00 AM"]

    def test_template_is_not_mutated(self):
        template = ["09:00 AM", "10:00 AM"]
        resolve(template, {"09:00 AM"})
        assert template == ["09:00 AM", "10:00 AM"]


class TestBookedSlots:
    def test_cancelled_appointments_do_not_hold_slots(self):
        appointments = [
            _appt("09:00 AM", ApptStatus.CANCELLED),
            _appt("10:00 AM", ApptStatus.APPROVED),
            _appt("11:00 AM", ApptStatus.PENDING),
        ]
        assert booked_slots(appointments, "d1", "2024-06-01") == {"10:00 AM", "11:00 AM"}

    def test_other_doctors_and_days_are_ignored(self):
        appointments = [
            _appt("09:00 AM", doctor_id="d2"),
            _appt("10:00 AM", date="2024-06-02"),
        ]
        assert booked_slots(appointments, "d1", "2024-06-01") == set()


class TestStatusMachine:
    @pytest.mark.parametrize(
        "current,new,allowed",
        [
            (ApptStatus.PENDING, ApptStatus.APPROVED, True),
            (ApptStatus.PENDING, ApptStatus.CANCELLED, True),
            (ApptStatus.APPROVED, ApptStatus.CANCELLED, True),
            (ApptStatus.APPROVED, ApptStatus.PENDING, False),
            (ApptStatus.CANCELLED, ApptStatus.PENDING, False),
            (ApptStatus.CANCELLED, ApptStatus.APPROVED, False),
        ],
    )
    def test_transitions(self, current, new, allowed):
        assert can_transition(current, new) is allowed


class TestNormalizeDay:
    def test_accepts_iso_day_and_date(self):
        assert normalize_day("2024-06-01") == "2024-06-01"
        assert normalize_day(dt.date(2024, 6, 1)) == "2024-06-01"

    @pytest.mark.parametrize("value", ["2024-6-1", "01/06/2024", "2024-06-01T10:00:00", "", "tomorrow"])
    def test_rejects_other_formats(self, value):
        with pytest.raises(ValueError):
            normalize_day(value)

    def test_rejects_datetime(self):
        with pytest.raises(ValueError):
            normalize_day(dt.datetime(2024, 6, 1, 9, 0))

    def test_slot_key(self):
        assert slot_key("d1", "2024-06-01", "09:00 AM") == "d1|2024-06-01|09:00 AM"
        assert _appt("09:00 AM").claim_key == "d1|2024-06-01|09:00 AM"
