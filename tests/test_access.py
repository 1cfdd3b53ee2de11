"""
Unit tests for the access gate and principal resolution.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from appointly.core.access import (
    AccessGate,
    Action,
    Administrator,
    Decision,
    Patient,
    Practitioner,
    UnlinkedPractitioner,
)
from appointly.core.errors import AuthorizationError
from appointly.modules.appointments.models import Appointment
from appointly.modules.doctors.models import Doctor
from appointly.modules.users.models import UserProfile
from appointly.modules.users.service import load_principal, principal_from_profile

from tests.utils import seed_user

gate = AccessGate()

DOCTOR = Doctor(id="d1", name="Dr. Ada")
APPT = Appointment(
    id="a1",
    user_id="patient-1",
    doctor_id="d1",
    patient_name="Pat",
    date="2024-06-01",
    slot="09:00 AM",
)


class TestAuthorize:
    def test_only_patients_book(self, patient, admin, practitioner, unlinked):
        assert gate.authorize(patient, Action.BOOK_APPOINTMENT) is Decision.ALLOW
        assert gate.authorize(admin, Action.BOOK_APPOINTMENT) is Decision.DENY
        assert gate.authorize(practitioner, Action.BOOK_APPOINTMENT) is Decision.DENY
        assert gate.authorize(unlinked, Action.BOOK_APPOINTMENT) is Decision.DENY

    def test_schedule_edits_need_ownership(self, practitioner, other_practitioner, admin, patient):
        assert gate.authorize(practitioner, Action.EDIT_OWN_SCHEDULE, DOCTOR).allowed
        assert not gate.authorize(other_practitioner, Action.EDIT_OWN_SCHEDULE, DOCTOR).allowed
        assert gate.authorize(admin, Action.EDIT_OWN_SCHEDULE, DOCTOR).allowed
        assert not gate.authorize(patient, Action.EDIT_OWN_SCHEDULE, DOCTOR).allowed

    def test_schedule_edit_without_target_is_denied(self, practitioner):
        assert not gate.authorize(practitioner, Action.EDIT_OWN_SCHEDULE).allowed

    def test_approve_is_for_owning_practitioner_or_admin(self, practitioner, other_practitioner, admin, patient):
        assert gate.authorize(practitioner, Action.APPROVE_OR_REJECT, APPT).allowed
        assert gate.authorize(admin, Action.APPROVE_OR_REJECT, APPT).allowed
        assert not gate.authorize(other_practitioner, Action.APPROVE_OR_REJECT, APPT).allowed
        assert not gate.authorize(patient, Action.APPROVE_OR_REJECT, APPT).allowed

    def test_self_cancel_is_for_the_booking_owner(self, patient, other_patient):
        assert gate.authorize(patient, Action.SELF_CANCEL, APPT).allowed
        assert not gate.authorize(other_patient, Action.SELF_CANCEL, APPT).allowed

    @pytest.mark.parametrize("action", [Action.CREATE_DOCTOR, Action.DELETE_DOCTOR, Action.MANAGE_BRANDS])
    def test_admin_only_actions(self, action, admin, patient, practitioner, unlinked):
        assert gate.authorize(admin, action).allowed
        for principal in (patient, practitioner, unlinked):
            assert gate.authorize(principal, action) is Decision.DENY

    @pytest.mark.parametrize("action", list(Action))
    def test_unlinked_practitioner_is_denied_everything(self, action, unlinked):
        assert gate.authorize(unlinked, action, APPT) is Decision.DENY

    def test_missing_principal_is_denied(self):
        assert gate.authorize(None, Action.BOOK_APPOINTMENT) is Decision.DENY

    def test_require_raises_generic_error(self, patient):
        with pytest.raises(AuthorizationError) as exc_info:
            gate.require(patient, Action.DELETE_DOCTOR)
        assert exc_info.value.code == "not_permitted"

    def test_practitioner_needs_binding(self):
        with pytest.raises(PydanticValidationError):
            Practitioner(user_id="u", practitioner_id="")


class TestPrincipalFromProfile:
    def test_variants(self):
        assert isinstance(principal_from_profile(UserProfile(id="u1", role="USER")), Patient)
        assert isinstance(principal_from_profile(UserProfile(id="u2", role="ADMIN")), Administrator)
        bound = principal_from_profile(UserProfile(id="u3", role="DOCTOR", doctor_id="d9"))
        assert isinstance(bound, Practitioner)
        assert bound.practitioner_id == "d9"
        assert isinstance(principal_from_profile(UserProfile(id="u4", role="DOCTOR")), UnlinkedPractitioner)

    @pytest.mark.asyncio
    async def test_load_principal_reads_profile(self, store):
        await seed_user(store, "u1", role="DOCTOR", name="Dr. Who", doctor_id="d1")
        principal = await load_principal(store, "u1", {"role": "ADMIN"})
        assert isinstance(principal, Practitioner)
        assert principal.name == "Dr. Who"

    @pytest.mark.asyncio
    async def test_load_principal_without_profile_is_patient(self, store):
        principal = await load_principal(store, "ghost", {"email": "ghost@example.com", "role": "ADMIN"})
        assert isinstance(principal, Patient)
        assert principal.name == "ghost"
