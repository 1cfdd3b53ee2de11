"""
Tests for the schedule catalog (doctor templates, visibility, lifecycle)
and the brand registry.
"""

import pytest

from appointly.core.access import Practitioner
from appointly.core.errors import AuthorizationError, NotFoundError, ValidationError
from appointly.modules.appointments.models import APPOINTMENTS
from appointly.modules.doctors.models import DOCTORS
from appointly.modules.doctors.schemas import DoctorCreate
from appointly.modules.doctors.service import UNKNOWN_DOCTOR, doctor_display_name, search_doctors
from appointly.modules.users.models import USERS, UserProfile
from appointly.modules.users.service import load_principal

from tests.utils import DAY, eventually, seed_doctor, seed_user


async def _slots(store, doctor_id):
    return (await store.get(DOCTORS, doctor_id))["availableSlots"]


@pytest.mark.asyncio
class TestSlotTemplate:
    async def test_owner_adds_slot(self, services, doctor_id, practitioner):
        slots = await services.catalog.add_slot(practitioner, doctor_id, " 11:00 AM ")
        assert slots == ["09:00 AM", "10:00 AM", "11:00 AM"]
        assert await _slots(services.store, doctor_id) == slots

    async def test_adding_existing_label_is_a_no_op(self, services, doctor_id, practitioner):
        slots = await services.catalog.add_slot(practitioner, doctor_id, "09:00 AM")
        assert slots == ["09:00 AM", "10:00 AM"]

    async def test_blank_label_is_rejected(self, services, doctor_id, practitioner):
        with pytest.raises(ValidationError):
            await services.catalog.add_slot(practitioner, doctor_id, "   ")

    async def test_remove_slot_keeps_existing_bookings(self, services, doctor_id, practitioner, patient):
        ledger = services.ledger
        appt_id = await ledger.create(patient, doctor_id, DAY, "10:00 AM")

        slots = await services.catalog.remove_slot(practitioner, doctor_id, "10:00 AM")
        assert slots == ["09:00 AM"]
        assert (await services.store.get(APPOINTMENTS, appt_id))["slot"] == "10:00 AM"
        await eventually(lambda: ledger.doctors.get(doctor_id) is not None
                         and ledger.doctors.get(doctor_id).available_slots == ["09:00 AM"])
        await eventually(lambda: appt_id in ledger.appointments)
        assert ledger.availability(doctor_id, DAY) == ["09:00 AM"]

    async def test_removing_absent_label_is_a_no_op(self, services, doctor_id, admin):
        slots = await services.catalog.remove_slot(admin, doctor_id, "07:00 PM")
        assert slots == ["09:00 AM", "10:00 AM"]

    @pytest.mark.parametrize("who", ["other_practitioner", "patient", "unlinked"])
    async def test_only_owner_or_admin_edits(self, services, doctor_id, request, who):
        principal = request.getfixturevalue(who)
        with pytest.raises(AuthorizationError):
            await services.catalog.add_slot(principal, doctor_id, "11:00 AM")
        assert await _slots(services.store, doctor_id) == ["09:00 AM", "10:00 AM"]

    async def test_admin_edits_any_template(self, services, doctor_id, admin):
        assert await services.catalog.add_slot(admin, doctor_id, "05:00 PM") == ["09:00 AM", "10:00 AM", "05:00 PM"]

    async def test_unknown_doctor(self, services, admin):
        with pytest.raises(NotFoundError):
            await services.catalog.add_slot(admin, "nobody", "09:00 AM")


@pytest.mark.asyncio
class TestVisibility:
    async def test_toggle_hides_and_shows(self, services, doctor_id, practitioner, patient):
        assert await services.catalog.toggle_active(practitioner, doctor_id) is False
        await eventually(lambda: services.doctors.get(doctor_id) is not None
                         and not services.doctors.get(doctor_id).is_active)
        assert search_doctors(services.doctors) == []
        assert [d.id for d in search_doctors(services.doctors, include_hidden=True)] == [doctor_id]

        with pytest.raises(ValidationError):
            await services.ledger.create(patient, doctor_id, DAY, "09:00 AM")

        assert await services.catalog.toggle_active(practitioner, doctor_id) is True

    async def test_search_matches_name_and_specialization(self, services, store):
        await seed_doctor(store, "Dr. Grace Hopper")
        await eventually(lambda: len(services.doctors) == 1)
        assert len(search_doctors(services.doctors, "grace")) == 1
        assert len(search_doctors(services.doctors, "CARDIO")) == 1
        assert search_doctors(services.doctors, "dermatology") == []


@pytest.mark.asyncio
class TestLifecycle:
    async def test_admin_creates_with_defaults(self, services, admin, settings):
        doctor_id = await services.catalog.create_practitioner(admin, DoctorCreate(name="Dr. New"))
        doc = await services.store.get(DOCTORS, doctor_id)
        assert doc["specialization"] == "General Practitioner"
        assert doc["availableSlots"] == settings.DEFAULT_SLOTS
        assert doc["isActive"] is True
        assert doc["imageUrl"].startswith("https://ui-avatars.com/api/?name=Dr.%20New")

    async def test_explicit_fields_win(self, services, admin):
        doctor_id = await services.catalog.create_practitioner(
            admin,
            DoctorCreate(name="Dr. Custom", specialization="Dermatology", available_slots=["08:00 AM", "08:00 AM"]),
        )
        doc = await services.store.get(DOCTORS, doctor_id)
        assert doc["specialization"] == "Dermatology"
        assert doc["availableSlots"] == ["08:00 AM"]

    @pytest.mark.parametrize("who", ["patient", "practitioner"])
    async def test_only_admin_creates(self, services, request, who):
        with pytest.raises(AuthorizationError):
            await services.catalog.create_practitioner(request.getfixturevalue(who), DoctorCreate(name="Dr. X"))

    async def test_delete_keeps_appointments_and_falls_back_on_name(self, services, doctor_id, admin, patient):
        ledger = services.ledger
        appt_id = await ledger.create(patient, doctor_id, DAY, "09:00 AM")
        await services.catalog.delete_practitioner(admin, doctor_id)

        assert await services.store.get(APPOINTMENTS, appt_id) is not None
        await eventually(lambda: doctor_id not in ledger.doctors and appt_id in ledger.appointments)
        assert ledger.doctor_name(doctor_id) == UNKNOWN_DOCTOR
        page = ledger.page(ledger.visible_to(patient), limit=10, offset=0)
        assert page.items[0].doctor_name == UNKNOWN_DOCTOR

    async def test_practitioner_cannot_delete(self, services, doctor_id, practitioner):
        with pytest.raises(AuthorizationError):
            await services.catalog.delete_practitioner(practitioner, doctor_id)

    async def test_delete_unknown(self, services, admin):
        with pytest.raises(NotFoundError):
            await services.catalog.delete_practitioner(admin, "nobody")


@pytest.mark.asyncio
class TestSelfRegistration:
    async def test_doctor_account_gets_bound_profile(self, services, store):
        await seed_user(store, "doc-user", role="DOCTOR", name="Dr. Self")
        profile = UserProfile.model_validate(await store.get(USERS, "doc-user"))

        doctor_id = await services.catalog.register_practitioner_profile(profile)
        user_doc = await store.get(USERS, "doc-user")
        assert user_doc["doctorId"] == doctor_id
        assert user_doc["role"] == "DOCTOR"
        assert (await store.get(DOCTORS, doctor_id))["name"] == "Dr. Self"

        principal = await load_principal(store, "doc-user")
        assert isinstance(principal, Practitioner)
        assert principal.practitioner_id == doctor_id

    async def test_already_bound_account_keeps_its_doctor(self, services):
        profile = UserProfile(id="u1", name="Dr. Bound", role="DOCTOR", doctor_id="d9")
        assert await services.catalog.register_practitioner_profile(profile) == "d9"

    async def test_patient_account_is_rejected(self, services):
        with pytest.raises(ValidationError):
            await services.catalog.register_practitioner_profile(UserProfile(id="u1", role="USER"))


class TestDisplayName:
    def test_orphan_lookups_never_raise(self):
        assert doctor_display_name({}, "gone") == UNKNOWN_DOCTOR
        assert doctor_display_name(None, "gone") == UNKNOWN_DOCTOR
        assert doctor_display_name([], None) == UNKNOWN_DOCTOR


@pytest.mark.asyncio
class TestBrands:
    async def test_admin_manages_brands(self, services, admin):
        brand_id = await services.brands.create(admin, "  Acme Health ")
        await eventually(lambda: brand_id in services.brand_list)
        assert services.brand_list.get(brand_id).name == "Acme Health"

        await services.brands.remove(admin, brand_id)
        await eventually(lambda: brand_id not in services.brand_list)

    async def test_blank_name(self, services, admin):
        with pytest.raises(ValidationError):
            await services.brands.create(admin, " ")

    async def test_non_admin_denied(self, services, patient):
        with pytest.raises(AuthorizationError):
            await services.brands.create(patient, "Acme")

    async def test_remove_unknown(self, services, admin):
        with pytest.raises(NotFoundError):
            await services.brands.remove(admin, "nope")
