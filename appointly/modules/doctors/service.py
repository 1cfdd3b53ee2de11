# appointly/modules/doctors/service.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote

from appointly.core.access import AccessGate, Action, Principal
from appointly.core.errors import NotFoundError, ValidationError
from appointly.modules.doctors.models import DOCTORS, Doctor
from appointly.modules.doctors.schemas import DoctorCreate
from appointly.modules.log import write_audit_log
from appointly.modules.users.models import USERS, UserProfile, UserRole

logger = logging.getLogger(__name__)

UNKNOWN_DOCTOR = "Unknown Doctor"


def doctor_display_name(doctors: Any, doctor_id: Optional[str]) -> str:
    """
    Name of `doctor_id` in a doctors snapshot (view, mapping or sequence).
    Appointments may outlive their doctor, so a miss is a fallback label,
    never an error.
    """
    if doctors is None or not doctor_id:
        return UNKNOWN_DOCTOR
    if hasattr(doctors, "get"):
        doctor = doctors.get(doctor_id)
    else:
        doctor = next((d for d in doctors if d.id == doctor_id), None)
    return doctor.name if doctor is not None and doctor.name else UNKNOWN_DOCTOR


def search_doctors(
    doctors: Iterable[Doctor],
    term: Optional[str] = None,
    *,
    include_hidden: bool = False,
) -> List[Doctor]:
    """Public listing: active doctors whose name or specialization contains `term`."""
    needle = (term or "").strip().lower()
    return [
        d
        for d in doctors
        if (include_hidden or d.is_active)
        and (not needle or needle in d.name.lower() or needle in d.specialization.lower())
    ]


def avatar_url(name: str) -> str:
    return f"https://ui-avatars.com/api/?name={quote(name)}&background=random&size=200"


class ScheduleCatalog:
    """
    Edits doctor records: slot templates, visibility, creation and deletion.
    Only existence is checked across entities; deleting a doctor leaves its
    appointments in place.
    """

    def __init__(
        self,
        store: Any,
        gate: AccessGate,
        *,
        default_slots: Sequence[str] = (),
        default_specialization: str = "General Practitioner",
    ):
        self._store = store
        self._gate = gate
        self._default_slots = list(default_slots)
        self._default_specialization = default_specialization

    async def _load(self, doctor_id: str) -> Tuple[Doctor, Dict[str, Any]]:
        doc = await self._store.get(DOCTORS, doctor_id)
        if doc is None:
            raise NotFoundError("doctor_not_found")
        return Doctor.model_validate(doc), doc

    # --- slot template ---

    async def add_slot(self, principal: Principal, doctor_id: str, label: str) -> List[str]:
        """Append `label` to the template; a label already offered is left as is."""
        label = (label or "").strip()
        if not label:
            raise ValidationError("invalid_slot")
        doctor, raw = await self._load(doctor_id)
        self._gate.require(principal, Action.EDIT_OWN_SCHEDULE, doctor)

        if label in doctor.available_slots:
            return list(doctor.available_slots)
        slots = [*doctor.available_slots, label]
        await self._write_slots(principal, doctor, raw, slots)
        return slots

    async def remove_slot(self, principal: Principal, doctor_id: str, label: str) -> List[str]:
        """
        Drop `label` from the template. Existing appointments that reference
        it are not touched.
        """
        label = (label or "").strip()
        doctor, raw = await self._load(doctor_id)
        self._gate.require(principal, Action.EDIT_OWN_SCHEDULE, doctor)

        if label not in doctor.available_slots:
            return list(doctor.available_slots)
        slots = [s for s in doctor.available_slots if s != label]
        await self._write_slots(principal, doctor, raw, slots)
        return slots

    async def _write_slots(self, principal: Principal, doctor: Doctor, raw: Dict[str, Any], slots: List[str]) -> None:
        # Compare-and-swap on the template we read, so concurrent edits can't drop each other
        await self._store.update(
            DOCTORS,
            doctor.id,
            {"availableSlots": slots},
            expect={"availableSlots": raw.get("availableSlots")},
        )
        logger.info("Doctor %s slots now %s", doctor.id, slots)
        await write_audit_log(self._store, principal.user_id, "UPDATE_DOCTOR_SLOTS", f"{doctor.id} {slots}")

    # --- visibility ---

    async def toggle_active(self, principal: Principal, doctor_id: str) -> bool:
        """Flip the public-listing flag; returns the new value."""
        doctor, raw = await self._load(doctor_id)
        self._gate.require(principal, Action.EDIT_OWN_SCHEDULE, doctor)

        new_value = not doctor.is_active
        await self._store.update(
            DOCTORS,
            doctor_id,
            {"isActive": new_value},
            expect={"isActive": raw.get("isActive")},
        )
        logger.info("Doctor %s is now %s", doctor_id, "active" if new_value else "hidden")
        await write_audit_log(self._store, principal.user_id, "TOGGLE_DOCTOR_ACTIVE", f"{doctor_id} {new_value}")
        return new_value

    # --- lifecycle ---

    def _new_doctor_document(
        self,
        name: str,
        *,
        specialization: Optional[str] = None,
        experience: int = 5,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        hospital_id: Optional[str] = None,
        is_active: bool = True,
        available_slots: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        specialization = (specialization or "").strip() or self._default_specialization
        slots = list(dict.fromkeys(s.strip() for s in (available_slots or self._default_slots) if s.strip()))
        data: Dict[str, Any] = {
            "name": name,
            "specialization": specialization,
            "experience": experience,
            "description": description or f"Expert in {specialization}",
            "imageUrl": image_url or avatar_url(name),
            "isActive": is_active,
            "availableSlots": slots,
        }
        if hospital_id:
            data["hospitalId"] = hospital_id
        return data

    async def create_practitioner(self, principal: Principal, profile: DoctorCreate) -> str:
        """Administrator adds a doctor; missing fields get the clinic defaults."""
        self._gate.require(principal, Action.CREATE_DOCTOR)
        data = self._new_doctor_document(
            profile.name,
            specialization=profile.specialization,
            experience=profile.experience,
            description=profile.description,
            image_url=profile.image_url,
            hospital_id=profile.hospital_id,
            is_active=profile.is_active,
            available_slots=profile.available_slots,
        )
        doctor_id = await self._store.add(DOCTORS, data)
        logger.info("Doctor %s created: %s", doctor_id, profile.name)
        await write_audit_log(self._store, principal.user_id, "CREATE_DOCTOR", doctor_id)
        return doctor_id

    async def register_practitioner_profile(self, profile: UserProfile) -> str:
        """
        Self-registration of a DOCTOR account: create its doctor record with
        default values and bind it to the user document. Returns the doctor
        id; an account that is already bound keeps its doctor.
        """
        if profile.role != UserRole.DOCTOR:
            raise ValidationError("not_a_doctor_account")
        if profile.doctor_id:
            return profile.doctor_id

        data = self._new_doctor_document(
            profile.name,
            experience=1,
            description=f"{profile.name} - Healthcare Professional",
        )
        doctor_id = await self._store.add(DOCTORS, data)
        await self._store.set(USERS, profile.id, {**profile.to_document(), "doctorId": doctor_id})
        logger.info("Doctor profile %s linked to user %s", doctor_id, profile.id)
        await write_audit_log(self._store, profile.id, "REGISTER_DOCTOR", doctor_id)
        return doctor_id

    async def delete_practitioner(self, principal: Principal, doctor_id: str) -> None:
        """
        Administrator removes a doctor. Appointments that reference it stay
        as they are; readers show them under "Unknown Doctor".
        """
        doctor, _ = await self._load(doctor_id)
        self._gate.require(principal, Action.DELETE_DOCTOR, doctor)

        if not await self._store.delete(DOCTORS, doctor_id):
            raise NotFoundError("doctor_not_found")
        logger.info("Doctor %s deleted", doctor_id)
        await write_audit_log(self._store, principal.user_id, "DELETE_DOCTOR", doctor_id)
