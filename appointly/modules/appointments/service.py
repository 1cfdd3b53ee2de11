# appointly/modules/appointments/service.py
"""
Appointment ledger: the only component that writes booking state.

Reads (`list_for`, `availability`, ...) come from collection views kept warm
by the sync hub, never from a fresh query. Writes go to the store and the
views change only when the change-feed reports them, so a failed write never
shows up locally.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from appointly.core.access import (
    AccessGate,
    Action,
    Administrator,
    Patient,
    Practitioner,
    Principal,
)
from appointly.core.errors import (
    AuthorizationError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from appointly.modules.appointments.models import (
    APPOINTMENTS,
    Appointment,
    ApptStatus,
    can_transition,
    normalize_day,
    slot_key,
)
from appointly.modules.appointments.schemas import AppointmentListItem, AppointmentListPage
from appointly.modules.availability.service import booked_slots, resolve
from appointly.modules.doctors.models import DOCTORS, Doctor
from appointly.modules.doctors.service import doctor_display_name
from appointly.modules.log import write_audit_log
from appointly.sync.hub import CollectionKind, CollectionView, Subscription, SyncHub

logger = logging.getLogger(__name__)


class AppointmentLedger:
    def __init__(
        self,
        store: Any,
        hub: SyncHub,
        gate: AccessGate,
        *,
        enforce_unique: bool = True,
    ):
        self._store = store
        self._hub = hub
        self._gate = gate
        self._enforce_unique = enforce_unique
        self.appointments: CollectionView[Appointment] = CollectionView()
        self.doctors: CollectionView[Doctor] = CollectionView()
        self._subscriptions: List[Subscription] = []

    async def start(self, warmup_timeout: Optional[float] = None) -> None:
        """Subscribe the local views; optionally wait for their first snapshot."""
        self._subscriptions = [
            await self._hub.subscribe(CollectionKind.APPOINTMENTS, self.appointments),
            await self._hub.subscribe(CollectionKind.DOCTORS, self.doctors),
        ]
        if warmup_timeout:
            for view in (self.appointments, self.doctors):
                if not await view.wait_ready(warmup_timeout):
                    logger.warning("Ledger started before the first snapshot arrived")

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    # =========================================================================
    # WRITES
    # =========================================================================

    async def create(
        self,
        principal: Principal,
        doctor_id: str,
        date: Any,
        slot: str,
        *,
        patient_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> str:
        """
        Book `slot` on `date` with `doctor_id` for the principal; returns the
        new appointment id. The record starts PENDING.

        Checks, in order: the principal may book; the date is YYYY-MM-DD;
        slot and display name are non-empty; the doctor exists and is active.
        A slot missing from the doctor's current template is accepted (the
        client may be showing an older template). With uniqueness enforced,
        a live booking of the same doctor/date/slot raises ConflictError.
        """
        self._gate.require(principal, Action.BOOK_APPOINTMENT)

        try:
            day = normalize_day(date)
        except ValueError:
            raise ValidationError("invalid_date")
        slot = (slot or "").strip()
        if not slot:
            raise ValidationError("invalid_slot")
        display_name = (patient_name or principal.name or "").strip()
        if not display_name:
            raise ValidationError("missing_patient_name")

        doc = await self._store.get(DOCTORS, doctor_id)
        if doc is None:
            raise NotFoundError("doctor_not_found")
        doctor = Doctor.model_validate(doc)
        if not doctor.is_active:
            raise ValidationError("doctor_inactive")
        if slot not in doctor.available_slots:
            logger.warning(
                "Booking %s on %s for doctor %s: slot no longer in template, accepting",
                slot, day, doctor_id,
            )

        data = {
            "userId": principal.user_id,
            "doctorId": doctor_id,
            "patientName": display_name,
            "date": day,
            "slot": slot,
            "status": ApptStatus.PENDING.value,
        }
        if notes:
            data["notes"] = notes

        claim = slot_key(doctor_id, day, slot) if self._enforce_unique else None
        appointment_id = await self._store.add(APPOINTMENTS, data, claim=claim)
        logger.info("Appointment %s created: doctor=%s date=%s slot=%s", appointment_id, doctor_id, day, slot)

        await write_audit_log(
            self._store,
            principal.user_id,
            "CREATE_APPOINTMENT",
            f"{appointment_id} {slot_key(doctor_id, day, slot)}",
        )
        return appointment_id

    async def set_status(
        self,
        principal: Principal,
        appointment_id: str,
        new_status: ApptStatus | str,
    ) -> Appointment:
        """
        Move an appointment along PENDING -> APPROVED -> CANCELLED
        (PENDING -> CANCELLED directly is allowed too).

        The owning practitioner or an administrator may approve or cancel;
        the patient who booked may only cancel. Re-applying the current
        status is a no-op; anything leaving CANCELLED or going back to
        PENDING raises InvalidTransition. Cancelling frees the slot in the
        same write.
        """
        try:
            new_status = ApptStatus(new_status)
        except ValueError:
            raise ValidationError("invalid_status")

        doc = await self._store.get(APPOINTMENTS, appointment_id)
        if doc is None:
            raise NotFoundError("appointment_not_found")
        appt = Appointment.model_validate(doc)

        self._authorize_status_change(principal, appt, new_status)

        if appt.status == new_status:
            return appt
        if not can_transition(appt.status, new_status):
            raise InvalidTransition()

        release = appt.claim_key if new_status == ApptStatus.CANCELLED else None
        try:
            await self._store.update(
                APPOINTMENTS,
                appointment_id,
                {"status": new_status.value},
                expect={"status": appt.status.value},
                release=release,
            )
        except NotFoundError:
            raise NotFoundError("appointment_not_found")

        logger.info("Appointment %s: %s -> %s", appointment_id, appt.status.value, new_status.value)
        await write_audit_log(
            self._store,
            principal.user_id,
            "SET_APPOINTMENT_STATUS",
            f"{appointment_id} {appt.status.value}->{new_status.value}",
        )
        return appt.model_copy(update={"status": new_status})

    async def cancel(self, principal: Principal, appointment_id: str) -> Appointment:
        return await self.set_status(principal, appointment_id, ApptStatus.CANCELLED)

    def _authorize_status_change(self, principal: Principal, appt: Appointment, new_status: ApptStatus) -> None:
        if self._gate.authorize(principal, Action.APPROVE_OR_REJECT, appt).allowed:
            return
        if new_status == ApptStatus.CANCELLED:
            self._gate.require(principal, Action.SELF_CANCEL, appt)
            return
        raise AuthorizationError()

    # =========================================================================
    # READS (local snapshot)
    # =========================================================================

    def list_for(
        self,
        *,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        date: Optional[str] = None,
        statuses: Optional[Iterable[ApptStatus | str]] = None,
    ) -> List[Appointment]:
        wanted = {ApptStatus(s) for s in statuses} if statuses is not None else None
        try:
            day = normalize_day(date) if date is not None else None
        except ValueError:
            raise ValidationError("invalid_date")
        rows = [
            a
            for a in self.appointments
            if (patient_id is None or a.user_id == patient_id)
            and (doctor_id is None or a.doctor_id == doctor_id)
            and (day is None or a.date == day)
            and (wanted is None or a.status in wanted)
        ]
        rows.sort(key=lambda a: (a.date, a.created_at or "", a.id))
        return rows

    def visible_to(self, principal: Principal, appointments: Optional[Iterable[Appointment]] = None) -> List[Appointment]:
        """Appointments the principal may see: own bookings, own doctor's, or all for admins."""
        rows = list(self.appointments if appointments is None else appointments)
        if isinstance(principal, Administrator):
            return rows
        if isinstance(principal, Practitioner):
            return [a for a in rows if a.doctor_id == principal.practitioner_id]
        if isinstance(principal, Patient):
            return [a for a in rows if a.user_id == principal.user_id]
        return []

    def availability(self, doctor_id: str, date: Any) -> List[str]:
        """Free slot labels of `doctor_id` on `date`, in template order."""
        doctor = self.doctors.get(doctor_id)
        if doctor is None:
            raise NotFoundError("doctor_not_found")
        try:
            day = normalize_day(date)
        except ValueError:
            raise ValidationError("invalid_date")
        return resolve(doctor.available_slots, booked_slots(self.appointments, doctor_id, day))

    def doctor_name(self, doctor_id: str) -> str:
        return doctor_display_name(self.doctors, doctor_id)

    def to_list_item(self, appt: Appointment) -> AppointmentListItem:
        return AppointmentListItem(
            **appt.model_dump(),
            doctor_name=self.doctor_name(appt.doctor_id),
        )

    def page(self, rows: List[Appointment], limit: int, offset: int, *, newest_first: bool = True) -> AppointmentListPage:
        if newest_first:
            rows = sorted(rows, key=lambda a: (a.date, a.created_at or ""), reverse=True)
        total = len(rows)
        items = [self.to_list_item(a) for a in rows[offset: offset + limit]]
        return AppointmentListPage(
            items=items,
            total=total,
            limit=limit,
            offset=offset,
            has_next=offset + limit < total,
        )
