# appointly/routers/doctors.py
from __future__ import annotations

import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from appointly.core.access import Administrator, Principal
from appointly.core.errors import NotFoundError
from appointly.dependencies import get_current_principal, get_optional_principal, get_services
from appointly.modules.appointments.schemas import AvailabilityResponse
from appointly.modules.doctors.schemas import DoctorCreate, DoctorCreated, DoctorPublic, SlotRequest
from appointly.modules.doctors.service import search_doctors
from appointly.modules.users.models import USERS, UserProfile
from appointly.services import Services

router = APIRouter(tags=["doctors"])


@router.get(
    "/doctors",
    response_model=List[DoctorPublic],
    summary="List doctors (hidden ones only for administrators)",
)
async def doctors_index(
    q: Optional[str] = Query(None, description="Search on name/specialization"),
    include_hidden: bool = Query(False),
    services: Services = Depends(get_services),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    show_hidden = include_hidden and isinstance(principal, Administrator)
    rows = search_doctors(services.doctors, q, include_hidden=show_hidden)
    return [DoctorPublic.model_validate(d) for d in rows]


@router.get("/doctors/{doctor_id}", response_model=DoctorPublic)
async def doctors_detail(doctor_id: str, services: Services = Depends(get_services)):
    doctor = services.doctors.get(doctor_id)
    if doctor is None:
        raise NotFoundError("doctor_not_found")
    return DoctorPublic.model_validate(doctor)


@router.get(
    "/doctors/{doctor_id}/availability",
    response_model=AvailabilityResponse,
    summary="Free slots of a doctor on a day",
)
async def doctors_availability(
    doctor_id: str,
    date: dt.date = Query(..., description="YYYY-MM-DD"),
    services: Services = Depends(get_services),
):
    slots = services.ledger.availability(doctor_id, date)
    return AvailabilityResponse(doctor_id=doctor_id, date=date.isoformat(), slots=slots)


@router.post(
    "/doctors",
    response_model=DoctorCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create a doctor (admin only)",
)
async def doctors_create(
    payload: DoctorCreate,
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    doctor_id = await services.catalog.create_practitioner(principal, payload)
    return DoctorCreated(id=doctor_id)


@router.post(
    "/doctors/me/link",
    response_model=DoctorCreated,
    summary="Create and bind the doctor profile of the current DOCTOR account",
)
async def doctors_link_me(
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    doc = await services.store.get(USERS, principal.user_id)
    if doc is None:
        raise NotFoundError("profile_not_found")
    doctor_id = await services.catalog.register_practitioner_profile(UserProfile.model_validate(doc))
    return DoctorCreated(id=doctor_id)


@router.delete(
    "/doctors/{doctor_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a doctor (admin only, appointments are kept)",
)
async def doctors_delete(
    doctor_id: str,
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    await services.catalog.delete_practitioner(principal, doctor_id)
    return None


@router.post("/doctors/{doctor_id}/slots", response_model=List[str])
async def doctors_add_slot(
    doctor_id: str,
    payload: SlotRequest,
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    return await services.catalog.add_slot(principal, doctor_id, payload.label)


# labels are free text, "Mon/Wed 09:00" included
@router.delete("/doctors/{doctor_id}/slots/{label:path}", response_model=List[str])
async def doctors_remove_slot(
    doctor_id: str,
    label: str,
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    return await services.catalog.remove_slot(principal, doctor_id, label)


@router.post("/doctors/{doctor_id}/toggle-active")
async def doctors_toggle_active(
    doctor_id: str,
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    is_active = await services.catalog.toggle_active(principal, doctor_id)
    return {"id": doctor_id, "is_active": is_active}
