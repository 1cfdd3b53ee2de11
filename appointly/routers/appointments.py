# appointly/routers/appointments.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from appointly.core.access import Principal
from appointly.dependencies import get_current_principal, get_services
from appointly.modules.appointments.models import ApptStatus
from appointly.modules.appointments.schemas import (
    AppointmentCreated,
    AppointmentCreateRequest,
    AppointmentListPage,
    AppointmentPublic,
    AppointmentStatusUpdate,
)
from appointly.services import Services

router = APIRouter(tags=["appointments"])


@router.post(
    "/appointments",
    response_model=AppointmentCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Book a slot (starts PENDING)",
)
async def appointments_create(
    payload: AppointmentCreateRequest,
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    appointment_id = await services.ledger.create(
        principal,
        payload.doctor_id,
        payload.date,
        payload.slot,
        patient_name=payload.patient_name,
        notes=payload.notes,
    )
    return AppointmentCreated(id=appointment_id)


@router.get(
    "/appointments/my",
    response_model=AppointmentListPage,
    summary="Appointments visible to the current principal",
)
async def appointments_my(
    status_in: Optional[List[ApptStatus]] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    """
    - patient => appointments they booked
    - doctor => appointments of their doctor profile
    - admin => all
    """
    rows = services.ledger.visible_to(principal, services.ledger.list_for(statuses=status_in))
    return services.ledger.page(rows, limit, offset)


@router.get(
    "/appointments/doctor/{doctor_id}",
    response_model=AppointmentListPage,
    summary="Appointments of one doctor, as far as the principal may see them",
)
async def appointments_for_doctor(
    doctor_id: str,
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    status_in: Optional[List[ApptStatus]] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    rows = services.ledger.list_for(doctor_id=doctor_id, date=date, statuses=status_in)
    rows = services.ledger.visible_to(principal, rows)
    return services.ledger.page(rows, limit, offset, newest_first=False)


@router.put(
    "/appointments/{appointment_id}/status",
    response_model=AppointmentPublic,
    summary="Approve or cancel an appointment",
)
async def appointments_set_status(
    appointment_id: str,
    payload: AppointmentStatusUpdate,
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    appt = await services.ledger.set_status(principal, appointment_id, payload.status)
    return AppointmentPublic.model_validate(appt)


@router.put(
    "/appointments/{appointment_id}/cancel",
    response_model=AppointmentPublic,
    summary="Cancel an appointment",
)
async def appointments_cancel(
    appointment_id: str,
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    appt = await services.ledger.cancel(principal, appointment_id)
    return AppointmentPublic.model_validate(appt)
