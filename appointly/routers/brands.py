# appointly/routers/brands.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from appointly.core.access import Principal
from appointly.dependencies import get_current_principal, get_services
from appointly.modules.brands.schemas import BrandCreate, BrandPublic
from appointly.modules.doctors.schemas import HospitalPublic
from appointly.services import Services

router = APIRouter(tags=["brands"])


@router.get("/brands", response_model=List[BrandPublic])
async def brands_index(services: Services = Depends(get_services)):
    return [BrandPublic.model_validate(b) for b in services.brand_list]


@router.post("/brands", response_model=BrandPublic, status_code=status.HTTP_201_CREATED)
async def brands_create(
    payload: BrandCreate,
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    brand_id = await services.brands.create(principal, payload.name)
    return BrandPublic(id=brand_id, name=payload.name.strip())


@router.delete("/brands/{brand_id}", status_code=status.HTTP_204_NO_CONTENT)
async def brands_remove(
    brand_id: str,
    services: Services = Depends(get_services),
    principal: Principal = Depends(get_current_principal),
):
    await services.brands.remove(principal, brand_id)
    return None


@router.get("/hospitals", response_model=List[HospitalPublic], tags=["hospitals"])
async def hospitals_index(services: Services = Depends(get_services)):
    return [HospitalPublic.model_validate(h) for h in services.hospitals]
