# appointly/modules/brands/schemas.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class BrandCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=80)


class BrandPublic(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(from_attributes=True)
