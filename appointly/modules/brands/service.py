# appointly/modules/brands/service.py
from __future__ import annotations

import logging
from typing import Any

from appointly.core.access import AccessGate, Action, Principal
from appointly.core.errors import NotFoundError, ValidationError
from appointly.modules.brands.models import BRANDS
from appointly.modules.log import write_audit_log

logger = logging.getLogger(__name__)


class BrandRegistry:
    """Partner brands; administrators only."""

    def __init__(self, store: Any, gate: AccessGate):
        self._store = store
        self._gate = gate

    async def create(self, principal: Principal, name: str) -> str:
        self._gate.require(principal, Action.MANAGE_BRANDS)
        name = (name or "").strip()
        if not name:
            raise ValidationError("invalid_brand_name")
        brand_id = await self._store.add(BRANDS, {"name": name})
        logger.info("Brand %s created: %s", brand_id, name)
        await write_audit_log(self._store, principal.user_id, "CREATE_BRAND", brand_id)
        return brand_id

    async def remove(self, principal: Principal, brand_id: str) -> None:
        self._gate.require(principal, Action.MANAGE_BRANDS)
        if not await self._store.delete(BRANDS, brand_id):
            raise NotFoundError("brand_not_found")
        logger.info("Brand %s removed", brand_id)
        await write_audit_log(self._store, principal.user_id, "REMOVE_BRAND", brand_id)
