# appointly/modules/users/service.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from appointly.core.access import (
    Administrator,
    Patient,
    Practitioner,
    Principal,
    UnlinkedPractitioner,
)
from appointly.modules.users.models import USERS, UserProfile, UserRole

logger = logging.getLogger(__name__)


def principal_from_profile(profile: UserProfile) -> Principal:
    """
    Convert a stored profile into the principal variant decisions are made on.
    A DOCTOR account without a doctor binding becomes UnlinkedPractitioner.
    """
    if profile.role == UserRole.ADMIN:
        return Administrator(user_id=profile.id, name=profile.name)
    if profile.role == UserRole.DOCTOR:
        if profile.doctor_id:
            return Practitioner(user_id=profile.id, name=profile.name, practitioner_id=profile.doctor_id)
        logger.warning("User %s has role DOCTOR but no doctor profile linked", profile.id)
        return UnlinkedPractitioner(user_id=profile.id, name=profile.name)
    return Patient(user_id=profile.id, name=profile.name)


def _fallback_name(claims: Dict[str, Any]) -> str:
    email = claims.get("email") or ""
    return claims.get("name") or (email.split("@")[0] if email else "") or "User"


async def load_principal(store: Any, user_id: str, claims: Optional[Dict[str, Any]] = None) -> Principal:
    """
    Resolve the principal for an authenticated user id.
    Without a stored profile the user is treated as a basic patient; the
    role claim of the token is never trusted on its own.
    """
    doc = await store.get(USERS, user_id)
    if doc is None:
        return Patient(user_id=user_id, name=_fallback_name(claims or {}))
    return principal_from_profile(UserProfile.model_validate(doc))
