# appointly/modules/users/models.py
from __future__ import annotations

from enum import Enum as PyEnum
from typing import Optional

from appointly.modules.base import DocumentModel

USERS = "users"
AUDIT_LOGS = "audit_logs"


class UserRole(str, PyEnum):
    USER = "USER"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"


class UserProfile(DocumentModel):
    """
    Stored shape of a `users` document. `doctor_id` is only meaningful for
    DOCTOR profiles; code that makes decisions works on the Principal
    variants built from it (see appointly.modules.users.service).
    """

    name: str = "User"
    email: str = ""
    role: UserRole = UserRole.USER
    avatar_url: Optional[str] = None
    doctor_id: Optional[str] = None
