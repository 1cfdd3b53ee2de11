# appointly/core/security.py
"""
Bearer token handling.

Accounts sign in with the identity provider; the API only verifies the
HS256 tokens it hands out. ``create_access_token`` mints the same shape of
token for local tooling and the test-suite.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from appointly.core.config import settings

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ("sub", "type")


class TokenType(str, Enum):
    ACCESS = "access"


class InvalidTokenError(Exception):
    """The token could not be trusted. ``args[0]`` is the reason code."""


def _signing_key(secret: Optional[str]) -> str:
    return secret or settings.JWT_SECRET


def create_access_token(
    *,
    subject: str,
    email: Optional[str] = None,
    role: Optional[str] = None,
    expires_minutes: Optional[int] = None,
    secret: Optional[str] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """Sign an access token for the user document ``subject``."""
    issued = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.ACCESS_EXPIRES_MIN)
    optional = {"email": email, "role": role}

    claims: Dict[str, Any] = dict(extra_claims or {})
    claims.update({k: v for k, v in optional.items() if v})
    claims.update(
        sub=subject,
        type=TokenType.ACCESS.value,
        iat=int(issued.timestamp()),
        exp=int((issued + lifetime).timestamp()),
        jti=uuid.uuid4().hex,
    )
    return jwt.encode(claims, _signing_key(secret), algorithm=ALGORITHM)


def decode_token(token: str, secret: Optional[str] = None) -> Dict[str, Any]:
    if not token:
        raise InvalidTokenError("missing_token")
    try:
        payload = jwt.decode(token, _signing_key(secret), algorithms=[ALGORITHM])
    except JWTError as exc:
        # expired, bad signature and garbage all look the same to callers
        raise InvalidTokenError("invalid_token") from exc

    if any(claim not in payload for claim in REQUIRED_CLAIMS):
        raise InvalidTokenError("invalid_claims")
    return payload


def is_access_token(payload: Dict[str, Any]) -> bool:
    return payload.get("type") == TokenType.ACCESS.value
