# appointly/dependencies.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from appointly.core.access import Principal
from appointly.core.security import InvalidTokenError, decode_token, is_access_token
from appointly.modules.users.service import load_principal
from appointly.services import Services

# HTTPBearer scheme so Swagger-UI can attach the Authorization header globally
bearer_scheme = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    return request.app.state.services


async def principal_from_token(services: Services, token: str) -> Principal:
    """Verify a bearer token and resolve its subject. Raises InvalidTokenError."""
    payload = decode_token(token, services.settings.JWT_SECRET)
    if not is_access_token(payload):
        raise InvalidTokenError("invalid_token_type")
    return await load_principal(services.store, str(payload["sub"]), payload)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: Services = Depends(get_services),
) -> Principal:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="missing_token",
        )
    try:
        return await principal_from_token(services, credentials.credentials)
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid_token",
        )


async def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: Services = Depends(get_services),
) -> Optional[Principal]:
    """Public endpoints: a valid token refines the view, a missing one is fine."""
    if credentials is None:
        return None
    try:
        return await principal_from_token(services, credentials.credentials)
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid_token",
        )
