# appointly/core/errors.py
from __future__ import annotations


class AppError(Exception):
    """
    Base class for errors the service layer raises on purpose.
    The message is a short machine code (e.g. "slot_already_taken") that the
    HTTP layer passes through as `detail`.
    """

    code = "error"

    def __init__(self, code: str | None = None):
        super().__init__(code or self.code)
        self.code = code or self.code


class ValidationError(AppError):
    """Malformed input; raised before any write is attempted."""

    code = "invalid_input"


class InvalidTransition(ValidationError):
    """Appointment status change not allowed by the state machine."""

    code = "invalid_status_transition"


class AuthorizationError(AppError):
    """The access gate denied the action. Never says which check failed."""

    code = "not_permitted"

    def __init__(self, code: str | None = None):
        super().__init__("not_permitted")


class ConflictError(AppError):
    """Double booking or a lost compare-and-swap on a concurrently edited field."""

    code = "conflict"


class TransportError(AppError):
    """The document store rejected or failed the call. Callers may retry."""

    code = "temporarily_unavailable"


class NotFoundError(AppError):
    """Referenced doctor/appointment/brand is absent at mutation time."""

    code = "not_found"


__all__ = [
    "AppError",
    "ValidationError",
    "InvalidTransition",
    "AuthorizationError",
    "ConflictError",
    "TransportError",
    "NotFoundError",
]
