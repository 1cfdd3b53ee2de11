# appointly/core/access.py
"""
Single authorization gate consulted before every mutation.

Principals are a tagged variant rather than a user row with an optional
doctor binding: a `Practitioner` always carries the doctor it owns, and a
DOCTOR account without one is an `UnlinkedPractitioner` that every action
denies.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from appointly.core.errors import AuthorizationError

logger = logging.getLogger(__name__)


class _PrincipalBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    name: str = ""


class Patient(_PrincipalBase):
    kind: Literal["patient"] = "patient"


class Practitioner(_PrincipalBase):
    kind: Literal["practitioner"] = "practitioner"
    practitioner_id: str = Field(..., min_length=1)


class Administrator(_PrincipalBase):
    kind: Literal["administrator"] = "administrator"


class UnlinkedPractitioner(_PrincipalBase):
    kind: Literal["unlinked_practitioner"] = "unlinked_practitioner"


Principal = Union[Patient, Practitioner, Administrator, UnlinkedPractitioner]


class Action(str, Enum):
    BOOK_APPOINTMENT = "book_appointment"
    EDIT_OWN_SCHEDULE = "edit_own_schedule"
    APPROVE_OR_REJECT = "approve_or_reject"
    SELF_CANCEL = "self_cancel"
    CREATE_DOCTOR = "create_doctor"
    DELETE_DOCTOR = "delete_doctor"
    MANAGE_BRANDS = "manage_brands"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW


# Rules. `target` is the entity acted on: a Doctor for schedule edits, an
# Appointment for status changes, None for creations.

def _book(principal: Principal, target: Any) -> bool:
    return isinstance(principal, Patient)


def _edit_own_schedule(principal: Principal, target: Any) -> bool:
    if isinstance(principal, Administrator):
        return True
    if isinstance(principal, Practitioner):
        return target is not None and getattr(target, "id", None) == principal.practitioner_id
    return False


def _approve_or_reject(principal: Principal, target: Any) -> bool:
    if isinstance(principal, Administrator):
        return True
    if isinstance(principal, Practitioner):
        return target is not None and getattr(target, "doctor_id", None) == principal.practitioner_id
    return False


def _self_cancel(principal: Principal, target: Any) -> bool:
    if isinstance(principal, UnlinkedPractitioner) or target is None:
        return False
    return getattr(target, "user_id", None) == principal.user_id


def _admin_only(principal: Principal, target: Any) -> bool:
    return isinstance(principal, Administrator)


_RULES: Dict[Action, Callable[[Principal, Any], bool]] = {
    Action.BOOK_APPOINTMENT: _book,
    Action.EDIT_OWN_SCHEDULE: _edit_own_schedule,
    Action.APPROVE_OR_REJECT: _approve_or_reject,
    Action.SELF_CANCEL: _self_cancel,
    Action.CREATE_DOCTOR: _admin_only,
    Action.DELETE_DOCTOR: _admin_only,
    Action.MANAGE_BRANDS: _admin_only,
}


class AccessGate:
    """Maps (principal, action, target) to ALLOW or DENY. Deny by default."""

    def authorize(self, principal: Principal, action: Action, target: Optional[Any] = None) -> Decision:
        rule = _RULES.get(action)
        if rule is None or principal is None:
            return Decision.DENY
        return Decision.ALLOW if rule(principal, target) else Decision.DENY

    def require(self, principal: Principal, action: Action, target: Optional[Any] = None) -> None:
        """Raise AuthorizationError unless the action is allowed."""
        if not self.authorize(principal, action, target).allowed:
            logger.info(
                "Denied %s for %s %s",
                action.value,
                getattr(principal, "kind", "anonymous"),
                getattr(principal, "user_id", None),
            )
            raise AuthorizationError()


__all__ = [
    "Patient",
    "Practitioner",
    "Administrator",
    "UnlinkedPractitioner",
    "Principal",
    "Action",
    "Decision",
    "AccessGate",
]
