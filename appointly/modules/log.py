from __future__ import annotations

import logging
from typing import Any

from appointly.core.errors import TransportError
from appointly.modules.users.models import AUDIT_LOGS

logger = logging.getLogger(__name__)


async def write_audit_log(
    store: Any,
    user_id: str | None,
    action: str,
    details: str | None = None,
) -> None:
    """
    Write an audit log entry after a mutation was committed.

    action:
        "CREATE_APPOINTMENT"
        "SET_APPOINTMENT_STATUS"
        "UPDATE_DOCTOR_SLOTS"
        "DELETE_DOCTOR"

    If the entry cannot be written, the failure is logged; the mutation it
    describes has already been committed and stands.
    """
    try:
        await store.add(
            AUDIT_LOGS,
            {"userId": user_id, "action": action, "details": details},
        )
    except TransportError:
        logger.warning("Audit log write failed for %s by %s", action, user_id)
