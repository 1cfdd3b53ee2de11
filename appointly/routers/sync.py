# appointly/routers/sync.py
"""
Live collection snapshots over a WebSocket.

The client connects to `/sync/{collection}?token=...` and receives a JSON
message `{"collection": ..., "items": [...]}` every time the collection
changes. Every message is a full replacement of the previous one.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from appointly.core.access import Administrator, Principal
from appointly.core.security import InvalidTokenError
from appointly.dependencies import principal_from_token
from appointly.modules.doctors.service import search_doctors
from appointly.services import Services
from appointly.sync.hub import CollectionKind

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sync"])

WS_UNAUTHORIZED = 4401
WS_FORBIDDEN = 4403
WS_NOT_FOUND = 4404


def _allowed(kind: CollectionKind, principal: Optional[Principal]) -> bool:
    if kind is CollectionKind.USERS:
        return isinstance(principal, Administrator)
    if kind is CollectionKind.APPOINTMENTS:
        return principal is not None
    return True


def snapshot_message(
    services: Services,
    kind: CollectionKind,
    principal: Optional[Principal],
    snapshot: List[Any],
) -> Dict[str, Any]:
    if kind is CollectionKind.APPOINTMENTS:
        snapshot = services.ledger.visible_to(principal, snapshot)
    elif kind is CollectionKind.DOCTORS:
        # same rule as GET /doctors: hidden doctors are for administrators
        snapshot = search_doctors(snapshot, include_hidden=isinstance(principal, Administrator))
    return {
        "collection": kind.value,
        "items": [item.model_dump(mode="json", by_alias=True) for item in snapshot],
    }


def replace_pending(queue: "asyncio.Queue[Dict[str, Any]]", message: Dict[str, Any]) -> None:
    """
    Offer `message` to a single-slot queue, dropping a snapshot the client
    has not picked up yet. Each message replaces the previous one, so a slow
    reader only ever needs the newest.
    """
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(message)


async def _wait_disconnect(websocket: WebSocket) -> None:
    # Client messages carry nothing; only the close matters
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


async def _forward(websocket: WebSocket, queue: "asyncio.Queue[Dict[str, Any]]") -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(message)


@router.websocket("/sync/{collection}")
async def sync_collection(
    websocket: WebSocket,
    collection: str,
    token: Optional[str] = Query(None),
):
    services: Services = websocket.app.state.services
    await websocket.accept()

    try:
        kind = CollectionKind(collection)
    except ValueError:
        await websocket.close(code=WS_NOT_FOUND, reason="unknown_collection")
        return

    principal: Optional[Principal] = None
    if token:
        try:
            principal = await principal_from_token(services, token)
        except InvalidTokenError:
            await websocket.close(code=WS_UNAUTHORIZED, reason="invalid_token")
            return
    if not _allowed(kind, principal):
        code = WS_UNAUTHORIZED if principal is None else WS_FORBIDDEN
        await websocket.close(code=code, reason="not_permitted")
        return

    queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue(maxsize=1)

    def observer(snapshot: List[Any]) -> None:
        replace_pending(queue, snapshot_message(services, kind, principal, snapshot))

    subscription = await services.hub.subscribe(kind, observer)
    tasks = [
        asyncio.create_task(_forward(websocket, queue)),
        asyncio.create_task(_wait_disconnect(websocket)),
    ]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Sync socket for %s closed with error: %r", kind.value, exc)
    finally:
        subscription.unsubscribe()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Sync socket for %s released", kind.value)
