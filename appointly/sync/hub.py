# appointly/sync/hub.py
"""
Fan-out of collection snapshots to local observers.

One long-lived change-feed per collection kind, opened by the first
subscriber and released with the last. Every feed event is turned into a
full, validated snapshot and handed to each observer in feed order. Observers
must treat a delivery as a replacement of what they had, never as a diff: the
same snapshot may arrive more than once.

A failing feed never reaches observers as an exception. They get an empty
snapshot instead, the condition is logged, and the feed keeps retrying.
"""
from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from contextlib import aclosing
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    Optional,
    Set,
    Type,
    TypeVar,
    Union,
)

from pydantic import ValidationError as PydanticValidationError

from appointly.modules.appointments.models import Appointment
from appointly.modules.base import DocumentModel
from appointly.modules.brands.models import Brand
from appointly.modules.doctors.models import Doctor, Hospital
from appointly.modules.users.models import UserProfile

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=DocumentModel)
Observer = Callable[[List[Any]], Union[None, Awaitable[None]]]


class CollectionKind(str, Enum):
    USERS = "users"
    DOCTORS = "doctors"
    HOSPITALS = "hospitals"
    APPOINTMENTS = "appointments"
    BRANDS = "brands"


MODELS: Dict[CollectionKind, Type[DocumentModel]] = {
    CollectionKind.USERS: UserProfile,
    CollectionKind.DOCTORS: Doctor,
    CollectionKind.HOSPITALS: Hospital,
    CollectionKind.APPOINTMENTS: Appointment,
    CollectionKind.BRANDS: Brand,
}


class CollectionView(Generic[M]):
    """
    Observer that keeps the latest snapshot of one collection, keyed by id.
    Each delivery replaces the previous contents wholesale.
    """

    def __init__(self) -> None:
        self._items: Dict[str, M] = {}
        self._ready = asyncio.Event()
        self.deliveries = 0

    def __call__(self, snapshot: List[M]) -> None:
        self._items = {item.id: item for item in snapshot}
        self.deliveries += 1
        self._ready.set()

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    async def wait_ready(self, timeout: Optional[float] = None) -> bool:
        """Wait for the first delivery; False if it did not come in time."""
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def get(self, item_id: str) -> Optional[M]:
        return self._items.get(item_id)

    def items(self) -> List[M]:
        return list(self._items.values())

    def __iter__(self) -> Iterator[M]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items


class Subscription:
    """Handle returned by `SyncHub.subscribe`. Release it when done."""

    def __init__(self, hub: "SyncHub", kind: CollectionKind, token: int):
        self._hub = hub
        self.kind = kind
        self._token = token
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._hub._release(self.kind, self._token)


class _Channel:
    def __init__(self, kind: CollectionKind):
        self.kind = kind
        # Registered but not yet replayed the latest snapshot
        self.pending: Dict[int, Observer] = {}
        self.observers: Dict[int, Observer] = {}
        self.latest: Optional[List[DocumentModel]] = None
        self.lock = asyncio.Lock()
        self.task: Optional[asyncio.Task] = None

    @property
    def idle(self) -> bool:
        return not self.observers and not self.pending


class SyncHub:
    """Keeps one change-feed per watched collection and fans snapshots out."""

    def __init__(self, store: Any, *, retry_delay: float = 2.0):
        self._store = store
        self._retry_delay = retry_delay
        self._channels: Dict[CollectionKind, _Channel] = {}
        self._retired: Set[asyncio.Task] = set()
        self._tokens = itertools.count(1)

    async def subscribe(self, kind: CollectionKind | str, observer: Observer) -> Subscription:
        """
        Register `observer` for `kind`. If a snapshot was already received it
        is replayed to the new observer right away; later deliveries follow
        in feed order.
        """
        kind = CollectionKind(kind)
        channel = self._channels.get(kind)
        if channel is None:
            channel = _Channel(kind)
            self._channels[kind] = channel
            channel.task = asyncio.create_task(self._pump(channel), name=f"sync-{kind.value}")
            logger.info("Opened change-feed for %s", kind.value)

        token = next(self._tokens)
        channel.pending[token] = observer
        async with channel.lock:
            if channel.pending.pop(token, None) is not None:
                channel.observers[token] = observer
                if channel.latest is not None:
                    await self._deliver(channel, observer, channel.latest)
        return Subscription(self, kind, token)

    def current(self, kind: CollectionKind | str) -> Optional[List[DocumentModel]]:
        """Latest snapshot of `kind`, or None when not watched / not received yet."""
        channel = self._channels.get(CollectionKind(kind))
        return list(channel.latest) if channel and channel.latest is not None else None

    def is_watching(self, kind: CollectionKind | str) -> bool:
        return CollectionKind(kind) in self._channels

    async def close(self) -> None:
        """Cancel every feed and wait for the tasks to finish."""
        channels = list(self._channels.values())
        self._channels.clear()
        tasks = [c.task for c in channels if c.task is not None] + list(self._retired)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._retired.clear()

    def _release(self, kind: CollectionKind, token: int) -> None:
        channel = self._channels.get(kind)
        if channel is None:
            return
        channel.pending.pop(token, None)
        channel.observers.pop(token, None)
        if not channel.idle:
            return
        del self._channels[kind]
        if channel.task is not None:
            channel.task.cancel()
            self._retired.add(channel.task)
            channel.task.add_done_callback(self._retired.discard)
        logger.info("Released change-feed for %s", kind.value)

    async def _pump(self, channel: _Channel) -> None:
        kind = channel.kind
        while True:
            try:
                async with aclosing(self._store.watch(kind.value)) as feed:
                    async for event in feed:
                        if event.error is not None:
                            logger.warning(
                                "Change-feed error on %s, delivering empty snapshot: %r",
                                kind.value,
                                event.error,
                            )
                            snapshot: List[DocumentModel] = []
                        else:
                            snapshot = self._normalize(kind, event.documents)
                        await self._broadcast(channel, snapshot)
                logger.warning("Change-feed for %s ended; resubscribing", kind.value)
            except Exception:
                logger.exception("Change-feed for %s failed; delivering empty snapshot", kind.value)
                await self._broadcast(channel, [])
            await asyncio.sleep(self._retry_delay)

    async def _broadcast(self, channel: _Channel, snapshot: List[DocumentModel]) -> None:
        async with channel.lock:
            channel.latest = snapshot
            for observer in list(channel.observers.values()):
                await self._deliver(channel, observer, snapshot)

    async def _deliver(self, channel: _Channel, observer: Observer, snapshot: List[DocumentModel]) -> None:
        # One failing observer must not starve the others
        try:
            result = observer(list(snapshot))
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Observer of %s raised while handling a snapshot", channel.kind.value)

    def _normalize(self, kind: CollectionKind, documents: List[Dict[str, Any]]) -> List[DocumentModel]:
        model = MODELS[kind]
        items: List[DocumentModel] = []
        for doc in documents:
            try:
                items.append(model.model_validate(doc))
            except PydanticValidationError as exc:
                logger.warning(
                    "Skipping malformed %s document %s (%d errors)",
                    kind.value,
                    doc.get("id"),
                    exc.error_count(),
                )
        return items


__all__ = ["SyncHub", "Subscription", "CollectionView", "CollectionKind", "MODELS"]
