"""
Document store facade over SQLAlchemy's asyncio engine.

Collections are flat: each document lives in one collection and is addressed
by its id. Writers get `createdAt`/`updatedAt` stamped by the database. Readers
can `watch` a collection and receive the full current contents after every
committed write, which is what keeps the sync hub's snapshots fresh.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Mapping, NamedTuple, Optional, Set

from sqlalchemy import delete, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from appointly.core.errors import ConflictError, NotFoundError, TransportError
from appointly.db.base import Base
from appointly.db.models import Document, SlotClaim
from appointly.db.sql import build_sessionmaker

logger = logging.getLogger(__name__)

# Keys owned by the store; never persisted inside `data`
_RESERVED_KEYS = {"id", "createdAt", "updatedAt"}


class FeedEvent(NamedTuple):
    """One change-feed emission: the whole collection, or the error that prevented reading it."""

    collection: str
    documents: List[Dict[str, Any]]
    error: Optional[Exception] = None


def new_document_id() -> str:
    return uuid.uuid4().hex


def _clean(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k not in _RESERVED_KEYS}


def _materialize(row: Document) -> Dict[str, Any]:
    doc = dict(row.data or {})
    doc["id"] = row.id
    doc["createdAt"] = row.created_at.isoformat() if row.created_at else None
    doc["updatedAt"] = row.updated_at.isoformat() if row.updated_at else None
    return doc


class SqlDocumentStore:
    """
    Collection/document store with a per-collection change-feed.

    Change notifications are in-process: every successful write wakes the
    watchers of its collection. Setting `poll_interval` also re-reads watched
    collections periodically so writes from other processes show up.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        poll_interval: float = 0.0,
        retry_delay: float = 2.0,
    ):
        self._engine = engine
        self._sessions = build_sessionmaker(engine)
        self._poll_interval = poll_interval
        self._retry_delay = retry_delay
        self._listeners: Dict[str, Set[asyncio.Event]] = defaultdict(set)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def init_schema(self) -> None:
        """Create the backing tables if they don't exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    async def ping(self) -> bool:
        async with self._transaction() as session:
            await session.execute(text("SELECT 1"))
        return True

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """
        One session, one transaction: commit on success, rollback on error.
        Driver errors leave this block as TransportError; a duplicate slot
        claim leaves it as ConflictError.
        """
        try:
            async with self._sessions() as session:
                async with session.begin():
                    yield session
        except IntegrityError as exc:
            message = str(exc.orig).lower() if exc.orig else str(exc).lower()
            if "slot_claims" in message:
                raise ConflictError("slot_already_taken") from exc
            raise ConflictError("document_exists") from exc
        except SQLAlchemyError as exc:
            logger.warning("Document store call failed: %s", exc.__class__.__name__)
            raise TransportError() from exc

    def _notify(self, collection: str) -> None:
        for event in self._listeners.get(collection, ()):
            event.set()

    # =========================================================================
    # WRITES
    # =========================================================================

    async def add(
        self,
        collection: str,
        data: Mapping[str, Any],
        *,
        doc_id: Optional[str] = None,
        claim: Optional[str] = None,
    ) -> str:
        """
        Insert a new document and return its id (generated unless given).
        With `claim`, the key is reserved in the same transaction; if another
        live document already holds it, nothing is written and ConflictError
        is raised.
        """
        doc_id = doc_id or new_document_id()
        async with self._transaction() as session:
            session.add(Document(collection=collection, id=doc_id, data=_clean(data)))
            if claim is not None:
                session.add(SlotClaim(key=claim, document_id=doc_id))
            await session.flush()
        self._notify(collection)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Create or fully replace a document under an explicit id."""
        async with self._transaction() as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                session.add(Document(collection=collection, id=doc_id, data=_clean(data)))
            else:
                row.data = _clean(data)
        self._notify(collection)

    async def update(
        self,
        collection: str,
        doc_id: str,
        patch: Mapping[str, Any],
        *,
        expect: Optional[Mapping[str, Any]] = None,
        release: Optional[str] = None,
    ) -> None:
        """
        Merge `patch` into an existing document.

        expect:  field -> value pairs that must still hold, otherwise the
                 patch is refused with ConflictError (compare-and-swap).
        release: slot claim held by this document to drop atomically.
        """
        async with self._transaction() as session:
            stmt = (
                select(Document)
                .where(Document.collection == collection, Document.id == doc_id)
                .with_for_update()
            )
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
                raise NotFoundError("not_found")

            current = row.data or {}
            for field, value in (expect or {}).items():
                if current.get(field) != value:
                    raise ConflictError("concurrent_update")

            row.data = {**current, **_clean(patch)}
            if release is not None:
                await session.execute(
                    delete(SlotClaim).where(
                        SlotClaim.key == release,
                        SlotClaim.document_id == doc_id,
                    )
                )
        self._notify(collection)

    async def delete(self, collection: str, doc_id: str) -> int:
        async with self._transaction() as session:
            res = await session.execute(
                delete(Document).where(
                    Document.collection == collection,
                    Document.id == doc_id,
                )
            )
            count = res.rowcount or 0  # type: ignore
        if count:
            self._notify(collection)
        return count

    # =========================================================================
    # READS
    # =========================================================================

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        async with self._transaction() as session:
            row = await session.get(Document, (collection, doc_id))
            return _materialize(row) if row is not None else None

    async def list(self, collection: str) -> List[Dict[str, Any]]:
        async with self._transaction() as session:
            stmt = (
                select(Document)
                .where(Document.collection == collection)
                .order_by(Document.created_at, Document.id)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_materialize(r) for r in rows]

    # =========================================================================
    # CHANGE-FEED
    # =========================================================================

    async def watch(self, collection: str) -> AsyncIterator[FeedEvent]:
        """
        Yield the full collection now and after every change.

        A failed read yields an event carrying the error and is retried after
        `retry_delay`; the feed itself only ends when the consumer stops
        iterating (or is cancelled).
        """
        changed = asyncio.Event()
        self._listeners[collection].add(changed)
        logger.debug("Watching collection %s", collection)
        try:
            while True:
                # Cleared before reading so a write during the read is not lost
                changed.clear()
                try:
                    documents = await self.list(collection)
                except TransportError as exc:
                    yield FeedEvent(collection, [], exc)
                    await asyncio.sleep(self._retry_delay)
                    continue
                yield FeedEvent(collection, documents)
                await self._wait_for_change(changed)
        finally:
            self._listeners[collection].discard(changed)
            logger.debug("Stopped watching collection %s", collection)

    async def _wait_for_change(self, changed: asyncio.Event) -> None:
        if self._poll_interval <= 0:
            await changed.wait()
            return
        try:
            await asyncio.wait_for(changed.wait(), timeout=self._poll_interval)
        except asyncio.TimeoutError:
            pass


__all__ = ["SqlDocumentStore", "FeedEvent", "new_document_id"]
