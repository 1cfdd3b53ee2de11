# appointly/db/models.py
from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import JSON, String, Index, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from appointly.db.base import Base, TimestampMixin, ReprMixin


class Document(TimestampMixin, ReprMixin, Base):
    """
    One document of a flat collection. Collections are not tables: every
    collection shares this table and is addressed by (collection, id).
    """

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
    )

    __table_args__ = (
        Index("ix_documents_collection_created", "collection", "created_at"),
    )


class SlotClaim(ReprMixin, Base):
    """
    Uniqueness guard for bookings: one row per live doctorId|date|slot.
    The primary key does the work; a second insert fails inside the
    transaction that tried to create the competing appointment.
    """

    __tablename__ = "slot_claims"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    document_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        nullable=False, server_default=func.now()
    )


__all__ = ["Document", "SlotClaim"]
