# appointly/db/base.py
from __future__ import annotations

import datetime as dt

from sqlalchemy import DateTime, MetaData, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Stable constraint names so the schema diffs cleanly between sqlite and postgres
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class TimestampMixin:
    """createdAt / updatedAt for stored documents, filled in by the database."""

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class ReprMixin:
    # payload columns get long; show the primary key only
    def __repr__(self) -> str:
        keys = ", ".join(
            f"{col.key}={getattr(self, col.key, None)!r}"
            for col in self.__mapper__.primary_key
        )
        return f"{type(self).__name__}({keys})"


__all__ = ["Base", "TimestampMixin", "ReprMixin"]
