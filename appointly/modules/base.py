# appointly/modules/base.py
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class DocumentModel(BaseModel):
    """
    Base for records materialized from the document store.

    Documents use camelCase keys (`doctorId`, `availableSlots`); Python code
    uses snake_case attributes. Instances are frozen so a snapshot handed to
    many observers cannot be changed by one of them.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        """Payload for a write: camelCase, without store-owned keys."""
        return self.model_dump(
            by_alias=True,
            exclude={"id", "created_at", "updated_at"},
            exclude_none=True,
            mode="json",
        )


__all__ = ["DocumentModel"]
