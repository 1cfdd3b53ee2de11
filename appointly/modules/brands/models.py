# appointly/modules/brands/models.py
from __future__ import annotations

from appointly.modules.base import DocumentModel

BRANDS = "brands"


class Brand(DocumentModel):
    """Partner brand shown on the landing page."""

    name: str
