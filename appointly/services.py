# appointly/services.py
from __future__ import annotations

import logging
from typing import Optional

from appointly.core.access import AccessGate
from appointly.core.config import Settings
from appointly.db.sql import build_engine
from appointly.db.store import SqlDocumentStore
from appointly.modules.appointments.service import AppointmentLedger
from appointly.modules.brands.service import BrandRegistry
from appointly.modules.doctors.models import Doctor, Hospital
from appointly.modules.doctors.service import ScheduleCatalog
from appointly.modules.brands.models import Brand
from appointly.sync.hub import CollectionKind, CollectionView, Subscription, SyncHub

logger = logging.getLogger(__name__)


class Services:
    """
    Everything the API needs, built once per process and passed explicitly
    (FastAPI keeps it on `app.state.services`).
    """

    def __init__(self, settings: Settings, store: Optional[SqlDocumentStore] = None):
        self.settings = settings
        self.store = store or SqlDocumentStore(
            build_engine(settings),
            poll_interval=settings.SYNC_POLL_SECONDS,
            retry_delay=settings.SYNC_RETRY_SECONDS,
        )
        self.gate = AccessGate()
        self.hub = SyncHub(self.store, retry_delay=settings.SYNC_RETRY_SECONDS)
        self.ledger = AppointmentLedger(
            self.store,
            self.hub,
            self.gate,
            enforce_unique=settings.ENFORCE_SLOT_UNIQUENESS,
        )
        self.catalog = ScheduleCatalog(
            self.store,
            self.gate,
            default_slots=settings.DEFAULT_SLOTS,
            default_specialization=settings.DEFAULT_SPECIALIZATION,
        )
        self.brands = BrandRegistry(self.store, self.gate)

        # Display-only collections
        self.hospitals: CollectionView[Hospital] = CollectionView()
        self.brand_list: CollectionView[Brand] = CollectionView()
        self._subscriptions: list[Subscription] = []

    @property
    def doctors(self) -> CollectionView[Doctor]:
        return self.ledger.doctors

    async def start(self, warmup_timeout: Optional[float] = 5.0) -> None:
        await self.store.init_schema()
        await self.ledger.start(warmup_timeout=warmup_timeout)
        self._subscriptions = [
            await self.hub.subscribe(CollectionKind.HOSPITALS, self.hospitals),
            await self.hub.subscribe(CollectionKind.BRANDS, self.brand_list),
        ]
        logger.info("Services started (slot uniqueness %s)",
                    "enforced" if self.settings.ENFORCE_SLOT_UNIQUENESS else "NOT enforced")

    async def close(self) -> None:
        self.ledger.close()
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        await self.hub.close()
        await self.store.dispose()
        logger.info("Services stopped")
