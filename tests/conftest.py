"""
Test configuration and shared fixtures.

Every test gets its own sqlite file database (tmp_path), so concurrent
writers use separate connections just like against PostgreSQL.
"""

import pytest
import pytest_asyncio

from appointly.core.access import Administrator, Patient, Practitioner, UnlinkedPractitioner
from appointly.db.sql import build_engine
from appointly.db.store import SqlDocumentStore
from appointly.services import Services

from tests.utils import make_settings, seed_doctor


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path / "appointly.db")


@pytest_asyncio.fixture
async def store(settings):
    store = SqlDocumentStore(
        build_engine(settings),
        poll_interval=settings.SYNC_POLL_SECONDS,
        retry_delay=settings.SYNC_RETRY_SECONDS,
    )
    await store.init_schema()
    yield store
    await store.dispose()


@pytest_asyncio.fixture
async def services(settings, store):
    services = Services(settings, store=store)
    await services.start(warmup_timeout=2.0)
    yield services
    await services.close()


@pytest_asyncio.fixture
async def doctor_id(store):
    return await seed_doctor(store, doc_id="d1")


@pytest.fixture
def patient():
    return Patient(user_id="patient-1", name="Pat Doe")


@pytest.fixture
def other_patient():
    return Patient(user_id="patient-2", name="Sam Roe")


@pytest.fixture
def admin():
    return Administrator(user_id="admin-1", name="Admin")


@pytest.fixture
def practitioner():
    return Practitioner(user_id="doctor-user-1", name="Dr. Ada Lovelace", practitioner_id="d1")


@pytest.fixture
def other_practitioner():
    return Practitioner(user_id="doctor-user-2", name="Dr. Other", practitioner_id="d2")


@pytest.fixture
def unlinked():
    return UnlinkedPractitioner(user_id="doctor-user-3", name="Dr. Nobody")
