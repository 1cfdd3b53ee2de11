"""
Helpers shared by the test modules.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from appointly.core.config import Settings
from appointly.modules.doctors.models import DOCTORS
from appointly.modules.users.models import USERS

TEST_SECRET = "test-secret"
SLOTS = ["09:00 AM", "10:00 AM"]
DAY = "2024-06-01"


def make_settings(db_path: Any, **overrides: Any) -> Settings:
    values: Dict[str, Any] = dict(
        APP_ENV="test",
        LOG_LEVEL="WARNING",
        SQL_DSN=f"sqlite+aiosqlite:///{db_path}",
        JWT_SECRET=TEST_SECRET,
        SYNC_POLL_SECONDS=0.0,
        SYNC_RETRY_SECONDS=0.05,
    )
    values.update(overrides)
    return Settings(**values)


async def eventually(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> None:
    """Wait until `predicate()` holds; the change-feed delivers asynchronously."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError(f"Condition not met within {timeout}s")
        await asyncio.sleep(interval)


async def seed_doctor(
    store: Any,
    name: str = "Dr. Ada Lovelace",
    slots: Optional[Sequence[str]] = None,
    *,
    is_active: bool = True,
    doc_id: Optional[str] = None,
) -> str:
    return await store.add(
        DOCTORS,
        {
            "name": name,
            "specialization": "Cardiology",
            "experience": 12,
            "imageUrl": "",
            "isActive": is_active,
            "availableSlots": list(SLOTS if slots is None else slots),
        },
        doc_id=doc_id,
    )


async def seed_user(
    store: Any,
    user_id: str,
    role: str = "USER",
    name: str = "Test User",
    doctor_id: Optional[str] = None,
) -> None:
    data: Dict[str, Any] = {"name": name, "email": f"{user_id}@example.com", "role": role}
    if doctor_id:
        data["doctorId"] = doctor_id
    await store.set(USERS, user_id, data)


def slots_of(payload: List[Dict[str, Any]]) -> List[str]:
    return [item["slot"] for item in payload]


def wait_until(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.02) -> None:
    """Blocking variant of `eventually` for TestClient-based tests."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError(f"Condition not met within {timeout}s")
        time.sleep(interval)
