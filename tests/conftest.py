import asyncio
import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from mongomock_motor import AsyncMongoMockClient

from premiads.database import create_indexes
from premiads.models.auth.user import Caller, UserRole

ADVERTISER_ID = "advertiser-1"


class FixedRandom:
    """Random source that always returns the same value"""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


class SlowCollection:
    """Wraps a collection so the named operations never answer in time"""

    def __init__(self, collection, *slow_operations):
        self._collection = collection
        self._slow_operations = set(slow_operations)

    def __getattr__(self, name):
        if name in self._slow_operations:
            async def hang(*args, **kwargs):
                await asyncio.sleep(1)
            return hang
        return getattr(self._collection, name)


@pytest_asyncio.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["premiads_test"]
    await create_indexes(database)
    return database


@pytest.fixture
def make_mission(db):
    """Insert a mission and return its id"""
    async def _make(**overrides):
        now = datetime.utcnow()
        doc = {
            "title": "Follow us",
            "advertiser_id": ADVERTISER_ID,
            "rifas": 10,
            "cashback_reward": 0.0,
            "has_badge": False,
            "has_lootbox": False,
            "selected_lootbox_rewards": [],
            "is_active": True,
            "status": "active",
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=1),
        }
        doc.update(overrides)
        result = await db.missions.insert_one(doc)
        return str(result.inserted_id)
    return _make


@pytest.fixture
def participant():
    return Caller(user_id="user-1", role=UserRole.PARTICIPANT)


@pytest.fixture
def other_participant():
    return Caller(user_id="user-2", role=UserRole.PARTICIPANT)


@pytest.fixture
def advertiser():
    return Caller(user_id=ADVERTISER_ID, role=UserRole.ADVERTISER)


@pytest.fixture
def other_advertiser():
    return Caller(user_id="advertiser-2", role=UserRole.ADVERTISER)


@pytest.fixture
def admin():
    return Caller(user_id="admin-1", role=UserRole.ADMIN)


@pytest.fixture
def fixed_random():
    return FixedRandom


@pytest.fixture
def slow_collection():
    return SlowCollection
