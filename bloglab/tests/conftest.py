import os

# Rate limit counters are kept in memory under test
os.environ.setdefault("TESTING", "true")

import pytest
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

import fakeredis

from bloglab.config import Settings
from bloglab.exceptions import StoreUnavailableError
from bloglab.services import build_services
from bloglab.services.cache_service import CacheAside
from bloglab.stores import DocumentStore, RedisCacheStore, SqlStore
from bloglab.stores.base import CacheStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

class FakeClock:
    """Datetime clock that moves one step forward on every reading"""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0), step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

class FakeTimer:
    """Epoch-seconds clock that only moves when told to"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

class BrokenCacheStore(CacheStore):
    """Cache whose backend is always down"""

    def __init__(self):
        self.calls = 0

    def _fail(self):
        self.calls += 1
        raise StoreUnavailableError("Redis unavailable")

    async def get(self, key: str) -> Optional[str]:
        self._fail()

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        self._fail()

    async def delete(self, key: str) -> None:
        self._fail()

    async def increment(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        self._fail()

    async def zset_add(self, key: str, member: str, score: float) -> None:
        self._fail()

    async def zset_remove(self, key: str, member: str) -> None:
        self._fail()

    async def zset_top_n(self, key: str, n: int) -> List[Tuple[str, float]]:
        self._fail()

@pytest.fixture
def settings() -> Settings:
    return Settings(TESTING=True, STORE_BACKEND="document")

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()

@pytest.fixture(params=["relational", "document"])
async def store(request, settings, clock):
    """Every storage test runs against both adapters"""
    if request.param == "relational":
        backing = await SqlStore.from_url(TEST_DATABASE_URL, settings)
    else:
        backing = DocumentStore(clock=clock)
    yield backing
    await backing.close()

@pytest.fixture
async def document_store(clock):
    backing = DocumentStore(clock=clock)
    yield backing
    await backing.close()

@pytest.fixture
async def redis():
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()

@pytest.fixture
def cache_store(redis) -> RedisCacheStore:
    return RedisCacheStore(redis)

@pytest.fixture
def cache(cache_store, timer) -> CacheAside:
    return CacheAside(cache_store, default_ttl=300, clock=timer)

@pytest.fixture
def services(store, cache_store, settings, clock):
    return build_services(store, cache_store, settings, clock=clock)

async def create_user(services, username: str, **overrides):
    data = {
        "username": username,
        "email": f"{username}@example.com",
        "password": "Password123!",
        "first_name": username.capitalize(),
        "last_name": "Tester",
    }
    data.update(overrides)
    return await services.users.register_user(data)

async def create_post(services, user_id: int, title: str, **overrides):
    data = {"title": title, "body": f"Body of {title}"}
    data.update(overrides)
    return await services.posts.create_post(user_id, data)
