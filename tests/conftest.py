# tests/conftest.py
import os

# Настройки читаются при импорте procredit.core.config, поэтому задаем окружение заранее
os.environ.setdefault("SHOPIFY_API_SECRET", "test-webhook-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from redis.exceptions import LockNotOwnedError
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from procredit.db.session import Base
from procredit.models import shop_config, shop_session, processed_event # Импортируем все модели для создания таблиц
from procredit.clients.shopify import ShopifyAdminClient

TEST_SHOP = "pro-sante-test.myshopify.com"

# In-memory SQLite с одним соединением: тестовый клиент FastAPI ходит в БД из другого потока
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Фикстура для создания чистой базы данных для каждого теста.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis, у которого блокировка про всегда берется сразу."""
    redis = MagicMock()
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=True)
    lock.release = AsyncMock()
    lock.extend = AsyncMock(return_value=True)
    redis.lock.return_value = lock
    return redis


class InMemoryLock:
    """
    Блокировка с TTL поверх asyncio.Lock, ведет себя как redis.asyncio.lock.Lock:
    по истечении TTL ключ освобождается, и ее может взять другой владелец.
    """

    def __init__(self, store: "InMemoryRedis", name: str, timeout: float, blocking_timeout: float):
        self.store = store
        self.name = name
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self.token = object()

    def _expired(self, now: float) -> bool:
        holder = self.store.holders.get(self.name)
        return holder is None or holder[1] <= now

    async def acquire(self) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.blocking_timeout
        while True:
            now = loop.time()
            if self._expired(now):
                self.store.holders[self.name] = (self.token, now + self.timeout)
                return True
            if now >= deadline:
                return False
            await asyncio.sleep(0.005)

    def _owned(self) -> bool:
        holder = self.store.holders.get(self.name)
        return holder is not None and holder[0] is self.token and not self._expired(asyncio.get_running_loop().time())

    async def owned(self) -> bool:
        return self._owned()

    async def extend(self, additional_time: float, replace_ttl: bool = False) -> bool:
        if not self._owned():
            raise LockNotOwnedError("Cannot extend a lock that's no longer owned")
        self.store.holders[self.name] = (self.token, asyncio.get_running_loop().time() + additional_time)
        return True

    async def release(self) -> None:
        if not self._owned():
            raise LockNotOwnedError("Cannot release a lock that's no longer owned")
        del self.store.holders[self.name]


class InMemoryRedis:
    """Только то, что нужно циклу начисления: `lock()`."""

    def __init__(self, lock_timeout: float | None = None):
        self.holders = {}
        self.lock_timeout = lock_timeout

    def lock(self, name, timeout=None, blocking_timeout=None):
        return InMemoryLock(self, name, self.lock_timeout or timeout, blocking_timeout)


@pytest.fixture
def in_memory_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def mock_shopify_client() -> MagicMock:
    client = MagicMock(spec=ShopifyAdminClient)
    client.shop = TEST_SHOP
    client.graphql = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
async def client(db_session, mock_redis):
    """HTTP-клиент к приложению с тестовой БД и замоканным Redis."""
    from procredit.main import app
    from procredit.dependencies import get_db
    from procredit.core.redis import get_redis_client

    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_redis_client] = lambda: mock_redis
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def make_metaobject(pro_id: str, code: str, **fields) -> dict:
    """Узел метаобъекта про в формате ответа GraphQL."""
    values = {"code": code, **fields}
    return {
        "id": pro_id,
        "fields": [{"key": key, "value": None if value is None else str(value)} for key, value in values.items()],
    }
