from typing import Any, AsyncGenerator, Callable

import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeConnection
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from loguru import logger
from redis.asyncio import ConnectionPool, Redis

from flag_engine.core.models import FlagDefinition
from flag_engine.services.engine import FlagEngine
from flag_engine.services.persistence import RedisSnapshotStore
from flag_engine.settings import settings
from flag_engine.web.application import get_app

from tests.doubles import FIXED_NOW, InMemorySnapshotStore


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """
    Backend for anyio pytest plugin.

    :return: backend name.
    """
    return "asyncio"


@pytest.fixture
def log_messages() -> Any:
    """
    Capture loguru output as ``LEVEL:message`` strings.

    :yield: list receiving formatted records.
    """
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(message.rstrip("\n")), level="DEBUG", format="{level}:{message}")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def memory_store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def no_defaults() -> Callable[[], list[FlagDefinition]]:
    return lambda: []


@pytest.fixture
async def engine(
    memory_store: InMemorySnapshotStore,
    no_defaults: Callable[[], list[FlagDefinition]],
) -> AsyncGenerator[FlagEngine, None]:
    """
    Engine without built-in defaults and with a frozen clock.

    :yield: fresh engine, closed after the test.
    """
    flag_engine = FlagEngine(memory_store, defaults=no_defaults, clock=lambda: FIXED_NOW)
    yield flag_engine
    await flag_engine.aclose()


@pytest.fixture
async def fake_redis_pool() -> AsyncGenerator[ConnectionPool, None]:
    """
    Get instance of a fake redis.

    :yield: FakeRedis instance.
    """
    server = FakeServer()
    server.connected = True
    pool = ConnectionPool(connection_class=FakeConnection, server=server)

    yield pool

    await pool.disconnect()


@pytest.fixture
def redis_store(fake_redis_pool: ConnectionPool) -> RedisSnapshotStore:
    return RedisSnapshotStore(Redis(connection_pool=fake_redis_pool), settings.storage_key)


@pytest.fixture
async def fastapi_app(
    fake_redis_pool: ConnectionPool,
    redis_store: RedisSnapshotStore,
) -> AsyncGenerator[FastAPI, None]:
    """
    Fixture for creating FastAPI app.

    The lifespan is not run by the test transport, so the state it would
    build is filled in here.

    :yield: fastapi app with a fake redis backed engine.
    """
    application = get_app()
    flag_engine = FlagEngine(redis_store)
    await flag_engine.initialize()
    application.state.redis_pool = fake_redis_pool
    application.state.flag_engine = flag_engine
    yield application
    await flag_engine.aclose()


@pytest.fixture
async def client(
    fastapi_app: FastAPI,
    anyio_backend: Any,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Fixture that creates client for requesting server.

    :param fastapi_app: the application.
    :yield: client for the app.
    """
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test", timeout=2.0) as ac:
        yield ac
