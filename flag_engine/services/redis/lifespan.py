from __future__ import annotations

from fastapi import FastAPI
from redis.asyncio import ConnectionPool, Redis

from flag_engine.services.engine import FlagEngine
from flag_engine.services.persistence import RedisSnapshotStore
from flag_engine.settings import settings


def init_redis(app: FastAPI) -> None:  # pragma: no cover
    """
    Create the redis connection pool.

    :param app: current FastAPI application.
    """
    app.state.redis_pool = ConnectionPool.from_url(settings.redis_url)


async def shutdown_redis(app: FastAPI) -> None:  # pragma: no cover
    """
    Close the redis connection pool.

    :param app: current application.
    """
    await app.state.redis_pool.disconnect()


async def init_flag_engine(app: FastAPI) -> None:
    """
    Build the flag engine on top of the redis pool and restore its snapshot.

    :param app: current FastAPI application.
    """
    redis = Redis(connection_pool=app.state.redis_pool)
    engine = FlagEngine(RedisSnapshotStore(redis, settings.storage_key))
    await engine.initialize()
    app.state.flag_engine = engine


async def shutdown_flag_engine(app: FastAPI) -> None:
    """
    Flush pending snapshot writes and stop the writer task.

    :param app: current application.
    """
    engine: FlagEngine | None = getattr(app.state, "flag_engine", None)
    if engine is not None:
        await engine.aclose()
