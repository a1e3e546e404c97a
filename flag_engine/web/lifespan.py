from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from flag_engine.services.redis.lifespan import (
    init_flag_engine,
    init_redis,
    shutdown_flag_engine,
    shutdown_redis,
)


@asynccontextmanager
async def lifespan_setup(
    app: FastAPI,
) -> AsyncGenerator[None, None]:  # pragma: no cover
    """
    Actions to run on application startup and shutdown.

    The redis pool and the flag engine are stored in the application state.

    :param app: the fastAPI application.
    """
    init_redis(app)
    await init_flag_engine(app)

    yield
    await shutdown_flag_engine(app)
    await shutdown_redis(app)
