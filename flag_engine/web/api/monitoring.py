"""Health check and Prometheus metrics export endpoints."""

from __future__ import annotations

import os

from fastapi import APIRouter, Depends, Response
from loguru import logger
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, generate_latest, multiprocess
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from flag_engine.services.redis.dependency import get_redis_pool

router = APIRouter(tags=["monitoring"])


def _current_registry() -> CollectorRegistry:
    """Build the correct Prometheus registry depending on workers."""

    multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if multiproc_dir:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return registry
    return REGISTRY  # type: ignore[return-value]


@router.get("/health")
async def health_check(redis_pool: ConnectionPool = Depends(get_redis_pool)) -> dict[str, str]:
    """
    Report whether the snapshot store is reachable.

    Evaluation keeps working from memory when it is not, so this never fails.
    """
    try:
        async with Redis(connection_pool=redis_pool) as redis:
            await redis.ping()
    except RedisError as exc:
        logger.warning("Snapshot store ping failed: {}", exc)
        return {"status": "ok", "storage": "unavailable"}
    return {"status": "ok", "storage": "ok"}


@router.get("/metrics")
async def prometheus_metrics() -> Response:
    registry = _current_registry()
    metrics_payload = generate_latest(registry)
    return Response(content=metrics_payload, media_type=CONTENT_TYPE_LATEST)
