"""Reusable API dependencies."""

from __future__ import annotations

from fastapi import HTTPException, Request, status
from loguru import logger

from flag_engine.services.engine import FlagEngine


def get_flag_engine(request: Request) -> FlagEngine:
    """Return the engine owned by the running application."""

    engine: FlagEngine | None = getattr(request.app.state, "flag_engine", None)
    if engine is None:
        logger.error("Flag engine requested before application startup completed")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="engine_unavailable")
    return engine
