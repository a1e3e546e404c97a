"""Feature flag endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import ValidationError

from flag_engine.core.models import FlagDefinition
from flag_engine.services.engine import FlagEngine
from flag_engine.web.api.dependencies import get_flag_engine
from flag_engine.web.api.flags.schemas import (
    EnabledFlagsResponse,
    FeatureFlagsResponse,
    FeatureFlagsUpdateRequest,
    FlagDefinitionPayload,
    FlagEvaluationResponse,
    StatsResponse,
    UserContextRequest,
)

router = APIRouter(prefix="/api", tags=["flags"])


def _build_definition(payload: FlagDefinitionPayload, key: str | None = None) -> FlagDefinition:
    try:
        return payload.to_definition(key)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc


def _flags_response(definitions: list[FlagDefinition]) -> FeatureFlagsResponse:
    ordered = sorted(definitions, key=lambda definition: definition.key)
    return FeatureFlagsResponse(flags=[definition.to_storage() for definition in ordered])


@router.get("/flags", response_model=FeatureFlagsResponse)
async def get_feature_flags(engine: FlagEngine = Depends(get_flag_engine)) -> FeatureFlagsResponse:
    return _flags_response(engine.get_all_flags())


@router.put("/flags", response_model=FeatureFlagsResponse)
async def update_feature_flags(
    payload: FeatureFlagsUpdateRequest,
    engine: FlagEngine = Depends(get_flag_engine),
) -> FeatureFlagsResponse:
    definitions = [_build_definition(item) for item in payload.flags]
    engine.update_flags(definitions)
    return _flags_response(definitions)


@router.delete("/flags", status_code=status.HTTP_204_NO_CONTENT)
async def clear_feature_flags(engine: FlagEngine = Depends(get_flag_engine)) -> Response:
    engine.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/flags/enabled", response_model=EnabledFlagsResponse)
async def get_enabled_flags(engine: FlagEngine = Depends(get_flag_engine)) -> EnabledFlagsResponse:
    return EnabledFlagsResponse(keys=sorted(engine.get_enabled_flags()))


@router.get("/flags/{key}")
async def get_feature_flag(key: str, engine: FlagEngine = Depends(get_flag_engine)) -> dict:
    definition = engine.get_flag(key)
    if definition is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="flag_not_found")
    return definition.to_storage()


@router.put("/flags/{key}")
async def set_feature_flag(
    key: str,
    payload: FlagDefinitionPayload,
    engine: FlagEngine = Depends(get_flag_engine),
) -> dict:
    definition = _build_definition(payload, key)
    engine.set_flag(definition)
    return definition.to_storage()


@router.delete("/flags/{key}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_feature_flag(key: str, engine: FlagEngine = Depends(get_flag_engine)) -> Response:
    if not engine.remove_flag(key):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="flag_not_found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/flags/{key}/evaluation", response_model=FlagEvaluationResponse)
async def evaluate_feature_flag(key: str, engine: FlagEngine = Depends(get_flag_engine)) -> FlagEvaluationResponse:
    evaluation = engine.evaluate(key)
    definition = engine.get_flag(key)
    return FlagEvaluationResponse(
        key=key,
        enabled=evaluation.enabled,
        reason=evaluation.reason.value,
        value=definition.payload if evaluation.enabled and definition is not None else None,
    )


@router.put("/context", response_model=StatsResponse)
async def set_user_context(
    payload: UserContextRequest,
    engine: FlagEngine = Depends(get_flag_engine),
) -> StatsResponse:
    engine.set_user_context(payload.subject_id, payload.groups)
    return _stats_response(engine)


@router.delete("/context", response_model=StatsResponse)
async def clear_user_context(engine: FlagEngine = Depends(get_flag_engine)) -> StatsResponse:
    engine.clear_user_context()
    return _stats_response(engine)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(engine: FlagEngine = Depends(get_flag_engine)) -> StatsResponse:
    return _stats_response(engine)


def _stats_response(engine: FlagEngine) -> StatsResponse:
    stats = engine.get_stats()
    return StatsResponse(
        total_flags=stats.total_flags,
        enabled_flags=stats.enabled_flags,
        subject_id=stats.subject_id,
        groups=stats.groups,
    )
