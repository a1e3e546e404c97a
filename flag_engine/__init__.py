"""Feature flag evaluation engine with stable rollout bucketing."""

from flag_engine.core import (
    EvaluationContext,
    FlagDefinition,
    FlagRegistry,
    bucket,
    group_flag,
    rollout_flag,
    time_limited_flag,
)
from flag_engine.services import (
    EngineStats,
    Evaluation,
    EvaluationReason,
    FlagEngine,
    RedisSnapshotStore,
    Snapshot,
    SnapshotStore,
    default_flags,
)

__all__ = [
    "EngineStats",
    "Evaluation",
    "EvaluationContext",
    "EvaluationReason",
    "FlagDefinition",
    "FlagEngine",
    "FlagRegistry",
    "RedisSnapshotStore",
    "Snapshot",
    "SnapshotStore",
    "bucket",
    "default_flags",
    "group_flag",
    "rollout_flag",
    "time_limited_flag",
]
