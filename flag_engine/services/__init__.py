"""Engine, defaults and snapshot persistence."""

from flag_engine.services.defaults import default_flags
from flag_engine.services.engine import EngineStats, Evaluation, EvaluationReason, FlagEngine
from flag_engine.services.persistence import RedisSnapshotStore, Snapshot, SnapshotStore

__all__ = [
    "EngineStats",
    "Evaluation",
    "EvaluationReason",
    "FlagEngine",
    "RedisSnapshotStore",
    "Snapshot",
    "SnapshotStore",
    "default_flags",
]
