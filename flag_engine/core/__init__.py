"""Pure evaluation building blocks: bucketing, definitions, context, registry."""

from flag_engine.core.bucketing import ROLLOUT_BUCKETS, bucket, hash_subject
from flag_engine.core.context import EvaluationContext
from flag_engine.core.models import (
    BoolValue,
    FlagDefinition,
    FlagValue,
    NumberValue,
    StringValue,
    StructValue,
    coerce_value,
    group_flag,
    rollout_flag,
    time_limited_flag,
)
from flag_engine.core.registry import FlagRegistry

__all__ = [
    "ROLLOUT_BUCKETS",
    "BoolValue",
    "EvaluationContext",
    "FlagDefinition",
    "FlagRegistry",
    "FlagValue",
    "NumberValue",
    "StringValue",
    "StructValue",
    "bucket",
    "coerce_value",
    "group_flag",
    "hash_subject",
    "rollout_flag",
    "time_limited_flag",
]
