"""Centralized Prometheus metrics definitions."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

FLAG_EVALUATIONS = Counter(
    "flag_engine_evaluations_total",
    "Number of flag evaluations by deciding rule.",
    labelnames=("reason",),
)

PERSISTENCE_FAILURES = Counter(
    "flag_engine_persistence_failures_total",
    "Number of snapshot store operations that failed.",
    labelnames=("operation",),
)

REGISTERED_FLAGS = Gauge(
    "flag_engine_registered_flags",
    "Number of flag definitions currently held in memory.",
)
