"""Flag evaluation engine.

The engine keeps the registry and the evaluation context in memory and
answers ``is_enabled``/``get_value`` synchronously. Mutations take effect
immediately and enqueue a snapshot write which a single background task
applies in order; the persisted blob is a best-effort mirror of memory.

Example::

    store = RedisSnapshotStore(redis)
    engine = FlagEngine(store)
    await engine.initialize("user-42", ["beta"])

    if engine.is_enabled("enableNewMatchUI"):
        ...

    engine.set_flag(rollout_flag("checkout_v2", 25))
    await engine.flush()
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, TypeVar

from loguru import logger

from flag_engine.core.bucketing import bucket
from flag_engine.core.context import EvaluationContext
from flag_engine.core.models import BoolValue, FlagDefinition, NumberValue, StringValue, StructValue
from flag_engine.core.registry import FlagRegistry
from flag_engine.observability import FLAG_EVALUATIONS, PERSISTENCE_FAILURES, REGISTERED_FLAGS
from flag_engine.services.defaults import default_flags
from flag_engine.services.persistence import Snapshot, SnapshotStore
from flag_engine.settings import settings

T = TypeVar("T")

DefaultsProvider = Callable[[], Iterable[FlagDefinition]]
Clock = Callable[[], datetime]

_SAVE = "save"
_DELETE = "delete"


class EvaluationReason(str, enum.Enum):
    """Rule that decided an evaluation."""

    NOT_FOUND = "not_found"
    DISABLED = "disabled"
    EXPIRED = "expired"
    USER_TARGETED = "user_targeted"
    USER_NOT_TARGETED = "user_not_targeted"
    GROUP_MISMATCH = "group_mismatch"
    ROLLOUT = "rollout"
    VALUE = "value"
    DEFAULT = "default"


@dataclass(frozen=True)
class Evaluation:
    key: str
    enabled: bool
    reason: EvaluationReason


@dataclass(frozen=True)
class EngineStats:
    total_flags: int
    enabled_flags: int
    subject_id: str | None
    groups: list[str] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _variant_matches(definition: FlagDefinition, default: Any) -> bool:
    value = definition.value
    if isinstance(default, bool):
        return isinstance(value, BoolValue)
    if isinstance(default, str):
        return isinstance(value, StringValue)
    if isinstance(default, (int, float)):
        return isinstance(value, NumberValue)
    if isinstance(default, (dict, list)):
        return isinstance(value, StructValue)
    return True


class FlagEngine:
    """Evaluate, mutate and persist feature flags for one host process."""

    def __init__(
        self,
        store: SnapshotStore,
        *,
        defaults: DefaultsProvider | None = None,
        clock: Clock | None = None,
        snapshot_version: str | None = None,
    ) -> None:
        self._store = store
        self._defaults: DefaultsProvider = defaults if defaults is not None else default_flags
        self._clock: Clock = clock or _utcnow
        self._snapshot_version = snapshot_version or settings.snapshot_version
        self._registry = FlagRegistry()
        self._context = EvaluationContext.anonymous()

        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[str] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

    # Context -----------------------------------------------------------------

    @property
    def context(self) -> EvaluationContext:
        return self._context

    def set_user_context(self, subject_id: str | None, groups: Iterable[str] | None = None) -> None:
        """Replace the evaluation context; takes effect on the next evaluation."""

        self._context = EvaluationContext.build(subject_id, groups)
        logger.debug(
            "User context updated: subject={} groups={}",
            self._context.subject_id,
            sorted(self._context.groups),
        )

    def clear_user_context(self) -> None:
        self._context = EvaluationContext.anonymous()

    # Lifecycle ---------------------------------------------------------------

    async def initialize(
        self,
        subject_id: str | None = None,
        groups: Iterable[str] | None = None,
    ) -> None:
        """Set the context, restore the persisted snapshot and seed defaults.

        Read failures are logged and treated as an empty store, so this never
        raises for storage problems.
        """

        self._context = EvaluationContext.build(subject_id, groups)

        snapshot = await self._load_snapshot()
        if snapshot is not None:
            for definition in snapshot.flags.values():
                self._registry.insert(definition)
            logger.debug(
                "Feature flags loaded from storage: count={} version={}",
                len(snapshot.flags),
                snapshot.version,
            )

        seeded = 0
        for definition in self._defaults():
            if self._registry.insert_if_absent(definition):
                seeded += 1

        REGISTERED_FLAGS.set(len(self._registry))
        logger.info(
            "Feature flags initialized: flags={} seeded={} subject={} groups={}",
            len(self._registry),
            seeded,
            self._context.subject_id,
            len(self._context.groups),
        )

    async def _load_snapshot(self) -> Snapshot | None:
        try:
            blob = await self._store.load()
            if not blob:
                return None
            return Snapshot.loads(blob)
        except Exception as exc:
            PERSISTENCE_FAILURES.labels(operation="load").inc()
            logger.warning("Failed to load feature flags from storage: {}", exc)
            return None

    async def flush(self) -> None:
        """Wait until every snapshot write scheduled so far has completed."""

        queue = self._queue
        if queue is None or self._loop is not asyncio.get_running_loop():
            return
        await queue.join()

    async def aclose(self) -> None:
        """Flush pending writes and stop the background writer."""

        await self.flush()
        self._closed = True
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        self._queue = None
        self._loop = None

    # Evaluation --------------------------------------------------------------

    def evaluate(self, key: str) -> Evaluation:
        """Decide ``key`` against the current context and report the deciding rule."""

        evaluation = self._evaluate(key, self._context)
        FLAG_EVALUATIONS.labels(reason=evaluation.reason.value).inc()
        return evaluation

    def _evaluate(self, key: str, context: EvaluationContext) -> Evaluation:
        definition = self._registry.get(key)
        if definition is None:
            logger.warning("Feature flag not found: {}", key)
            return Evaluation(key, False, EvaluationReason.NOT_FOUND)

        if not definition.enabled:
            return Evaluation(key, False, EvaluationReason.DISABLED)

        if definition.is_expired(self._clock()):
            logger.debug("Feature flag expired: {}", key)
            return Evaluation(key, False, EvaluationReason.EXPIRED)

        if definition.user_ids is not None and context.subject_id is not None:
            if context.subject_id in definition.user_ids:
                return Evaluation(key, True, EvaluationReason.USER_TARGETED)
            return Evaluation(key, False, EvaluationReason.USER_NOT_TARGETED)

        # Group membership only gates the remaining rules, it never grants.
        if definition.user_groups is not None and context.groups:
            if definition.user_groups.isdisjoint(context.groups):
                return Evaluation(key, False, EvaluationReason.GROUP_MISMATCH)

        if definition.rollout_percentage is not None and context.subject_id is not None:
            enabled = bucket(context.subject_id) < definition.rollout_percentage
            return Evaluation(key, enabled, EvaluationReason.ROLLOUT)

        if isinstance(definition.value, BoolValue):
            return Evaluation(key, definition.value.value, EvaluationReason.VALUE)
        return Evaluation(key, definition.enabled, EvaluationReason.DEFAULT)

    def is_enabled(self, key: str) -> bool:
        return self.evaluate(key).enabled

    def get_value(self, key: str, default: T) -> T:
        """
        Return the flag payload, or ``default`` when disabled or empty.

        Only falsy scalars count as empty, struct payloads are returned even
        when they hold no items.
        """

        if not self.is_enabled(key):
            return default
        definition = self._registry.get(key)
        if definition is None:
            return default
        if isinstance(definition.value, StructValue):
            return definition.payload
        return definition.payload or default

    def get_typed_value(self, key: str, default: T) -> T:
        """Like ``get_value`` but only returns payloads of the same kind as ``default``."""

        if not self.is_enabled(key):
            return default
        definition = self._registry.get(key)
        if definition is None:
            return default
        if not _variant_matches(definition, default):
            logger.debug(
                "Feature flag {} holds a {} value, returning default",
                key,
                definition.value.kind,
            )
            return default
        return definition.payload

    # Queries -----------------------------------------------------------------

    def get_flag(self, key: str) -> FlagDefinition | None:
        return self._registry.get(key)

    def get_all_flags(self) -> list[FlagDefinition]:
        return self._registry.values()

    def get_enabled_flags(self) -> list[str]:
        return [key for key in self._registry.keys() if self.is_enabled(key)]

    def get_stats(self) -> EngineStats:
        return EngineStats(
            total_flags=len(self._registry),
            enabled_flags=len(self.get_enabled_flags()),
            subject_id=self._context.subject_id,
            groups=sorted(self._context.groups),
        )

    # Mutation ----------------------------------------------------------------

    def set_flag(self, definition: FlagDefinition) -> None:
        self._registry.insert(definition)
        REGISTERED_FLAGS.set(len(self._registry))
        logger.debug("Feature flag set: {} -> {}", definition.key, definition.to_storage())
        self._schedule(_SAVE)

    def update_flags(self, definitions: Iterable[FlagDefinition]) -> None:
        definitions = list(definitions)
        for definition in definitions:
            self._registry.insert(definition)
        REGISTERED_FLAGS.set(len(self._registry))
        logger.info("Updated {} feature flags", len(definitions))
        self._schedule(_SAVE)

    def remove_flag(self, key: str) -> bool:
        removed = self._registry.remove(key)
        REGISTERED_FLAGS.set(len(self._registry))
        logger.debug("Feature flag removed: {} (present={})", key, removed)
        self._schedule(_SAVE)
        return removed

    def clear(self) -> None:
        """Drop every flag and erase the persisted snapshot."""

        self._registry.clear()
        REGISTERED_FLAGS.set(0)
        logger.info("Feature flags cleared")
        self._schedule(_DELETE)

    # Background persistence --------------------------------------------------

    def _schedule(self, operation: str) -> None:
        if self._closed:
            logger.warning("Flag engine is closed, snapshot {} skipped", operation)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, snapshot {} skipped", operation)
            return

        if self._queue is None or self._loop is not loop or self._worker is None or self._worker.done():
            self._loop = loop
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._drain(self._queue), name="flag-engine-writer")
        self._queue.put_nowait(operation)

    async def _drain(self, queue: asyncio.Queue[str]) -> None:
        while True:
            operation = await queue.get()
            try:
                await self._write(operation)
            finally:
                queue.task_done()

    async def _write(self, operation: str) -> None:
        try:
            if operation == _DELETE:
                await self._store.delete()
            else:
                snapshot = Snapshot(
                    flags=self._registry.snapshot(),
                    version=self._snapshot_version,
                    last_updated=self._clock(),
                )
                await self._store.save(snapshot.dumps())
        except Exception as exc:
            PERSISTENCE_FAILURES.labels(operation=operation).inc()
            logger.opt(exception=exc).error("Failed to {} feature flag snapshot", operation)
