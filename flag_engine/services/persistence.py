"""Snapshot persistence for the flag registry."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Protocol

from loguru import logger
from pydantic import BaseModel, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from flag_engine.core.models import FlagDefinition, from_epoch_ms, to_epoch_ms
from flag_engine.exceptions import PersistenceError, SnapshotDecodeError
from flag_engine.settings import settings


class SnapshotStore(Protocol):
    """Async storage of a single serialized snapshot blob."""

    async def load(self) -> str | None: ...

    async def save(self, blob: str) -> None: ...

    async def delete(self) -> None: ...


class Snapshot(BaseModel):
    """Full registry state as written to the store."""

    flags: dict[str, FlagDefinition]
    version: str = "1.0"
    last_updated: datetime

    def dumps(self) -> str:
        payload = {
            "flags": {key: definition.to_storage() for key, definition in self.flags.items()},
            "version": self.version,
            "lastUpdated": to_epoch_ms(self.last_updated),
        }
        return json.dumps(payload, separators=(",", ":"))

    @classmethod
    def loads(cls, blob: str | bytes) -> "Snapshot":
        """Parse a stored blob, skipping individual flags that fail validation."""

        try:
            raw = json.loads(blob)
        except (TypeError, ValueError) as exc:
            raise SnapshotDecodeError(f"snapshot is not valid JSON: {exc}") from exc

        if not isinstance(raw, dict) or not isinstance(raw.get("flags"), dict):
            raise SnapshotDecodeError("snapshot must be an object with a 'flags' mapping")

        flags: dict[str, FlagDefinition] = {}
        for key, entry in raw["flags"].items():
            definition = _decode_flag(key, entry)
            if definition is not None:
                flags[key] = definition

        last_updated = raw.get("lastUpdated")
        if isinstance(last_updated, (int, float)) and not isinstance(last_updated, bool):
            updated_at = from_epoch_ms(last_updated)
        else:
            updated_at = datetime.now(timezone.utc)

        return cls(flags=flags, version=str(raw.get("version", "1.0")), last_updated=updated_at)


def _decode_flag(key: str, entry: Any) -> FlagDefinition | None:
    if not isinstance(entry, dict):
        logger.warning("Skipping stored flag {!r}: expected an object", key)
        return None
    try:
        return FlagDefinition.from_storage({**entry, "key": key})
    except ValidationError as exc:
        logger.warning("Skipping stored flag {!r}: {}", key, exc.errors(include_url=False))
        return None


class RedisSnapshotStore:
    """Keep the snapshot blob as one Redis string value."""

    def __init__(self, redis: Redis, storage_key: str | None = None) -> None:
        self._redis = redis
        self._key = storage_key or settings.storage_key

    @property
    def storage_key(self) -> str:
        return self._key

    async def load(self) -> str | None:
        try:
            raw = await self._redis.get(self._key)
        except RedisError as exc:
            raise PersistenceError("load", str(exc)) from exc
        if raw is None:
            return None
        return raw.decode() if isinstance(raw, bytes) else str(raw)

    async def save(self, blob: str) -> None:
        try:
            await self._redis.set(self._key, blob)
        except RedisError as exc:
            raise PersistenceError("save", str(exc)) from exc

    async def delete(self) -> None:
        try:
            await self._redis.delete(self._key)
        except RedisError as exc:
            raise PersistenceError("delete", str(exc)) from exc
