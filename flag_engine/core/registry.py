"""In-memory flag registry."""

from __future__ import annotations

import threading
from typing import Iterator

from flag_engine.core.models import FlagDefinition


class FlagRegistry:
    """Map of flag key to definition with serialized writes.

    Writers take a lock so concurrent upserts never lose an update. Point
    reads go straight to the dict; bulk reads copy it under the lock.
    """

    def __init__(self) -> None:
        self._flags: dict[str, FlagDefinition] = {}
        self._lock = threading.Lock()

    def insert(self, definition: FlagDefinition) -> None:
        with self._lock:
            self._flags[definition.key] = definition

    def insert_if_absent(self, definition: FlagDefinition) -> bool:
        """Insert ``definition`` unless its key is already registered."""

        with self._lock:
            if definition.key in self._flags:
                return False
            self._flags[definition.key] = definition
            return True

    def get(self, key: str) -> FlagDefinition | None:
        return self._flags.get(key)

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._flags.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._flags.clear()

    def snapshot(self) -> dict[str, FlagDefinition]:
        with self._lock:
            return dict(self._flags)

    def values(self) -> list[FlagDefinition]:
        return list(self.snapshot().values())

    def keys(self) -> list[str]:
        return list(self.snapshot())

    def __contains__(self, key: object) -> bool:
        return key in self._flags

    def __len__(self) -> int:
        return len(self._flags)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())
