"""Error types raised by the flag engine and its storage adapters."""

from __future__ import annotations


class FlagEngineError(Exception):
    """Base class for flag engine failures."""


class SnapshotDecodeError(FlagEngineError):
    """The persisted snapshot blob could not be parsed."""


class PersistenceError(FlagEngineError):
    """The snapshot store failed to read, write or delete the blob."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(message)
        self.operation = operation

    def __str__(self) -> str:
        return f"{self.operation}: {super().__str__()}"
