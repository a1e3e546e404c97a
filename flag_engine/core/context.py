"""Evaluation context describing the subject flags are evaluated for."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable


@dataclass(frozen=True)
class EvaluationContext:
    """Current subject identity and its group memberships."""

    subject_id: str | None = None
    groups: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def build(cls, subject_id: str | None = None, groups: Iterable[str] | None = None) -> "EvaluationContext":
        return cls(subject_id=subject_id or None, groups=frozenset(groups or ()))

    @classmethod
    def anonymous(cls) -> "EvaluationContext":
        return cls()
