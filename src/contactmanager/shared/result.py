"""
Result envelope returned by every repository operation.

Callers branch on ``success`` instead of catching data-access faults.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ResultErrorKind(str, Enum):
    """Failure category carried by a failed result."""

    INVALID_ARGUMENT = "invalid_argument"
    CONFLICT = "conflict"
    STORE = "store"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Tagged success/failure outcome.

    Attributes:
        success: Whether the operation succeeded.
        data: Operation payload on success (may legitimately be None).
        error: User-safe message when ``success`` is False.
        error_kind: Failure category when ``success`` is False.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_kind: ResultErrorKind | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> Result[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls,
        error: str,
        kind: ResultErrorKind = ResultErrorKind.STORE,
    ) -> Result[T]:
        return cls(success=False, error=error, error_kind=kind)

    @property
    def is_conflict(self) -> bool:
        return self.error_kind is ResultErrorKind.CONFLICT
