"""
Shared exceptions mapped to HTTP responses in ``contactmanager.main``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(eq=False)
class AppError(Exception):
    message: str = "Application error"
    details: Optional[dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message


class NotFoundError(AppError):
    pass


class ValidationError(AppError):
    pass


class ConflictError(AppError):
    pass


class StoreError(AppError):
    """A data-access operation failed; the message is safe to show to users."""

    def __init__(
        self,
        message: str = "The data store is unavailable",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, details=details)
