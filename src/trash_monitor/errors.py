"""Exception types for the trash monitor."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .reclaim import ReclaimAttempt


class TrashMonitorError(Exception):
    """Base class for trash monitor errors."""


class AggregationFailed(TrashMonitorError):
    """Raised when no storage roots could be enumerated at all."""


class ConfigLoadFailed(TrashMonitorError):
    """Raised when the settings file is unreadable or corrupt."""


class ReclaimStrategyFailed(TrashMonitorError):
    """Raised by a single reclamation strategy that could not complete."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ReclaimFailed(TrashMonitorError):
    """Raised when every reclamation strategy has been exhausted."""

    def __init__(self, reason: str, attempts: list[ReclaimAttempt] | None = None) -> None:
        """Initialize the error.

        Args:
            reason: Failure reason reported by the last strategy tried.
            attempts: Ordered attempts made during the invocation.

        """
        super().__init__(reason)
        self.reason = reason
        self.attempts = list(attempts or [])
