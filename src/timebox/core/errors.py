# src/timebox/core/errors.py

"""
Failure taxonomy of the task engine.

Every error is recoverable: callers decide whether to prompt the user, retry,
or just refresh the view. Each carries a human-readable `reason`.
"""

from __future__ import annotations


class TimeboxError(Exception):
    """Base class for typed task-engine failures."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class CapacityExceeded(TimeboxError):
    """Create/reactivate blocked by the active-task limit."""


class WindowClosed(TimeboxError):
    """Task creation attempted outside every configured time period."""


class DeadlineInPast(TimeboxError):
    pass


class DeadlineTooFar(TimeboxError):
    pass


class AlreadyExpired(TimeboxError):
    """Completion attempted after deadline + buffer (or on an expired task)."""


class NotFound(TimeboxError):
    pass


class OverlappingPeriod(TimeboxError):
    pass


class InvalidTransition(TimeboxError):
    """Operation not allowed from the task's current status."""


class LastPeriodRequired(TimeboxError):
    """At least one time period must exist at all times."""
