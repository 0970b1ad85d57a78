# src/timebox/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Persisted task status.

    Notes:
    - "buffer" is not a status: it is derived from (now, deadline, buffer_minutes),
      see timeutil.task_phase().
    - completed is terminal; expired_unfinished is terminal but can be reactivated
      (which creates a new task, the expired row itself never changes again).
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED_UNFINISHED = "expired_unfinished"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            raise ValueError("task row has no status")
        return cls(raw)


@dataclass(slots=True)
class Task:
    id: int
    title: str
    description: str | None
    created_at: float
    deadline: float
    status: TaskStatus

    completed_at: float | None = None
    reactivation_count: int = 0
    predecessor_id: int | None = None

    # Tokens returned by the notifier, kept for cancellation.
    reminder_token: str | None = None
    deadline_token: str | None = None

    @property
    def notification_tokens(self) -> list[str]:
        return [t for t in (self.reminder_token, self.deadline_token) if t]


@dataclass(frozen=True, slots=True)
class TaskSettings:
    max_active_tasks: int = 2
    buffer_minutes: int = 30


@dataclass(frozen=True, slots=True)
class TimePeriod:
    """A daily interval; end <= start means it wraps past midnight."""

    id: int
    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int
    max_duration_hours: int
    created_at: float = 0.0


@dataclass(frozen=True, slots=True)
class TimeWindow:
    can_create: bool
    max_hours: int
    reason: str | None = None
    period: TimePeriod | None = None


@dataclass(frozen=True, slots=True)
class TaskStats:
    finished: int
    unfinished: int
    total_attempts: int

    @property
    def completion_rate(self) -> float:
        total = self.finished + self.unfinished
        if total == 0:
            return 0.0
        return self.finished / total

    @property
    def completion_percent(self) -> int:
        return round(self.completion_rate * 100)
