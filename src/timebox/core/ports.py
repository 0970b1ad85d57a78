# src/timebox/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the task engine.

The engine depends on Protocols instead of concrete implementations.
This keeps the record store and the notification backend swappable and makes
testing easier.
"""

from dataclasses import dataclass
from typing import Protocol

from ..tasks.task_models import Task, TaskSettings, TaskStatus, TimePeriod


@dataclass(frozen=True, slots=True)
class NotificationPayload:
    task_id: int
    kind: str  # "reminder" | "deadline"
    title: str
    body: str


class Notifier(Protocol):
    """
    Fire-and-forget local notification backend.

    schedule_at() returns an opaque token that cancel() accepts later.
    Both may raise; the engine logs and swallows such failures.
    """

    def schedule_at(self, when_ts: float, payload: NotificationPayload) -> str: ...
    def cancel(self, token: str) -> None: ...


class TaskRepo(Protocol):
    # Tasks
    def get_task(self, task_id: int) -> Task | None: ...
    def list_by_status(self, status: TaskStatus) -> list[Task]: ...
    def count_by_status(self, status: TaskStatus) -> int: ...
    def insert_task(
            self,
            *,
            title: str,
            description: str | None,
            created_at: float,
            deadline: float,
            reactivation_count: int = 0,
            predecessor_id: int | None = None,
    ) -> Task: ...
    def update_task_fields(
            self,
            task_id: int,
            *,
            title: str = ...,
            description: str | None = ...,
            deadline: float = ...,
            reminder_token: str | None = ...,
            deadline_token: str | None = ...,
    ) -> None: ...
    def transition_status(
            self,
            task_id: int,
            *,
            expected: TaskStatus,
            new_status: TaskStatus,
            completed_at: float | None = None,
    ) -> bool: ...
    def delete_task(self, task_id: int) -> None: ...
    def delete_all_tasks(self) -> None: ...

    # Range queries (stats)
    def count_by_status_and_range(self, status: TaskStatus, start_ts: float, end_ts: float) -> int: ...
    def sum_reactivations_by_range(self, start_ts: float, end_ts: float) -> int: ...
    def list_most_reactivated(self, limit: int = 10) -> list[Task]: ...

    # Singleton settings
    def get_settings(self) -> TaskSettings: ...
    def update_settings(
            self,
            *,
            max_active_tasks: int | None = None,
            buffer_minutes: int | None = None,
    ) -> TaskSettings: ...

    # Time periods
    def list_time_periods(self) -> list[TimePeriod]: ...
    def get_time_period(self, period_id: int) -> TimePeriod | None: ...
    def add_time_period(
            self,
            *,
            start_hour: int,
            start_minute: int,
            end_hour: int,
            end_minute: int,
            max_duration_hours: int,
    ) -> TimePeriod: ...
    def update_time_period(
            self,
            period_id: int,
            *,
            start_hour: int,
            start_minute: int,
            end_hour: int,
            end_minute: int,
            max_duration_hours: int,
    ) -> None: ...
    def delete_time_period(self, period_id: int) -> None: ...
