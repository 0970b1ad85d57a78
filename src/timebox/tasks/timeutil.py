# src/timebox/tasks/timeutil.py

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Literal

from .task_models import Task, TaskStatus

StatsPeriod = Literal["day", "week", "month", "custom"]


class TaskPhase(StrEnum):
    """Display classification; only the persisted statuses are ever stored."""

    ACTIVE = "active"
    BUFFER = "buffer"
    OVERDUE = "overdue"  # still active in the store, waiting for the sweeper
    COMPLETED = "completed"
    EXPIRED_UNFINISHED = "expired_unfinished"


@dataclass(frozen=True, slots=True)
class RemainingTime:
    text: str
    is_urgent: bool
    is_buffer: bool


def buffer_end(deadline: float, buffer_minutes: int) -> float:
    return deadline + buffer_minutes * 60.0


def is_in_buffer(deadline: float, buffer_minutes: int, now_ts: float | None = None) -> bool:
    if now_ts is None:
        now_ts = time.time()
    return deadline < now_ts <= buffer_end(deadline, buffer_minutes)


def has_expired(deadline: float, buffer_minutes: int, now_ts: float | None = None) -> bool:
    if now_ts is None:
        now_ts = time.time()
    return now_ts > buffer_end(deadline, buffer_minutes)


def task_phase(task: Task, buffer_minutes: int, now_ts: float | None = None) -> TaskPhase:
    if task.status == TaskStatus.COMPLETED:
        return TaskPhase.COMPLETED
    if task.status == TaskStatus.EXPIRED_UNFINISHED:
        return TaskPhase.EXPIRED_UNFINISHED
    if now_ts is None:
        now_ts = time.time()
    if has_expired(task.deadline, buffer_minutes, now_ts):
        return TaskPhase.OVERDUE
    if is_in_buffer(task.deadline, buffer_minutes, now_ts):
        return TaskPhase.BUFFER
    return TaskPhase.ACTIVE


def remaining_time(deadline: float, buffer_minutes: int, now_ts: float | None = None) -> RemainingTime:
    if now_ts is None:
        now_ts = time.time()
    diff = deadline - now_ts

    if diff < 0:
        left = buffer_end(deadline, buffer_minutes) - now_ts
        if left > 0:
            return RemainingTime(text=f"Buffer: {int(left // 60)}m left", is_urgent=True, is_buffer=True)
        return RemainingTime(text="Expired", is_urgent=True, is_buffer=False)

    hours = int(diff // 3600)
    minutes = int((diff % 3600) // 60)
    is_urgent = diff < buffer_minutes * 60.0

    if hours > 0:
        return RemainingTime(text=f"{hours}h {minutes}m remaining", is_urgent=is_urgent, is_buffer=False)
    return RemainingTime(text=f"{minutes}m remaining", is_urgent=is_urgent, is_buffer=False)


def format_relative_time(ts: float, now_ts: float | None = None) -> str:
    """Archive-style "how long ago" text."""
    if now_ts is None:
        now_ts = time.time()
    diff = now_ts - ts

    minutes = int(diff // 60)
    hours = int(diff // 3600)
    days = int(diff // 86400)
    weeks = days // 7

    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if weeks == 1:
        return "Last week"
    if weeks < 4:
        return f"{weeks} weeks ago"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d")


def date_range(
    period: StatsPeriod,
    now_ts: float | None = None,
    custom_start: float | None = None,
    custom_end: float | None = None,
) -> tuple[float, float]:
    """
    (start_ts, end_ts) for a stats period, in local time.

    day/week/month start at local midnight (today, 7 days ago, 30 days ago)
    and end now. custom uses the given bounds when both are provided.
    """
    if now_ts is None:
        now_ts = time.time()

    now = datetime.fromtimestamp(now_ts)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if period == "day":
        return midnight.timestamp(), now_ts
    if period == "week":
        return (midnight - timedelta(days=7)).timestamp(), now_ts
    if period == "month":
        return (midnight - timedelta(days=30)).timestamp(), now_ts
    if period == "custom":
        if custom_start is not None and custom_end is not None:
            return float(custom_start), float(custom_end)
        return now_ts, now_ts

    raise ValueError(f"Unknown stats period: {period!r}")
