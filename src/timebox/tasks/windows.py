# src/timebox/tasks/windows.py

"""
Creation window resolution and deadline math.

Times are UNIX timestamps; the time of day is read from the local wall clock.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from datetime import datetime

from ..core.errors import DeadlineInPast, DeadlineTooFar, WindowClosed
from .periods import MINUTES_PER_DAY, period_bounds
from .task_models import TimePeriod, TimeWindow

# Conventional daytime window used only while no period is configured.
FALLBACK_PERIOD = TimePeriod(
    id=0,
    start_hour=5,
    start_minute=0,
    end_hour=21,
    end_minute=0,
    max_duration_hours=6,
)

CLOSED_REASON = "Outside allowed time window"


def local_minute_of_day(ts: float) -> int:
    dt = datetime.fromtimestamp(ts)
    return dt.hour * 60 + dt.minute


def period_contains(period: TimePeriod, minute_of_day: int) -> bool:
    start, end = period_bounds(period)
    # A wrapped period (end > 1440) also covers the early hours of the next day.
    return start <= minute_of_day < end or start <= minute_of_day + MINUTES_PER_DAY < end


def resolve_window(
    periods: Sequence[TimePeriod],
    now_ts: float | None = None,
    *,
    fallback: TimePeriod = FALLBACK_PERIOD,
) -> TimeWindow:
    if now_ts is None:
        now_ts = time.time()

    candidates = periods or (fallback,)
    minute = local_minute_of_day(now_ts)

    for period in candidates:
        if period_contains(period, minute):
            return TimeWindow(can_create=True, max_hours=int(period.max_duration_hours), period=period)

    return TimeWindow(can_create=False, max_hours=0, reason=CLOSED_REASON)


def max_deadline(periods: Sequence[TimePeriod], now_ts: float | None = None) -> float:
    if now_ts is None:
        now_ts = time.time()
    window = resolve_window(periods, now_ts)
    if not window.can_create:
        raise WindowClosed(window.reason or CLOSED_REASON)
    return now_ts + window.max_hours * 3600.0


def min_deadline(now_ts: float | None = None) -> float:
    """Lower bound (exclusive): deadlines must be strictly in the future."""
    return time.time() if now_ts is None else now_ts


def calculate_deadline(periods: Sequence[TimePeriod], now_ts: float | None = None) -> float:
    """Full-window deadline for a task created now."""
    return max_deadline(periods, now_ts)


def validate_custom_deadline(
    periods: Sequence[TimePeriod],
    candidate_ts: float,
    now_ts: float | None = None,
) -> None:
    """Accept iff now < candidate <= now + window.max_hours."""
    if now_ts is None:
        now_ts = time.time()

    if candidate_ts <= min_deadline(now_ts):
        raise DeadlineInPast("Deadline must be in the future")

    window = resolve_window(periods, now_ts)
    if not window.can_create:
        raise WindowClosed(window.reason or CLOSED_REASON)

    if candidate_ts > now_ts + window.max_hours * 3600.0:
        raise DeadlineTooFar(f"Deadline cannot exceed {window.max_hours} hours from now")
