# src/timebox/tasks/periods.py

"""
Time periods: daily intervals that gate task creation.

All interval math works on minutes since midnight. A period whose end is not
after its start wraps past midnight, so its end is pushed by one day (1440).
Intervals are half-open: 05:00-12:00 and 12:00-20:00 touch but do not overlap.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.errors import LastPeriodRequired, NotFound, OverlappingPeriod
from ..core.ports import TaskRepo
from .task_models import TimePeriod

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
SUGGESTED_SLOT_MINUTES = 120


def to_minutes(hour: int, minute: int) -> int:
    return int(hour) * 60 + int(minute)


def format_time(hour: int, minute: int) -> str:
    """12-hour clock text, e.g. 9:05pm / 12:00am."""
    suffix = "pm" if hour >= 12 else "am"
    display_hour = 12 if hour % 12 == 0 else hour % 12
    return f"{display_hour}:{minute:02d}{suffix}"


def bounds(start_hour: int, start_minute: int, end_hour: int, end_minute: int) -> tuple[int, int]:
    start = to_minutes(start_hour, start_minute)
    end = to_minutes(end_hour, end_minute)
    if end <= start:
        end += MINUTES_PER_DAY
    return start, end


def period_bounds(period: TimePeriod) -> tuple[int, int]:
    return bounds(period.start_hour, period.start_minute, period.end_hour, period.end_minute)


def describe_period(period: TimePeriod) -> str:
    return (
        f"{format_time(period.start_hour, period.start_minute)} - "
        f"{format_time(period.end_hour, period.end_minute)}"
    )


def intervals_overlap(a: tuple[int, int], b: tuple[int, int]) -> bool:
    s1, e1 = a
    s2, e2 = b
    # b is also compared one day earlier/later: 22:00-02:00 overlaps 01:00-03:00.
    return any(s1 < e2 + shift and s2 + shift < e1 for shift in (-MINUTES_PER_DAY, 0, MINUTES_PER_DAY))


def find_overlap(
    existing: Iterable[TimePeriod],
    *,
    start_hour: int,
    start_minute: int,
    end_hour: int,
    end_minute: int,
    exclude_id: int | None = None,
) -> TimePeriod | None:
    """Return the first existing period overlapping the candidate, if any."""
    candidate = bounds(start_hour, start_minute, end_hour, end_minute)
    for period in existing:
        if exclude_id is not None and period.id == exclude_id:
            continue
        if intervals_overlap(candidate, period_bounds(period)):
            return period
    return None


def check_overlap(
    existing: Iterable[TimePeriod],
    *,
    start_hour: int,
    start_minute: int,
    end_hour: int,
    end_minute: int,
    exclude_id: int | None = None,
) -> None:
    conflict = find_overlap(
        existing,
        start_hour=start_hour,
        start_minute=start_minute,
        end_hour=end_hour,
        end_minute=end_minute,
        exclude_id=exclude_id,
    )
    if conflict is not None:
        raise OverlappingPeriod(f"Overlaps with existing period {describe_period(conflict)}")


def validate_period_fields(
    start_hour: int,
    start_minute: int,
    end_hour: int,
    end_minute: int,
    max_duration_hours: int,
) -> None:
    for name, value, hi in (
        ("start_hour", start_hour, 23),
        ("end_hour", end_hour, 23),
        ("start_minute", start_minute, 59),
        ("end_minute", end_minute, 59),
    ):
        if not 0 <= int(value) <= hi:
            raise ValueError(f"{name} must be between 0 and {hi}")
    if not 1 <= int(max_duration_hours) <= 24:
        raise ValueError("max_duration_hours must be between 1 and 24")


def suggest_next_slot(periods: Iterable[TimePeriod]) -> tuple[tuple[int, int], tuple[int, int]]:
    """
    Propose ((start_hour, start_minute), (end_hour, end_minute)) for a new period.

    - no periods: 09:00-11:00
    - otherwise the first gap of at least 2h between consecutive periods
    - otherwise the 2h right after the last period
    """

    def from_minutes(total: int) -> tuple[int, int]:
        return (total // 60) % 24, total % 60

    ordered = sorted(periods, key=lambda p: to_minutes(p.start_hour, p.start_minute))
    if not ordered:
        return from_minutes(9 * 60), from_minutes(11 * 60)

    for current, nxt in zip(ordered, ordered[1:]):
        current_end = to_minutes(current.end_hour, current.end_minute)
        next_start = to_minutes(nxt.start_hour, nxt.start_minute)
        if next_start - current_end >= SUGGESTED_SLOT_MINUTES:
            return from_minutes(current_end), from_minutes(current_end + SUGGESTED_SLOT_MINUTES)

    last = ordered[-1]
    last_end = to_minutes(last.end_hour, last.end_minute)
    return from_minutes(last_end), from_minutes(last_end + SUGGESTED_SLOT_MINUTES)


# ---- period management (store-backed) ----


def list_periods(store: TaskRepo) -> list[TimePeriod]:
    return store.list_time_periods()


def add_period(
    store: TaskRepo,
    *,
    start_hour: int,
    start_minute: int,
    end_hour: int,
    end_minute: int,
    max_duration_hours: int,
) -> TimePeriod:
    validate_period_fields(start_hour, start_minute, end_hour, end_minute, max_duration_hours)
    check_overlap(
        store.list_time_periods(),
        start_hour=start_hour,
        start_minute=start_minute,
        end_hour=end_hour,
        end_minute=end_minute,
    )
    period = store.add_time_period(
        start_hour=start_hour,
        start_minute=start_minute,
        end_hour=end_hour,
        end_minute=end_minute,
        max_duration_hours=max_duration_hours,
    )
    logger.info("Time period added id=%s %s max=%sh", period.id, describe_period(period), max_duration_hours)
    return period


def update_period(
    store: TaskRepo,
    period_id: int,
    *,
    start_hour: int,
    start_minute: int,
    end_hour: int,
    end_minute: int,
    max_duration_hours: int,
) -> TimePeriod:
    if store.get_time_period(period_id) is None:
        raise NotFound(f"Time period {period_id} not found")

    validate_period_fields(start_hour, start_minute, end_hour, end_minute, max_duration_hours)
    check_overlap(
        store.list_time_periods(),
        start_hour=start_hour,
        start_minute=start_minute,
        end_hour=end_hour,
        end_minute=end_minute,
        exclude_id=period_id,
    )
    store.update_time_period(
        period_id,
        start_hour=start_hour,
        start_minute=start_minute,
        end_hour=end_hour,
        end_minute=end_minute,
        max_duration_hours=max_duration_hours,
    )
    updated = store.get_time_period(period_id)
    if updated is None:
        raise NotFound(f"Time period {period_id} not found")
    logger.info("Time period updated id=%s %s max=%sh", period_id, describe_period(updated), max_duration_hours)
    return updated


def delete_period(store: TaskRepo, period_id: int) -> None:
    periods = store.list_time_periods()
    if not any(p.id == period_id for p in periods):
        raise NotFound(f"Time period {period_id} not found")
    if len(periods) <= 1:
        raise LastPeriodRequired("You must have at least one time period")
    store.delete_time_period(period_id)
    logger.info("Time period deleted id=%s", period_id)
