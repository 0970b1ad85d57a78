# src/timebox/tasks/stats.py

from __future__ import annotations

import time

from ..core.ports import TaskRepo
from .task_models import Task, TaskStats, TaskStatus
from .timeutil import StatsPeriod, date_range


def get_stats(store: TaskRepo, start_ts: float, end_ts: float) -> TaskStats:
    """
    Counts over tasks created within [start_ts, end_ts].

    total_attempts sums reactivation_count as stored. Since that count already
    covers the whole chain, several attempts of one chain in the same range are
    counted more than once.
    """
    return TaskStats(
        finished=store.count_by_status_and_range(TaskStatus.COMPLETED, start_ts, end_ts),
        unfinished=store.count_by_status_and_range(TaskStatus.EXPIRED_UNFINISHED, start_ts, end_ts),
        total_attempts=store.sum_reactivations_by_range(start_ts, end_ts),
    )


def stats_for_period(
    store: TaskRepo,
    period: StatsPeriod,
    now_ts: float | None = None,
    *,
    custom_start: float | None = None,
    custom_end: float | None = None,
) -> TaskStats:
    if now_ts is None:
        now_ts = time.time()
    start_ts, end_ts = date_range(period, now_ts, custom_start, custom_end)
    return get_stats(store, start_ts, end_ts)


def most_reactivated(store: TaskRepo, limit: int = 10) -> list[Task]:
    return store.list_most_reactivated(limit=limit)
