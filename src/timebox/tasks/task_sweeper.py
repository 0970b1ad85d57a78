# src/timebox/tasks/task_sweeper.py

from __future__ import annotations

"""
Expiration sweeper.

A small polling loop that:
- loads all active tasks,
- expires every task whose deadline + buffer has passed,
- keeps going when a single task fails.

Safe to run repeatedly: a second sweep with no time passing finds nothing to do,
because expire_task() re-checks the stored status before writing.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from .task_models import TaskStatus
from .timeutil import has_expired

if TYPE_CHECKING:
    from .lifecycle import TaskLifecycle

logger = logging.getLogger(__name__)


def sweep_expired(lifecycle: TaskLifecycle, now_ts: float | None = None) -> int:
    """Expire every overdue active task. Never raises; returns how many were expired."""
    if now_ts is None:
        now_ts = time.time()

    try:
        tasks = lifecycle.store.list_by_status(TaskStatus.ACTIVE)
        buffer_minutes = lifecycle.settings().buffer_minutes
    except Exception:
        logger.exception("sweep: loading active tasks failed")
        return 0

    expired = 0
    for task in tasks:
        if not has_expired(task.deadline, buffer_minutes, now_ts):
            continue
        try:
            if lifecycle.expire_task(task.id, now_ts, refresh=False):
                expired += 1
        except Exception:
            logger.exception("sweep: expire_task failed task_id=%s", task.id)

    if expired:
        logger.info("Auto-expired %s task(s)", expired)
        try:
            lifecycle.refresh()
        except Exception:
            logger.exception("sweep: refreshing views failed")
    else:
        logger.debug("sweep: nothing to expire (active=%s)", len(tasks))
    return expired


async def run_expiration_sweeper(
        lifecycle: TaskLifecycle,
        *,
        interval_seconds: float = 60.0,
) -> None:
    """
    Sweep once immediately (catches tasks that expired while the process was
    not running), then every interval_seconds.

    To stop the sweeper, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    initial = sweep_expired(lifecycle)
    if initial:
        logger.info("Initial check: expired %s task(s)", initial)

    while True:
        await asyncio.sleep(sleep_s)
        sweep_expired(lifecycle)
