# src/timebox/service/bootstrap.py

"""
Service bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the task store, the notifier and the lifecycle into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import NotificationPayload
from ..core.state import AppState
from ..notify.local_notifier import LocalNotifier
from ..tasks.lifecycle import TaskLifecycle
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(
        settings.tasks_db_path,
        default_max_active_tasks=settings.default_max_active_tasks,
        default_buffer_minutes=settings.default_buffer_minutes,
    )
    notifier = LocalNotifier()
    lifecycle = TaskLifecycle(
        store,
        notifier,
        reminder_minutes_before=settings.reminder_minutes_before,
    )
    return AppState(settings=settings, task_store=store, notifier=notifier, lifecycle=lifecycle)


async def log_notification(payload: NotificationPayload) -> None:
    """Default delivery for the headless service: the notification goes to the log."""
    logger.info("[NOTIFY] %s: %s (task_id=%s)", payload.title, payload.body, payload.task_id)
