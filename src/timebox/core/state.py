# src/timebox/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..notify.local_notifier import LocalNotifier
from ..tasks.lifecycle import TaskLifecycle
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Env settings (config.Settings or a test namespace).
    settings: Any

    task_store: TaskStore
    notifier: LocalNotifier
    lifecycle: TaskLifecycle
