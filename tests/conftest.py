# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from timebox.tasks.lifecycle import TaskLifecycle
from timebox.tasks.task_store import TaskStore

from .fakes import FakeNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and the service.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="timebox-test",
        log_level="DEBUG",
        log_to_file=False,
        data_dir=tmp_path / "data",
        tasks_db_path=tmp_path / "data" / "tasks.sqlite3",
        sweep_interval_seconds=0.01,
        notify_interval_seconds=0.01,
        reminder_minutes_before=60,
        default_max_active_tasks=2,
        default_buffer_minutes=30,
    )


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    """
    Real SQLite store, seeded with the defaults:
    one period 05:00-21:00 (max 6h), max 2 active tasks, 30 min buffer.
    """
    return TaskStore(tmp_path / "tasks.sqlite3")


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def lifecycle(store: TaskStore, notifier: FakeNotifier) -> TaskLifecycle:
    return TaskLifecycle(store, notifier, reminder_minutes_before=60)
