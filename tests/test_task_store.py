# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from timebox.tasks.task_models import TaskSettings, TaskStatus
from timebox.tasks.task_store import TaskStore

from .fakes import feb10


def test_defaults_are_seeded_once(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db, default_max_active_tasks=3, default_buffer_minutes=15)
    assert store.get_settings() == TaskSettings(max_active_tasks=3, buffer_minutes=15)

    (period,) = store.list_time_periods()
    assert (period.start_hour, period.end_hour, period.max_duration_hours) == (5, 21, 6)

    # Re-opening must not reseed or reset anything.
    store.update_settings(buffer_minutes=45)
    reopened = TaskStore(db)
    assert reopened.get_settings() == TaskSettings(max_active_tasks=3, buffer_minutes=45)
    assert len(reopened.list_time_periods()) == 1


def test_task_insert_update_delete(store: TaskStore) -> None:
    task = store.insert_task(
        title=" Read ",
        description="   ",
        created_at=feb10(8),
        deadline=feb10(10),
    )
    assert task.id > 0
    assert task.title == "Read"
    assert task.description is None
    assert task.status == TaskStatus.ACTIVE

    store.update_task_fields(task.id, title="Read a book", description="chapter 3", reminder_token="r1")
    got = store.get_task(task.id)
    assert got is not None
    assert (got.title, got.description, got.reminder_token, got.deadline) == (
        "Read a book",
        "chapter 3",
        "r1",
        feb10(10),
    )

    store.update_task_fields(task.id, description=None)
    assert store.get_task(task.id).description is None

    store.delete_task(task.id)
    assert store.get_task(task.id) is None


def test_insert_validates_fields(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        store.insert_task(title="  ", description=None, created_at=feb10(8), deadline=feb10(9))
    with pytest.raises(ValueError):
        store.insert_task(title="x", description=None, created_at=feb10(8), deadline=feb10(8))
    assert store.count_tasks() == 0


def test_transition_is_guarded_by_expected_status(store: TaskStore) -> None:
    task = store.insert_task(title="t", description=None, created_at=feb10(8), deadline=feb10(9))

    assert store.transition_status(
        task.id, expected=TaskStatus.ACTIVE, new_status=TaskStatus.COMPLETED, completed_at=feb10(8, 30)
    )
    assert not store.transition_status(
        task.id, expected=TaskStatus.ACTIVE, new_status=TaskStatus.EXPIRED_UNFINISHED
    )
    got = store.get_task(task.id)
    assert got.status == TaskStatus.COMPLETED
    assert got.completed_at == feb10(8, 30)

    with pytest.raises(ValueError):
        store.transition_status(task.id, expected=TaskStatus.ACTIVE, new_status=TaskStatus.COMPLETED)


def test_status_column_is_constrained(store: TaskStore, tmp_path: Path) -> None:
    conn = sqlite3.connect(str(tmp_path / "tasks.sqlite3"))
    try:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO tasks(title, created_at, deadline, status) VALUES ('x', 1, 2, 'buffer')"
            )
    finally:
        conn.close()


def test_list_by_status_ordering(store: TaskStore) -> None:
    a = store.insert_task(title="a", description=None, created_at=feb10(8), deadline=feb10(9))
    b = store.insert_task(title="b", description=None, created_at=feb10(7), deadline=feb10(12))
    c = store.insert_task(title="c", description=None, created_at=feb10(9), deadline=feb10(10))

    assert [t.id for t in store.list_by_status(TaskStatus.ACTIVE)] == [b.id, a.id, c.id]

    for t in (a, b, c):
        store.transition_status(t.id, expected=TaskStatus.ACTIVE, new_status=TaskStatus.EXPIRED_UNFINISHED)
    assert [t.id for t in store.list_by_status(TaskStatus.EXPIRED_UNFINISHED)] == [b.id, c.id, a.id]
    assert store.count_by_status(TaskStatus.EXPIRED_UNFINISHED) == 3


def test_update_settings_validation(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        store.update_settings(max_active_tasks=0)
    with pytest.raises(ValueError):
        store.update_settings(buffer_minutes=-1)

    assert store.update_settings(max_active_tasks=5) == TaskSettings(max_active_tasks=5, buffer_minutes=30)
    assert store.update_settings(buffer_minutes=0).buffer_minutes == 0


def test_migration_adds_token_columns(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(str(db))
    conn.execute(
        """
        CREATE TABLE tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT,
            created_at REAL NOT NULL,
            deadline REAL NOT NULL,
            status TEXT NOT NULL
        )
        """
    )
    conn.execute(
        "INSERT INTO tasks(title, created_at, deadline, status) VALUES ('legacy', ?, ?, 'active')",
        (feb10(8), feb10(9)),
    )
    conn.commit()
    conn.close()

    store = TaskStore(db)
    (task,) = store.list_by_status(TaskStatus.ACTIVE)
    assert task.title == "legacy"
    assert task.reactivation_count == 0
    assert task.predecessor_id is None
    assert task.reminder_token is None

    store.update_task_fields(task.id, deadline_token="d1")
    assert store.get_task(task.id).deadline_token == "d1"
