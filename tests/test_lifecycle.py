# tests/test_lifecycle.py

from __future__ import annotations

import pytest

from timebox.core.errors import (
    AlreadyExpired,
    CapacityExceeded,
    DeadlineTooFar,
    InvalidTransition,
    NotFound,
    WindowClosed,
)
from timebox.tasks.lifecycle import TaskLifecycle
from timebox.tasks.task_models import TaskStatus
from timebox.tasks.task_store import TaskStore

from .fakes import FakeNotifier, feb10, local_ts


def test_create_uses_full_window_and_schedules_notifications(
    lifecycle: TaskLifecycle, notifier: FakeNotifier
) -> None:
    now = feb10(8)
    task = lifecycle.create_task("  Write report ", "draft + review", now_ts=now)

    assert task.title == "Write report"
    assert task.status == TaskStatus.ACTIVE
    assert task.created_at == now
    assert task.deadline == feb10(14)
    assert task.reactivation_count == 0
    assert task.predecessor_id is None
    assert task.completed_at is None

    calls = {c.payload.kind: c for c in notifier.for_task(task.id)}
    assert calls["deadline"].when_ts == task.deadline
    assert calls["reminder"].when_ts == task.deadline - 3600
    assert {task.deadline_token, task.reminder_token} == {c.token for c in calls.values()}

    assert [t.id for t in lifecycle.views.active] == [task.id]


def test_create_skips_reminder_that_would_be_in_the_past(
    lifecycle: TaskLifecycle, notifier: FakeNotifier
) -> None:
    now = feb10(8)
    task = lifecycle.create_task("quick", deadline=now + 30 * 60, now_ts=now)
    assert [c.payload.kind for c in notifier.for_task(task.id)] == ["deadline"]
    assert task.reminder_token is None


def test_capacity_limit_blocks_create_without_side_effects(
    lifecycle: TaskLifecycle, store: TaskStore, notifier: FakeNotifier
) -> None:
    now = feb10(9)
    lifecycle.create_task("one", now_ts=now)
    lifecycle.create_task("two", now_ts=now)
    scheduled_before = len(notifier.scheduled)

    assert not lifecycle.can_create_task()
    with pytest.raises(CapacityExceeded):
        lifecycle.create_task("three", now_ts=now)

    assert store.count_tasks() == 2
    assert len(notifier.scheduled) == scheduled_before


def test_capacity_follows_settings(lifecycle: TaskLifecycle) -> None:
    lifecycle.update_settings(max_active_tasks=1)
    lifecycle.create_task("only one", now_ts=feb10(9))
    with pytest.raises(CapacityExceeded) as exc:
        lifecycle.create_task("another", now_ts=feb10(9))
    assert "Maximum 1" in exc.value.reason


def test_create_outside_window_fails(lifecycle: TaskLifecycle, store: TaskStore) -> None:
    with pytest.raises(WindowClosed):
        lifecycle.create_task("late night", now_ts=feb10(22))
    assert store.count_tasks() == 0


def test_create_with_custom_deadline(lifecycle: TaskLifecycle) -> None:
    now = feb10(18)
    task = lifecycle.create_task("evening", deadline=feb10(20), now_ts=now)
    assert task.deadline == feb10(20)

    with pytest.raises(DeadlineTooFar):
        lifecycle.create_task("too far", deadline=now + 7 * 3600, now_ts=now)


def test_complete_within_buffer_and_after_buffer(lifecycle: TaskLifecycle, notifier: FakeNotifier) -> None:
    # buffer_minutes = 30 (store default), deadline 10:00
    a = lifecycle.create_task("a", deadline=feb10(10), now_ts=feb10(8))
    b = lifecycle.create_task("b", deadline=feb10(10), now_ts=feb10(8))

    done = lifecycle.complete_task(a.id, now_ts=feb10(10, 29))
    assert done.status == TaskStatus.COMPLETED
    assert done.completed_at == feb10(10, 29)
    assert set(a.notification_tokens) <= set(notifier.cancelled)

    with pytest.raises(AlreadyExpired):
        lifecycle.complete_task(b.id, now_ts=feb10(10, 31))
    assert lifecycle.store.get_task(b.id).status == TaskStatus.ACTIVE

    assert [t.id for t in lifecycle.views.finished] == [a.id]


def test_complete_rejects_terminal_and_missing_tasks(lifecycle: TaskLifecycle) -> None:
    task = lifecycle.create_task("t", now_ts=feb10(8))
    lifecycle.complete_task(task.id, now_ts=feb10(9))
    with pytest.raises(InvalidTransition):
        lifecycle.complete_task(task.id, now_ts=feb10(9, 30))

    other = lifecycle.create_task("u", now_ts=feb10(8))
    assert lifecycle.expire_task(other.id, now_ts=feb10(15))
    with pytest.raises(AlreadyExpired):
        lifecycle.complete_task(other.id, now_ts=feb10(15))

    with pytest.raises(NotFound):
        lifecycle.complete_task(12345)


def test_expire_only_after_buffer(lifecycle: TaskLifecycle, notifier: FakeNotifier) -> None:
    task = lifecycle.create_task("t", deadline=feb10(10), now_ts=feb10(8))

    assert not lifecycle.expire_task(task.id, now_ts=feb10(10, 15))
    assert not lifecycle.expire_task(task.id, now_ts=feb10(10, 30))
    assert lifecycle.expire_task(task.id, now_ts=feb10(10, 31))
    assert not lifecycle.expire_task(task.id, now_ts=feb10(10, 32))

    stored = lifecycle.store.get_task(task.id)
    assert stored.status == TaskStatus.EXPIRED_UNFINISHED
    assert stored.completed_at is None
    assert set(task.notification_tokens) <= set(notifier.cancelled)
    assert [t.id for t in lifecycle.views.unfinished] == [task.id]


def test_reactivate_builds_a_chain(lifecycle: TaskLifecycle, notifier: FakeNotifier) -> None:
    original = lifecycle.create_task("gym", "leg day", now_ts=feb10(8))
    lifecycle.expire_task(original.id, now_ts=feb10(14, 31))
    before = lifecycle.store.get_task(original.id)

    second = lifecycle.reactivate_task(original.id, now_ts=feb10(15))
    assert second.id != original.id
    assert second.status == TaskStatus.ACTIVE
    assert (second.title, second.description) == ("gym", "leg day")
    assert second.created_at == feb10(15)
    assert second.deadline == feb10(21)
    assert second.reactivation_count == 1
    assert second.predecessor_id == original.id
    assert lifecycle.store.get_task(original.id) == before
    assert notifier.for_task(second.id)

    lifecycle.expire_task(second.id, now_ts=feb10(21, 31))
    third = lifecycle.reactivate_task(second.id, now_ts=local_ts(2026, 2, 11, 7))
    assert third.reactivation_count == 2
    assert third.predecessor_id == second.id

    assert [t.id for t in lifecycle.attempt_chain(third.id)] == [third.id, second.id, original.id]


def test_reactivate_preconditions(lifecycle: TaskLifecycle, store: TaskStore) -> None:
    first = lifecycle.create_task("first", now_ts=feb10(8))
    with pytest.raises(InvalidTransition):
        lifecycle.reactivate_task(first.id, now_ts=feb10(9))

    lifecycle.expire_task(first.id, now_ts=feb10(14, 31))
    lifecycle.create_task("b", now_ts=feb10(15))
    lifecycle.create_task("c", now_ts=feb10(15))
    count_before = store.count_tasks()

    with pytest.raises(CapacityExceeded):
        lifecycle.reactivate_task(first.id, now_ts=feb10(15))
    assert store.count_tasks() == count_before

    with pytest.raises(NotFound):
        lifecycle.reactivate_task(999, now_ts=feb10(15))


def test_delete_cancels_notifications(lifecycle: TaskLifecycle, notifier: FakeNotifier) -> None:
    task = lifecycle.create_task("t", now_ts=feb10(8))
    lifecycle.delete_task(task.id)

    assert lifecycle.store.get_task(task.id) is None
    assert set(task.notification_tokens) == set(notifier.cancelled)
    assert lifecycle.views.active == []

    with pytest.raises(NotFound):
        lifecycle.delete_task(task.id)


def test_delete_allowed_from_terminal_status(lifecycle: TaskLifecycle) -> None:
    task = lifecycle.create_task("t", now_ts=feb10(8))
    lifecycle.complete_task(task.id, now_ts=feb10(9))
    lifecycle.delete_task(task.id)
    assert lifecycle.views.finished == []


def test_edit_revalidates_and_reschedules(lifecycle: TaskLifecycle, notifier: FakeNotifier) -> None:
    task = lifecycle.create_task("t", now_ts=feb10(8))
    old_tokens = set(task.notification_tokens)

    edited = lifecycle.edit_task(task.id, title="renamed", deadline=feb10(12), now_ts=feb10(9))
    assert edited.title == "renamed"
    assert edited.deadline == feb10(12)
    assert old_tokens <= set(notifier.cancelled)
    assert edited.deadline_token not in old_tokens

    with pytest.raises(DeadlineTooFar):
        lifecycle.edit_task(task.id, deadline=feb10(16), now_ts=feb10(9))

    lifecycle.complete_task(task.id, now_ts=feb10(10))
    with pytest.raises(InvalidTransition):
        lifecycle.edit_task(task.id, title="late edit", now_ts=feb10(10))


def test_edit_title_only_keeps_notifications(lifecycle: TaskLifecycle, notifier: FakeNotifier) -> None:
    task = lifecycle.create_task("t", "desc", now_ts=feb10(8))
    edited = lifecycle.edit_task(task.id, description="new desc", now_ts=feb10(9))
    assert edited.description == "new desc"
    assert edited.deadline == task.deadline
    assert notifier.cancelled == []


def test_notifier_failures_never_block_transitions(store: TaskStore) -> None:
    notifier = FakeNotifier(fail_schedule=True, fail_cancel=True)
    lifecycle = TaskLifecycle(store, notifier)

    task = lifecycle.create_task("t", now_ts=feb10(8))
    assert task.reminder_token is None
    assert task.deadline_token is None

    flaky = FakeNotifier()
    lifecycle = TaskLifecycle(store, flaky)
    other = lifecycle.create_task("u", now_ts=feb10(8))
    flaky.fail_cancel = True
    assert lifecycle.complete_task(other.id, now_ts=feb10(9)).status == TaskStatus.COMPLETED


def test_works_without_notifier(store: TaskStore) -> None:
    lifecycle = TaskLifecycle(store)
    task = lifecycle.create_task("t", now_ts=feb10(8))
    lifecycle.complete_task(task.id, now_ts=feb10(9))
    assert lifecycle.store.get_task(task.id).status == TaskStatus.COMPLETED


def test_delete_all_tasks(lifecycle: TaskLifecycle, notifier: FakeNotifier) -> None:
    a = lifecycle.create_task("a", now_ts=feb10(8))
    b = lifecycle.create_task("b", now_ts=feb10(8))
    lifecycle.complete_task(b.id, now_ts=feb10(9))

    lifecycle.delete_all_tasks()
    assert lifecycle.store.count_tasks() == 0
    assert set(a.notification_tokens) <= set(notifier.cancelled)
    assert lifecycle.views.active == [] and lifecycle.views.finished == []


def test_reschedule_notifications_skips_overdue(lifecycle: TaskLifecycle, notifier: FakeNotifier) -> None:
    fresh = lifecycle.create_task("fresh", deadline=feb10(12), now_ts=feb10(8))
    stale = lifecycle.create_task("stale", deadline=feb10(9), now_ts=feb10(8))
    notifier.scheduled.clear()

    assert lifecycle.reschedule_notifications(now_ts=feb10(10)) == 1
    assert {c.payload.task_id for c in notifier.scheduled} == {fresh.id}
    assert stale.id not in {c.payload.task_id for c in notifier.scheduled}


def test_reschedule_during_buffer_skips_past_notifications(
    lifecycle: TaskLifecycle, notifier: FakeNotifier
) -> None:
    task = lifecycle.create_task("x", deadline=feb10(9), now_ts=feb10(8))
    notifier.scheduled.clear()

    # 25 of the 30 buffer minutes are gone: nothing left to announce.
    assert lifecycle.reschedule_notifications(now_ts=feb10(9, 25)) == 1
    assert notifier.for_task(task.id) == []

    stored = lifecycle.store.get_task(task.id)
    assert stored.deadline_token is None
    assert stored.reminder_token is None


def test_reschedule_between_reminder_and_deadline(
    lifecycle: TaskLifecycle, notifier: FakeNotifier
) -> None:
    task = lifecycle.create_task("x", deadline=feb10(12), now_ts=feb10(8))
    notifier.scheduled.clear()

    lifecycle.reschedule_notifications(now_ts=feb10(11, 30))
    calls = notifier.for_task(task.id)
    assert [(c.payload.kind, c.when_ts) for c in calls] == [("deadline", feb10(12))]
    assert "30 minutes" in calls[0].payload.body


def test_creation_window_reports_matched_period(lifecycle: TaskLifecycle) -> None:
    window = lifecycle.creation_window(now_ts=feb10(10))
    assert window.can_create
    assert window.max_hours == 6
    assert window.period is not None and window.period.start_hour == 5

    closed = lifecycle.creation_window(now_ts=feb10(22))
    assert not closed.can_create
    assert closed.max_hours == 0
    assert closed.reason == "Outside allowed time window"
