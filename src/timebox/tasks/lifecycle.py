# src/timebox/tasks/lifecycle.py

from __future__ import annotations

"""
Task lifecycle state machine.

Persisted statuses:
  active -> completed            (complete, up to deadline + buffer)
  active -> expired_unfinished   (expire, strictly after deadline + buffer)
  expired_unfinished -> (new active task)   (reactivate; the original row never changes)

"buffer" is derived, never stored (see timeutil.task_phase).

Every operation re-reads the task from the store before checking its
preconditions, and status changes go through TaskStore.transition_status(),
so a user completing a task and the sweeper expiring it cannot both win.

Notifications are side effects: scheduling/cancellation failures are logged and
never fail the transition itself.
"""

import logging
import time
from dataclasses import dataclass, field

from ..core.errors import AlreadyExpired, CapacityExceeded, InvalidTransition, NotFound
from ..core.ports import NotificationPayload, Notifier, TaskRepo
from .task_models import Task, TaskSettings, TaskStatus, TimePeriod, TimeWindow
from .timeutil import has_expired
from .windows import calculate_deadline, resolve_window, validate_custom_deadline

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskViews:
    """In-memory projections rebuilt from the store after every mutation."""

    active: list[Task] = field(default_factory=list)
    finished: list[Task] = field(default_factory=list)
    unfinished: list[Task] = field(default_factory=list)


class TaskLifecycle:
    def __init__(
        self,
        store: TaskRepo,
        notifier: Notifier | None = None,
        *,
        reminder_minutes_before: int = 60,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._reminder_minutes_before = max(0, int(reminder_minutes_before))
        self.views = TaskViews()
        self.refresh()

    @property
    def store(self) -> TaskRepo:
        return self._store

    # ---- views / settings ----

    def refresh(self) -> TaskViews:
        self.views = TaskViews(
            active=self._store.list_by_status(TaskStatus.ACTIVE),
            finished=self._store.list_by_status(TaskStatus.COMPLETED),
            unfinished=self._store.list_by_status(TaskStatus.EXPIRED_UNFINISHED),
        )
        return self.views

    def settings(self) -> TaskSettings:
        return self._store.get_settings()

    def update_settings(
        self,
        *,
        max_active_tasks: int | None = None,
        buffer_minutes: int | None = None,
    ) -> TaskSettings:
        return self._store.update_settings(max_active_tasks=max_active_tasks, buffer_minutes=buffer_minutes)

    def periods(self) -> list[TimePeriod]:
        return self._store.list_time_periods()

    def creation_window(self, now_ts: float | None = None) -> TimeWindow:
        return resolve_window(self.periods(), now_ts)

    def can_create_task(self) -> bool:
        return self._store.count_by_status(TaskStatus.ACTIVE) < self.settings().max_active_tasks

    # ---- helpers ----

    def _require_task(self, task_id: int) -> Task:
        task = self._store.get_task(task_id)
        if task is None:
            raise NotFound(f"Task {task_id} not found")
        return task

    def _require_capacity(self) -> None:
        limit = self.settings().max_active_tasks
        active = self._store.count_by_status(TaskStatus.ACTIVE)
        if active >= limit:
            raise CapacityExceeded(f"Maximum {limit} active tasks allowed")

    def _schedule(self, when_ts: float, payload: NotificationPayload) -> str | None:
        if self._notifier is None:
            return None
        try:
            return self._notifier.schedule_at(when_ts, payload)
        except Exception:
            logger.exception("schedule_at failed task_id=%s kind=%s", payload.task_id, payload.kind)
            return None

    def _schedule_notifications(self, task: Task, *, buffer_minutes: int, now_ts: float) -> Task:
        """
        Deadline (start of buffer) notification + an earlier reminder; tokens stored on the task.

        Either one is skipped when its time has already passed, e.g. a task
        rescheduled at startup while it sits in its buffer.
        """
        if self._notifier is None:
            return task

        deadline_token = None
        if task.deadline >= now_ts:
            if buffer_minutes > 0:
                body = (
                    f'"{task.title}" will be archived in {buffer_minutes} minutes. '
                    "Mark it complete or it moves to unfinished."
                )
            else:
                body = f'"{task.title}" is due now and will be archived.'
            deadline_token = self._schedule(
                task.deadline,
                NotificationPayload(task_id=task.id, kind="deadline", title="Task expiring soon", body=body),
            )

        reminder_token = None
        reminder_at = task.deadline - self._reminder_minutes_before * 60.0
        if self._reminder_minutes_before > 0 and reminder_at >= now_ts:
            reminder_token = self._schedule(
                reminder_at,
                NotificationPayload(
                    task_id=task.id,
                    kind="reminder",
                    title="Task reminder",
                    body=f'"{task.title}" has {self._reminder_minutes_before} minutes remaining',
                ),
            )

        self._store.update_task_fields(task.id, reminder_token=reminder_token, deadline_token=deadline_token)
        task.reminder_token = reminder_token
        task.deadline_token = deadline_token
        return task

    def _cancel_notifications(self, task: Task) -> None:
        if self._notifier is None:
            return
        for token in task.notification_tokens:
            try:
                self._notifier.cancel(token)
            except Exception:
                logger.warning("cancel failed task_id=%s token=%s", task.id, token, exc_info=True)

    # ---- transitions ----

    def create_task(
        self,
        title: str,
        description: str | None = None,
        *,
        deadline: float | None = None,
        now_ts: float | None = None,
    ) -> Task:
        """
        Create an active task.

        Without an explicit deadline the full window of the current time period
        is used; an explicit deadline must lie within (now, now + window].
        """
        if now_ts is None:
            now_ts = time.time()
        if not title or not title.strip():
            raise ValueError("title is required")

        self._require_capacity()

        periods = self.periods()
        if deadline is None:
            deadline = calculate_deadline(periods, now_ts)
        else:
            validate_custom_deadline(periods, deadline, now_ts)

        task = self._store.insert_task(
            title=title,
            description=description,
            created_at=now_ts,
            deadline=deadline,
        )
        task = self._schedule_notifications(task, buffer_minutes=self.settings().buffer_minutes, now_ts=now_ts)
        logger.info("Task %s created deadline=%s", task.id, task.deadline)

        self.refresh()
        return task

    def edit_task(
        self,
        task_id: int,
        *,
        title: str | None = None,
        description: str | None = None,
        deadline: float | None = None,
        now_ts: float | None = None,
    ) -> Task:
        if now_ts is None:
            now_ts = time.time()

        task = self._require_task(task_id)
        if task.status != TaskStatus.ACTIVE:
            raise InvalidTransition("Only active tasks can be edited")

        settings = self.settings()
        if has_expired(task.deadline, settings.buffer_minutes, now_ts):
            raise AlreadyExpired("Task has already expired")

        deadline_changed = deadline is not None and deadline != task.deadline
        if deadline_changed:
            validate_custom_deadline(self.periods(), deadline, now_ts)

        fields: dict[str, object] = {}
        if title is not None:
            fields["title"] = title
        if description is not None:
            fields["description"] = description
        if deadline_changed:
            fields["deadline"] = deadline
        self._store.update_task_fields(task_id, **fields)

        updated = self._require_task(task_id)
        if deadline_changed:
            self._cancel_notifications(task)
            updated = self._schedule_notifications(
                updated, buffer_minutes=settings.buffer_minutes, now_ts=now_ts
            )
        logger.info("Task %s edited fields=%s", task_id, sorted(fields))

        self.refresh()
        return updated

    def complete_task(self, task_id: int, now_ts: float | None = None) -> Task:
        if now_ts is None:
            now_ts = time.time()

        task = self._require_task(task_id)
        self._check_completable(task, now_ts)

        if not self._store.transition_status(
            task_id,
            expected=TaskStatus.ACTIVE,
            new_status=TaskStatus.COMPLETED,
            completed_at=now_ts,
        ):
            # Lost a race (e.g. the sweeper expired it meanwhile): report the current state.
            self.refresh()
            self._check_completable(self._require_task(task_id), now_ts)
            raise InvalidTransition(f"Task {task_id} changed concurrently")

        self._cancel_notifications(task)
        logger.info("Task %s -> completed", task_id)

        self.refresh()
        return self._require_task(task_id)

    def _check_completable(self, task: Task, now_ts: float) -> None:
        if task.status == TaskStatus.EXPIRED_UNFINISHED:
            raise AlreadyExpired("Task has already expired")
        if task.status == TaskStatus.COMPLETED:
            raise InvalidTransition("Task is already completed")
        if has_expired(task.deadline, self.settings().buffer_minutes, now_ts):
            raise AlreadyExpired("Task expired: the buffer period is over")

    def expire_task(self, task_id: int, now_ts: float | None = None, *, refresh: bool = True) -> bool:
        """
        Move an active task past deadline + buffer to expired_unfinished.

        Returns False (and writes nothing) when the task is missing, no longer
        active, or still within its buffer.
        """
        if now_ts is None:
            now_ts = time.time()

        task = self._store.get_task(task_id)
        if task is None or task.status != TaskStatus.ACTIVE:
            return False
        if not has_expired(task.deadline, self.settings().buffer_minutes, now_ts):
            return False

        if not self._store.transition_status(
            task_id,
            expected=TaskStatus.ACTIVE,
            new_status=TaskStatus.EXPIRED_UNFINISHED,
        ):
            logger.debug("Task %s changed before it could expire", task_id)
            return False

        self._cancel_notifications(task)
        logger.info("Task %s -> expired_unfinished", task_id)

        if refresh:
            self.refresh()
        return True

    def delete_task(self, task_id: int) -> None:
        task = self._require_task(task_id)
        self._cancel_notifications(task)
        self._store.delete_task(task_id)
        logger.info("Task %s deleted (status was %s)", task_id, task.status.value)
        self.refresh()

    def reactivate_task(self, task_id: int, now_ts: float | None = None) -> Task:
        """
        Start a new attempt of an expired task.

        The new task points back at the original and carries its attempt count + 1;
        the original stays expired_unfinished.
        """
        if now_ts is None:
            now_ts = time.time()

        original = self._require_task(task_id)
        if original.status != TaskStatus.EXPIRED_UNFINISHED:
            raise InvalidTransition("Only expired unfinished tasks can be reactivated")

        self._require_capacity()
        deadline = calculate_deadline(self.periods(), now_ts)

        task = self._store.insert_task(
            title=original.title,
            description=original.description,
            created_at=now_ts,
            deadline=deadline,
            reactivation_count=original.reactivation_count + 1,
            predecessor_id=original.id,
        )
        task = self._schedule_notifications(task, buffer_minutes=self.settings().buffer_minutes, now_ts=now_ts)
        logger.info(
            "Task %s reactivated as %s (attempt %s)",
            original.id,
            task.id,
            task.reactivation_count,
        )

        self.refresh()
        return task

    def delete_all_tasks(self) -> None:
        """Reset: cancel every pending notification, then drop all task rows."""
        for status in TaskStatus:
            for task in self._store.list_by_status(status):
                self._cancel_notifications(task)
        self._store.delete_all_tasks()
        self.refresh()

    def reschedule_notifications(self, now_ts: float | None = None) -> int:
        """
        Re-register notifications of every active task and store the new tokens.

        Used at startup with an in-process notifier, which forgets its schedule
        on restart. Overdue tasks are skipped (the sweeper handles them).
        """
        if now_ts is None:
            now_ts = time.time()
        buffer_minutes = self.settings().buffer_minutes

        count = 0
        for task in self._store.list_by_status(TaskStatus.ACTIVE):
            if has_expired(task.deadline, buffer_minutes, now_ts):
                continue
            self._schedule_notifications(task, buffer_minutes=buffer_minutes, now_ts=now_ts)
            count += 1
        logger.info("Rescheduled notifications for %d active task(s)", count)

        self.refresh()
        return count

    # ---- lineage / resume ----

    def attempt_chain(self, task_id: int) -> list[Task]:
        """The task followed by its predecessors, newest first. Stops at a deleted link."""
        chain: list[Task] = []
        seen: set[int] = set()
        current: int | None = task_id
        while current is not None and current not in seen:
            task = self._store.get_task(current)
            if task is None:
                break
            chain.append(task)
            seen.add(current)
            current = task.predecessor_id
        if not chain:
            raise NotFound(f"Task {task_id} not found")
        return chain

    def on_resume(self, now_ts: float | None = None) -> int:
        """Call when the process is foregrounded: expire whatever ran out meanwhile."""
        from .task_sweeper import sweep_expired

        return sweep_expired(self, now_ts)
