# src/timebox/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from .task_models import Task, TaskSettings, TaskStatus, TimePeriod

logger = logging.getLogger(__name__)

_UNSET: Any = object()

# Used when the time_periods table is empty on first run.
DEFAULT_PERIOD = (5, 0, 21, 0, 6)


class TaskStore:
    """
    SQLite record store for tasks, the settings singleton and time periods.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(
        self,
        db_path: str | Path = "tasks.sqlite3",
        *,
        default_max_active_tasks: int = 2,
        default_buffer_minutes: int = 30,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        self._seed_defaults(
            max_active_tasks=max(1, int(default_max_active_tasks)),
            buffer_minutes=max(0, int(default_buffer_minutes)),
        )
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT,
                    created_at REAL NOT NULL,
                    deadline REAL NOT NULL,
                    status TEXT NOT NULL
                        CHECK(status IN ('active', 'completed', 'expired_unfinished')),
                    completed_at REAL,
                    reactivation_count INTEGER NOT NULL DEFAULT 0,
                    predecessor_id INTEGER
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("completed_at", "REAL")
            add_col("reactivation_count", "INTEGER NOT NULL DEFAULT 0")
            add_col("predecessor_id", "INTEGER")
            add_col("reminder_token", "TEXT")
            add_col("deadline_token", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_deadline ON tasks(deadline)")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    id INTEGER PRIMARY KEY CHECK(id = 1),
                    max_active_tasks INTEGER NOT NULL DEFAULT 2,
                    buffer_minutes INTEGER NOT NULL DEFAULT 30
                )
                """
            )

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS time_periods (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    start_hour INTEGER NOT NULL,
                    start_minute INTEGER NOT NULL DEFAULT 0,
                    end_hour INTEGER NOT NULL,
                    end_minute INTEGER NOT NULL DEFAULT 0,
                    max_duration_hours INTEGER NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )

            conn.commit()
        finally:
            conn.close()

    def _seed_defaults(self, *, max_active_tasks: int, buffer_minutes: int) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "INSERT OR IGNORE INTO settings(id, max_active_tasks, buffer_minutes) VALUES (1, ?, ?)",
                (max_active_tasks, buffer_minutes),
            )
            if cur.rowcount == 1:
                logger.info(
                    "TaskStore seeded settings max_active_tasks=%s buffer_minutes=%s",
                    max_active_tasks,
                    buffer_minutes,
                )

            cur.execute("SELECT COUNT(*) FROM time_periods")
            (n,) = cur.fetchone()
            if int(n) == 0:
                sh, sm, eh, em, max_h = DEFAULT_PERIOD
                cur.execute(
                    """
                    INSERT INTO time_periods(
                        start_hour, start_minute, end_hour, end_minute, max_duration_hours, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (sh, sm, eh, em, max_h, time.time()),
                )
                logger.info("TaskStore seeded default time period %02d:%02d-%02d:%02d", sh, sm, eh, em)
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            title=str(row["title"] or ""),
            description=row["description"],
            created_at=float(row["created_at"] or 0.0),
            deadline=float(row["deadline"] or 0.0),
            status=TaskStatus.from_db(row["status"]),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
            reactivation_count=int(row["reactivation_count"] or 0),
            predecessor_id=int(row["predecessor_id"]) if row["predecessor_id"] is not None else None,
            reminder_token=row["reminder_token"],
            deadline_token=row["deadline_token"],
        )

    @staticmethod
    def _row_to_period(row: sqlite3.Row) -> TimePeriod:
        return TimePeriod(
            id=int(row["id"]),
            start_hour=int(row["start_hour"]),
            start_minute=int(row["start_minute"] or 0),
            end_hour=int(row["end_hour"]),
            end_minute=int(row["end_minute"] or 0),
            max_duration_hours=int(row["max_duration_hours"]),
            created_at=float(row["created_at"] or 0.0),
        )

    # ---- tasks ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def get_task(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_by_status(self, status: TaskStatus) -> list[Task]:
        """
        Tasks with the given status, in the order the views display them:
        - active: oldest first
        - completed: most recently completed first
        - expired_unfinished: latest deadline first
        """
        order = {
            TaskStatus.ACTIVE: "created_at ASC, id ASC",
            TaskStatus.COMPLETED: "completed_at DESC, id DESC",
            TaskStatus.EXPIRED_UNFINISHED: "deadline DESC, id DESC",
        }[status]

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(f"SELECT * FROM tasks WHERE status = ? ORDER BY {order}", (status.value,))
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def count_by_status(self, status: TaskStatus) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks WHERE status = ?", (status.value,))
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def insert_task(
        self,
        *,
        title: str,
        description: str | None,
        created_at: float,
        deadline: float,
        reactivation_count: int = 0,
        predecessor_id: int | None = None,
    ) -> Task:
        if not title or not title.strip():
            raise ValueError("title is required")
        if deadline <= created_at:
            raise ValueError("deadline must be later than created_at")
        if reactivation_count < 0:
            raise ValueError("reactivation_count must be non-negative")

        desc = description.strip() if description and description.strip() else None

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(
                    title, description, created_at, deadline, status,
                    completed_at, reactivation_count, predecessor_id
                )
                VALUES (?, ?, ?, ?, 'active', NULL, ?, ?)
                """,
                (
                    title.strip(),
                    desc,
                    float(created_at),
                    float(deadline),
                    int(reactivation_count),
                    predecessor_id,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug(
                "Task inserted id=%s deadline=%s reactivation_count=%s predecessor_id=%s",
                task_id,
                deadline,
                reactivation_count,
                predecessor_id,
            )
        finally:
            conn.close()

        task = self.get_task(task_id)
        if task is None:
            raise RuntimeError(f"Task {task_id} vanished right after insert")
        return task

    def update_task_fields(
        self,
        task_id: int,
        *,
        title: str = _UNSET,
        description: str | None = _UNSET,
        deadline: float = _UNSET,
        reminder_token: str | None = _UNSET,
        deadline_token: str | None = _UNSET,
    ) -> None:
        """Partial update; fields left unset are not touched. Status has its own guarded path."""
        fields: list[str] = []
        params: list[Any] = []

        if title is not _UNSET:
            if not title or not title.strip():
                raise ValueError("title is required")
            fields.append("title = ?")
            params.append(title.strip())

        if description is not _UNSET:
            fields.append("description = ?")
            params.append(description.strip() if description and description.strip() else None)

        if deadline is not _UNSET:
            fields.append("deadline = ?")
            params.append(float(deadline))

        if reminder_token is not _UNSET:
            fields.append("reminder_token = ?")
            params.append(reminder_token)

        if deadline_token is not _UNSET:
            fields.append("deadline_token = ?")
            params.append(deadline_token)

        if not fields:
            return

        params.append(int(task_id))
        sql = f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?"

        conn = self._get_conn()
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()

    def transition_status(
        self,
        task_id: int,
        *,
        expected: TaskStatus,
        new_status: TaskStatus,
        completed_at: float | None = None,
    ) -> bool:
        """
        Atomically transitions:
          status = expected  -> status = new_status

        completed_at is written together with the status so the
        "completed_at set iff completed" invariant holds on every row.
        Returns True if this caller performed the transition.
        """
        if (new_status == TaskStatus.COMPLETED) != (completed_at is not None):
            raise ValueError("completed_at must be set exactly when completing a task")

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                UPDATE tasks
                SET status = ?, completed_at = ?
                WHERE id = ?
                  AND status = ?
                """,
                (new_status.value, completed_at, int(task_id), expected.value),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def delete_task(self, task_id: int) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
        finally:
            conn.close()

    def delete_all_tasks(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks")
            conn.commit()
            logger.info("TaskStore: all tasks deleted")
        finally:
            conn.close()

    # ---- range queries ----

    def count_by_status_and_range(self, status: TaskStatus, start_ts: float, end_ts: float) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT COUNT(*) FROM tasks WHERE status = ? AND created_at BETWEEN ? AND ?",
                (status.value, float(start_ts), float(end_ts)),
            )
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def sum_reactivations_by_range(self, start_ts: float, end_ts: float) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT COALESCE(SUM(reactivation_count), 0) FROM tasks WHERE created_at BETWEEN ? AND ?",
                (float(start_ts), float(end_ts)),
            )
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def list_most_reactivated(self, limit: int = 10) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM tasks
                WHERE reactivation_count > 0
                ORDER BY reactivation_count DESC, created_at DESC
                    LIMIT ?
                """,
                (int(limit),),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    # ---- settings singleton ----

    def get_settings(self) -> TaskSettings:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT max_active_tasks, buffer_minutes FROM settings WHERE id = 1")
            row = cur.fetchone()
            if row is None:
                return TaskSettings()
            return TaskSettings(
                max_active_tasks=int(row["max_active_tasks"]),
                buffer_minutes=int(row["buffer_minutes"]),
            )
        finally:
            conn.close()

    def update_settings(
        self,
        *,
        max_active_tasks: int | None = None,
        buffer_minutes: int | None = None,
    ) -> TaskSettings:
        if max_active_tasks is not None and int(max_active_tasks) < 1:
            raise ValueError("max_active_tasks must be at least 1")
        if buffer_minutes is not None and int(buffer_minutes) < 0:
            raise ValueError("buffer_minutes must be non-negative")

        current = self.get_settings()
        new = TaskSettings(
            max_active_tasks=current.max_active_tasks if max_active_tasks is None else int(max_active_tasks),
            buffer_minutes=current.buffer_minutes if buffer_minutes is None else int(buffer_minutes),
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO settings(id, max_active_tasks, buffer_minutes) VALUES (1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    max_active_tasks = excluded.max_active_tasks,
                    buffer_minutes = excluded.buffer_minutes
                """,
                (new.max_active_tasks, new.buffer_minutes),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info(
            "Settings updated max_active_tasks=%s buffer_minutes=%s",
            new.max_active_tasks,
            new.buffer_minutes,
        )
        return new

    # ---- time periods ----

    def list_time_periods(self) -> list[TimePeriod]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM time_periods ORDER BY start_hour ASC, start_minute ASC, id ASC")
            return [self._row_to_period(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def get_time_period(self, period_id: int) -> TimePeriod | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM time_periods WHERE id = ?", (int(period_id),))
            row = cur.fetchone()
            return self._row_to_period(row) if row else None
        finally:
            conn.close()

    def add_time_period(
        self,
        *,
        start_hour: int,
        start_minute: int,
        end_hour: int,
        end_minute: int,
        max_duration_hours: int,
    ) -> TimePeriod:
        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO time_periods(
                    start_hour, start_minute, end_hour, end_minute, max_duration_hours, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    int(start_hour),
                    int(start_minute),
                    int(end_hour),
                    int(end_minute),
                    int(max_duration_hours),
                    now,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for time_periods insert")
            period_id = int(rowid)
        finally:
            conn.close()

        return TimePeriod(
            id=period_id,
            start_hour=int(start_hour),
            start_minute=int(start_minute),
            end_hour=int(end_hour),
            end_minute=int(end_minute),
            max_duration_hours=int(max_duration_hours),
            created_at=now,
        )

    def update_time_period(
        self,
        period_id: int,
        *,
        start_hour: int,
        start_minute: int,
        end_hour: int,
        end_minute: int,
        max_duration_hours: int,
    ) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                UPDATE time_periods
                SET start_hour = ?,
                    start_minute = ?,
                    end_hour = ?,
                    end_minute = ?,
                    max_duration_hours = ?
                WHERE id = ?
                """,
                (
                    int(start_hour),
                    int(start_minute),
                    int(end_hour),
                    int(end_minute),
                    int(max_duration_hours),
                    int(period_id),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def delete_time_period(self, period_id: int) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM time_periods WHERE id = ?", (int(period_id),))
            conn.commit()
        finally:
            conn.close()
