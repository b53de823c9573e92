# src/taskbell/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from .task_models import DEFAULT_CATEGORY_COLOR, Priority, Task, to_aware, ts_to_datetime

logger = logging.getLogger(__name__)


def _ts(dt: datetime | None) -> float | None:
    if dt is None:
        return None
    return to_aware(dt).timestamp()


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Timestamps are stored as REAL unix seconds so range queries compare numbers, not strings.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

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
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    start_time REAL NOT NULL,
                    end_time REAL NOT NULL,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    category_color TEXT NOT NULL DEFAULT '#8b5cf6',
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    notification_time REAL,
                    created_at INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("user_id", "TEXT")
            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("priority", "TEXT NOT NULL DEFAULT 'medium'")
            add_col("category_color", f"TEXT NOT NULL DEFAULT '{DEFAULT_CATEGORY_COLOR}'")
            add_col("is_completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("notification_time", "REAL")
            add_col("created_at", "INTEGER NOT NULL DEFAULT 0")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_notification "
                "ON tasks(is_completed, notification_time)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id, start_time)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        start = ts_to_datetime(row["start_time"])
        end = ts_to_datetime(row["end_time"])
        if start is None or end is None:
            raise ValueError(f"task {row['id']} has no start or end time")
        return Task(
            id=str(row["id"]),
            user_id=row["user_id"],
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            start_date=start,
            end_date=end,
            priority=Priority.from_db(row["priority"]),
            category_color=str(row["category_color"] or DEFAULT_CATEGORY_COLOR),
            is_completed=bool(row["is_completed"]),
            notification_time=ts_to_datetime(row["notification_time"]),
            created_at=int(row["created_at"] or 0),
        )

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def list_tasks(self, user_id: str) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM tasks WHERE user_id = ? ORDER BY start_time ASC, created_at ASC",
                (user_id,),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def save_task(self, task: Task) -> Task:
        """Insert or replace by id."""
        if not task.id:
            raise ValueError("task id is required")
        if not task.title or not task.title.strip():
            raise ValueError("title is required")

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, user_id, title, description, start_time, end_time,
                    priority, category_color, is_completed, notification_time, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    user_id = excluded.user_id,
                    title = excluded.title,
                    description = excluded.description,
                    start_time = excluded.start_time,
                    end_time = excluded.end_time,
                    priority = excluded.priority,
                    category_color = excluded.category_color,
                    is_completed = excluded.is_completed,
                    notification_time = excluded.notification_time,
                    created_at = excluded.created_at
                """,
                (
                    task.id,
                    task.user_id,
                    task.title.strip(),
                    task.description or "",
                    _ts(task.start_date),
                    _ts(task.end_date),
                    task.priority.value.lower(),
                    task.category_color or DEFAULT_CATEGORY_COLOR,
                    1 if task.is_completed else 0,
                    _ts(task.notification_time),
                    int(task.created_at),
                ),
            )
            conn.commit()
            logger.debug("Task saved id=%s user=%s", task.id, task.user_id)
            return task
        finally:
            conn.close()

    def delete_task(self, task_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
        finally:
            conn.close()

    def toggle_completion(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "UPDATE tasks SET is_completed = 1 - is_completed WHERE id = ?",
                (task_id,),
            )
            conn.commit()
            if cur.rowcount != 1:
                return None
            cur.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_due_tasks(self, start: datetime, end: datetime) -> list[Task]:
        """
        Open tasks (any user) whose notification_time lies in [start, end].

        This is a service-level query: it is only used by the sweep.
        """
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM tasks
                WHERE is_completed = 0
                  AND notification_time IS NOT NULL
                  AND notification_time >= ?
                  AND notification_time <= ?
                ORDER BY notification_time ASC, created_at ASC
                """,
                (_ts(start), _ts(end)),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()
