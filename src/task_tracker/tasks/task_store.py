# src/task_tracker/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator
from datetime import date
from pathlib import Path
from typing import Any

from .dependency_graph import Edge, EdgeSet
from .errors import InvalidRequestError
from .task_models import Project, Task, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite store for projects, tasks and dependency edges.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection unless `conn` is passed
    - `transaction()` gives a write-locked connection (BEGIN IMMEDIATE) for
      read-modify-write sequences such as dependency edits
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    @property
    def db_path(self) -> Path:
        return self._db_path

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
        conn.execute("PRAGMA foreign_keys=ON")
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _connect(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        """Reuse the caller's connection, or open/commit/close a private one."""
        if conn is not None:
            yield conn
            return
        own = self._get_conn()
        try:
            yield own
            own.commit()
        finally:
            own.close()

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Single-writer transaction.

        BEGIN IMMEDIATE takes the database write lock up front, so two
        concurrent graph edits cannot both validate against the same stale
        edge snapshot. Commits on success, rolls back on any exception.
        """
        conn = self._get_conn()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS projects (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'todo',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    due_date TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_dependencies (
                    task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    dependency_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    PRIMARY KEY (task_id, dependency_id),
                    CHECK (task_id != dependency_id)
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

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("status", "TEXT NOT NULL DEFAULT 'todo'")
            add_col("priority", "TEXT NOT NULL DEFAULT 'medium'")
            add_col("due_date", "TEXT")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id, status)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_task_dependencies_reverse "
                "ON task_dependencies(dependency_id)"
            )

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _date_to_str(value: date | None) -> str | None:
        return value.isoformat() if value is not None else None

    @staticmethod
    def _str_to_date(raw: str | None) -> date | None:
        if not raw:
            return None
        try:
            return date.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring malformed due_date %r", raw)
            return None

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            project_id=int(row["project_id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            status=TaskStatus.from_db(row["status"]),
            priority=TaskPriority.from_db(row["priority"]),
            due_date=self._str_to_date(row["due_date"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(
            id=int(row["id"]),
            name=str(row["name"] or ""),
            description=str(row["description"] or ""),
            created_at=float(row["created_at"] or 0.0),
        )

    # ---- projects ----

    def count_projects(self) -> int:
        with self._connect() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM projects").fetchone()
            return int(n)

    def add_project(self, *, name: str, description: str = "") -> int:
        if not name or not name.strip():
            raise InvalidRequestError("Project name is required")

        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO projects(name, description, created_at) VALUES (?, ?, ?)",
                (name.strip(), (description or "").strip(), time.time()),
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for projects insert")
            logger.debug("Project added id=%s name=%s", rowid, name)
            return int(rowid)

    def get_project(self, project_id: int, *, conn: sqlite3.Connection | None = None) -> Project | None:
        with self._connect(conn) as c:
            row = c.execute("SELECT * FROM projects WHERE id = ?", (int(project_id),)).fetchone()
            return self._row_to_project(row) if row else None

    def list_projects(self) -> list[Project]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM projects ORDER BY id ASC").fetchall()
            return [self._row_to_project(r) for r in rows]

    def update_project_fields(
        self,
        project_id: int,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> None:
        fields: list[str] = []
        params: list[Any] = []

        if name is not None and name.strip():
            fields.append("name = ?")
            params.append(name.strip())

        if description is not None:
            fields.append("description = ?")
            params.append(description.strip())

        if not fields:
            return

        params.append(int(project_id))
        with self._connect() as conn:
            conn.execute(f"UPDATE projects SET {', '.join(fields)} WHERE id = ?", params)

    def delete_project(self, project_id: int, *, conn: sqlite3.Connection | None = None) -> None:
        """Delete a project with its tasks and every edge touching them."""
        with self._connect(conn) as c:
            c.execute(
                """
                DELETE FROM task_dependencies
                WHERE task_id IN (SELECT id FROM tasks WHERE project_id = ?)
                   OR dependency_id IN (SELECT id FROM tasks WHERE project_id = ?)
                """,
                (int(project_id), int(project_id)),
            )
            c.execute("DELETE FROM tasks WHERE project_id = ?", (int(project_id),))
            c.execute("DELETE FROM projects WHERE id = ?", (int(project_id),))
            logger.debug("Project deleted id=%s", project_id)

    # ---- tasks ----

    def count_tasks(self) -> int:
        with self._connect() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def add_task(
        self,
        *,
        project_id: int,
        title: str,
        description: str = "",
        priority: TaskPriority = TaskPriority.MEDIUM,
        status: TaskStatus = TaskStatus.TODO,
        due_date: date | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        if not title or not title.strip():
            raise InvalidRequestError("Task title is required")

        now = time.time()
        with self._connect(conn) as c:
            cur = c.execute(
                """
                INSERT INTO tasks(
                    project_id, title, description, status, priority,
                    due_date, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(project_id),
                    title.strip(),
                    (description or "").strip(),
                    status.value,
                    priority.value,
                    self._date_to_str(due_date),
                    now,
                    now,
                ),
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug(
                "Task added id=%s project=%s status=%s priority=%s",
                task_id,
                project_id,
                status.value,
                priority.value,
            )
            return task_id

    def get_task(self, task_id: int, *, conn: sqlite3.Connection | None = None) -> Task | None:
        with self._connect(conn) as c:
            row = c.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row) if row else None

    def task_exists(self, task_id: int, *, conn: sqlite3.Connection | None = None) -> bool:
        with self._connect(conn) as c:
            row = c.execute("SELECT 1 FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return row is not None

    def count_tasks_by_project(self) -> dict[int, int]:
        """Task count per project id (projects without tasks are absent)."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT project_id, COUNT(*) AS n FROM tasks GROUP BY project_id"
            ).fetchall()
            return {int(r["project_id"]): int(r["n"]) for r in rows}

    def list_tasks_for_project(
        self,
        project_id: int,
        *,
        status: TaskStatus | None = None,
        limit: int = 100,
    ) -> list[Task]:
        """
        Tasks of a project: high priority first, then earliest due date (undated last).
        With `status`, only tasks in that status.
        """
        where = "project_id = ?"
        params: list[Any] = [int(project_id)]
        if status is not None:
            where += " AND status = ?"
            params.append(status.value)
        params.append(int(limit))

        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT *
                FROM tasks
                WHERE {where}
                ORDER BY CASE priority WHEN 'high' THEN 0 WHEN 'medium' THEN 1 ELSE 2 END ASC,
                         due_date IS NULL ASC,
                         due_date ASC,
                         id ASC
                    LIMIT ?
                """,
                params,
            ).fetchall()
            return [self._row_to_task(r) for r in rows]

    def list_task_ids_for_project(
        self, project_id: int, *, conn: sqlite3.Connection | None = None
    ) -> list[int]:
        with self._connect(conn) as c:
            rows = c.execute(
                "SELECT id FROM tasks WHERE project_id = ? ORDER BY id ASC", (int(project_id),)
            ).fetchall()
            return [int(r["id"]) for r in rows]

    def update_task_fields(
        self,
        task_id: int,
        *,
        title: str | None = None,
        description: str | None = None,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        due_date: date | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        """
        Partial update. `status` is written as given: gating DONE on the
        task's dependencies is the caller's job (see TaskService.update_task).
        """
        fields: list[str] = []
        params: list[Any] = []

        if title is not None and title.strip():
            fields.append("title = ?")
            params.append(title.strip())

        if description is not None:
            fields.append("description = ?")
            params.append(description.strip())

        if status is not None:
            fields.append("status = ?")
            params.append(status.value)

        if priority is not None:
            fields.append("priority = ?")
            params.append(priority.value)

        if due_date is not None:
            fields.append("due_date = ?")
            params.append(self._date_to_str(due_date))

        if not fields:
            return

        fields.append("updated_at = ?")
        params.append(time.time())
        params.append(int(task_id))

        sql = f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?"
        with self._connect(conn) as c:
            c.execute(sql, params)

    def set_status_unchecked(self, task_id: int, status: TaskStatus) -> None:
        """
        Write a status without the dependency gate (bulk imports, repairs).

        A DONE written here can leave a DONE task with unfinished upstream
        work; the completion gate only looks at direct dependencies and
        relies on every DONE write having passed it.
        """
        logger.warning("Unchecked status write task=%s status=%s", task_id, status.value)
        self.update_task_fields(task_id, status=status)

    def delete_task(self, task_id: int, *, conn: sqlite3.Connection | None = None) -> None:
        with self._connect(conn) as c:
            c.execute(
                "DELETE FROM task_dependencies WHERE task_id = ? OR dependency_id = ?",
                (int(task_id), int(task_id)),
            )
            c.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            logger.debug("Task deleted id=%s", task_id)

    def status_map(
        self,
        task_ids: Iterable[int] | None = None,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> dict[int, TaskStatus]:
        """Status per task id (all tasks when task_ids is None)."""
        with self._connect(conn) as c:
            if task_ids is None:
                rows = c.execute("SELECT id, status FROM tasks").fetchall()
            else:
                ids = sorted({int(t) for t in task_ids})
                if not ids:
                    return {}
                placeholders = ",".join("?" for _ in ids)
                rows = c.execute(
                    f"SELECT id, status FROM tasks WHERE id IN ({placeholders})", ids
                ).fetchall()
            return {int(r["id"]): TaskStatus.from_db(r["status"]) for r in rows}

    # ---- dependency edges ----

    def list_edges(self, *, conn: sqlite3.Connection | None = None) -> EdgeSet:
        with self._connect(conn) as c:
            rows = c.execute("SELECT task_id, dependency_id FROM task_dependencies").fetchall()
            return frozenset((int(r["task_id"]), int(r["dependency_id"])) for r in rows)

    def apply_edges(
        self,
        old: Iterable[Edge],
        new: Iterable[Edge],
        *,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        """Persist the difference between two edge-set snapshots."""
        before = frozenset(old)
        after = frozenset(new)
        removed = sorted(before - after)
        added = sorted(after - before)
        if not removed and not added:
            return

        with self._connect(conn) as c:
            if removed:
                c.executemany(
                    "DELETE FROM task_dependencies WHERE task_id = ? AND dependency_id = ?",
                    removed,
                )
            if added:
                c.executemany(
                    "INSERT OR IGNORE INTO task_dependencies(task_id, dependency_id) VALUES (?, ?)",
                    added,
                )
        logger.debug("Edges applied: +%d -%d", len(added), len(removed))
