# src/task_tracker/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the service layer.

TaskService depends on this Protocol instead of the concrete SQLite store,
so storage stays swappable and tests can substitute their own repo.
"""

from contextlib import AbstractContextManager
from datetime import date
from typing import Any, Iterable, Protocol


class TaskRepo(Protocol):
    # Transactions: `conn` below is whatever transaction() yields.
    def transaction(self) -> AbstractContextManager[Any]: ...

    # Projects
    def count_projects(self) -> int: ...
    def add_project(self, *, name: str, description: str = "") -> int: ...
    def get_project(self, project_id: int, *, conn: Any = None) -> Any | None: ...
    def list_projects(self) -> list[Any]: ...
    def update_project_fields(
            self,
            project_id: int,
            *,
            name: str | None = None,
            description: str | None = None,
    ) -> None: ...
    def delete_project(self, project_id: int, *, conn: Any = None) -> None: ...

    # Tasks
    def count_tasks(self) -> int: ...
    def add_task(
            self,
            *,
            project_id: int,
            title: str,
            description: str = "",
            priority: Any = None,
            status: Any = None,
            due_date: date | None = None,
            conn: Any = None,
    ) -> int: ...
    def get_task(self, task_id: int, *, conn: Any = None) -> Any | None: ...
    def task_exists(self, task_id: int, *, conn: Any = None) -> bool: ...
    def count_tasks_by_project(self) -> dict[int, int]: ...
    def list_tasks_for_project(
            self, project_id: int, *, status: Any = None, limit: int = 100
    ) -> list[Any]: ...
    def list_task_ids_for_project(self, project_id: int, *, conn: Any = None) -> list[int]: ...
    def update_task_fields(
            self,
            task_id: int,
            *,
            title: str | None = None,
            description: str | None = None,
            status: Any | None = None,
            priority: Any | None = None,
            due_date: date | None = None,
            conn: Any = None,
    ) -> None: ...
    def delete_task(self, task_id: int, *, conn: Any = None) -> None: ...
    def status_map(self, task_ids: Iterable[int] | None = None, *, conn: Any = None) -> dict[int, Any]: ...

    # Dependency edges
    def list_edges(self, *, conn: Any = None) -> frozenset[tuple[int, int]]: ...
    def apply_edges(
            self,
            old: Iterable[tuple[int, int]],
            new: Iterable[tuple[int, int]],
            *,
            conn: Any = None,
    ) -> None: ...
