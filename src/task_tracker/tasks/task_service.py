# src/task_tracker/tasks/task_service.py

"""
Task service: the collaborator around the dependency graph engine.

For every graph-affecting call it:
- checks that referenced projects/tasks exist (NotFound),
- reads an edge/status snapshot inside one write-locked store transaction,
- runs the pure engine function on that snapshot,
- writes the engine's result back in the same transaction.

A process-wide lock plus BEGIN IMMEDIATE serializes the read-modify-write,
so concurrent add_dependency calls cannot jointly close a cycle.
"""

from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Any

from ..core.ports import TaskRepo
from . import dependency_graph as graph
from .errors import ProjectNotFoundError, TaskNotFoundError
from .task_models import Project, Task, TaskPriority, TaskStatus, TaskView

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(self, store: TaskRepo) -> None:
        self._store = store
        self._lock = threading.Lock()

    @property
    def store(self) -> TaskRepo:
        return self._store

    # ---- helpers ----

    def _require_project(self, project_id: int, conn: Any = None) -> Project:
        project = self._store.get_project(project_id, conn=conn)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def _require_task(self, task_id: int, conn: Any = None) -> Task:
        task = self._store.get_task(task_id, conn=conn)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    @staticmethod
    def _view(task: Task, edges: graph.EdgeSet) -> TaskView:
        return TaskView(task=task, dependency_ids=graph.list_dependencies(edges, task.id))

    def _load_tasks(self, task_ids: list[int], conn: Any = None) -> list[Task]:
        out: list[Task] = []
        for tid in task_ids:
            task = self._store.get_task(tid, conn=conn)
            if task is not None:
                out.append(task)
        return out

    # ---- projects ----

    def create_project(self, name: str, description: str = "") -> Project:
        project_id = self._store.add_project(name=name, description=description)
        logger.info("Project created id=%s", project_id)
        return self._require_project(project_id)

    def get_project(self, project_id: int) -> Project:
        return self._require_project(project_id)

    def list_projects(self) -> list[Project]:
        return self._store.list_projects()

    def task_counts(self) -> dict[int, int]:
        """Number of tasks per project id; projects without tasks map to 0."""
        counts = self._store.count_tasks_by_project()
        return {p.id: counts.get(p.id, 0) for p in self._store.list_projects()}

    def update_project(
        self,
        project_id: int,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> Project:
        """Rename or re-describe a project. A blank name leaves the name unchanged."""
        self._require_project(project_id)
        self._store.update_project_fields(project_id, name=name, description=description)
        logger.info("Project updated id=%s", project_id)
        return self._require_project(project_id)

    def delete_project(self, project_id: int) -> None:
        """Detach every task of the project from the graph, then delete it."""
        with self._lock, self._store.transaction() as conn:
            self._require_project(project_id, conn)
            edges = self._store.list_edges(conn=conn)
            updated = edges
            for tid in self._store.list_task_ids_for_project(project_id, conn=conn):
                updated = graph.detach_task(updated, tid)
            self._store.apply_edges(edges, updated, conn=conn)
            self._store.delete_project(project_id, conn=conn)
        logger.info("Project deleted id=%s", project_id)

    # ---- tasks ----

    def create_task(
        self,
        project_id: int,
        title: str,
        description: str = "",
        *,
        priority: TaskPriority | None = None,
        due_date: date | None = None,
    ) -> TaskView:
        with self._store.transaction() as conn:
            self._require_project(project_id, conn)
            task_id = self._store.add_task(
                project_id=project_id,
                title=title,
                description=description,
                priority=priority or TaskPriority.MEDIUM,
                due_date=due_date,
                conn=conn,
            )
            task = self._require_task(task_id, conn)
        logger.info("Task created id=%s project=%s", task_id, project_id)
        return TaskView(task=task)

    def get_task(self, task_id: int) -> TaskView:
        with self._store.transaction() as conn:
            task = self._require_task(task_id, conn)
            return self._view(task, self._store.list_edges(conn=conn))

    def list_tasks(
        self,
        project_id: int,
        *,
        status: TaskStatus | None = None,
        limit: int = 100,
    ) -> list[TaskView]:
        self._require_project(project_id)
        tasks = self._store.list_tasks_for_project(project_id, status=status, limit=limit)
        edges = self._store.list_edges()
        return [self._view(t, edges) for t in tasks]

    def update_task(
        self,
        task_id: int,
        *,
        title: str | None = None,
        description: str | None = None,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        due_date: date | None = None,
    ) -> TaskView:
        """
        Partial update. Moving to DONE is refused with DependencyNotMetError
        while any direct dependency is not DONE; nothing is written then.
        Every other transition is free.
        """
        with self._lock, self._store.transaction() as conn:
            self._require_task(task_id, conn)
            edges = self._store.list_edges(conn=conn)

            if status is not None:
                deps = graph.list_dependencies(edges, task_id)
                statuses = self._store.status_map(deps, conn=conn)
                graph.ensure_can_transition(edges, task_id, status, statuses.get)

            self._store.update_task_fields(
                task_id,
                title=title,
                description=description,
                status=status,
                priority=priority,
                due_date=due_date,
                conn=conn,
            )
            task = self._require_task(task_id, conn)

        if status is not None:
            logger.info("Task %s status -> %s", task_id, status.value)
        return self._view(task, edges)

    def delete_task(self, task_id: int) -> None:
        """Detach the task from the graph and delete it atomically."""
        with self._lock, self._store.transaction() as conn:
            self._require_task(task_id, conn)
            edges = self._store.list_edges(conn=conn)
            self._store.apply_edges(edges, graph.detach_task(edges, task_id), conn=conn)
            self._store.delete_task(task_id, conn=conn)
        logger.info("Task deleted id=%s", task_id)

    # ---- dependency graph ----

    def add_dependency(self, task_id: int, dependency_id: int) -> TaskView:
        with self._lock, self._store.transaction() as conn:
            edges = self._store.list_edges(conn=conn)
            updated = graph.add_dependency(
                edges,
                task_id,
                dependency_id,
                exists=lambda tid: self._store.task_exists(tid, conn=conn),
            )
            self._store.apply_edges(edges, updated, conn=conn)
            task = self._require_task(task_id, conn)

        logger.info("Dependency %s -> %s stored", task_id, dependency_id)
        return self._view(task, updated)

    def remove_dependency(self, task_id: int, dependency_id: int) -> TaskView:
        with self._lock, self._store.transaction() as conn:
            task = self._require_task(task_id, conn)
            self._require_task(dependency_id, conn)
            edges = self._store.list_edges(conn=conn)
            updated = graph.remove_dependency(edges, task_id, dependency_id)
            self._store.apply_edges(edges, updated, conn=conn)

        return self._view(task, updated)

    def get_dependencies(self, task_id: int) -> list[Task]:
        with self._store.transaction() as conn:
            self._require_task(task_id, conn)
            edges = self._store.list_edges(conn=conn)
            return self._load_tasks(graph.list_dependencies(edges, task_id), conn)

    def get_dependents(self, task_id: int) -> list[Task]:
        with self._store.transaction() as conn:
            self._require_task(task_id, conn)
            edges = self._store.list_edges(conn=conn)
            return self._load_tasks(graph.list_dependents(edges, task_id), conn)

    def check_completion(self, task_id: int) -> graph.CompletionCheck:
        with self._store.transaction() as conn:
            self._require_task(task_id, conn)
            edges = self._store.list_edges(conn=conn)
            statuses = self._store.status_map(graph.list_dependencies(edges, task_id), conn=conn)
            return graph.can_complete(edges, task_id, statuses.get)

    def check_graph(self) -> graph.DependencyGraph:
        """
        Load the stored edge list and verify it is still a DAG without self-loops.

        Edges written only through this service always are; this catches rows
        inserted behind its back.
        """
        return graph.DependencyGraph.from_edges(self._store.list_edges(), validate=True)

    def ready_tasks(self, project_id: int) -> list[Task]:
        """Open tasks of a project that could be marked DONE right now."""
        with self._store.transaction() as conn:
            self._require_project(project_id, conn)
            ids = self._store.list_task_ids_for_project(project_id, conn=conn)
            edges = self._store.list_edges(conn=conn)
            statuses = self._store.status_map(conn=conn)
            return self._load_tasks(graph.ready_tasks(edges, ids, statuses.get), conn)
