# src/task_tracker/tasks/errors.py

from __future__ import annotations

"""
Error taxonomy for the task tracker.

Every error carries `status_code`, the HTTP-equivalent class of the failure:
- 400: caller error (bad input, self/circular dependency)
- 404: unknown project/task
- 409: conflict (completion blocked by unfinished dependencies)

Front-ends translate these into user-facing text; nothing below them swallows one.
"""

from collections.abc import Sequence


class TaskTrackerError(Exception):
    status_code = 500


class InvalidRequestError(TaskTrackerError):
    status_code = 400


class SelfDependencyError(InvalidRequestError):
    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__("A task cannot depend on itself")


class CircularDependencyError(InvalidRequestError):
    """
    Adding task -> dependency would close a cycle.

    `path` is the existing chain dependency -> ... -> task.
    """

    def __init__(self, task_id: int, dependency_id: int, path: Sequence[int] = ()) -> None:
        self.task_id = task_id
        self.dependency_id = dependency_id
        self.path = list(path)
        msg = "Adding this dependency would create a circular dependency"
        if self.path:
            msg += f" (existing path: {' -> '.join(str(p) for p in self.path)})"
        super().__init__(msg)


class DependencyNotMetError(TaskTrackerError):
    status_code = 409

    def __init__(self, task_id: int, blocking: Sequence[int]) -> None:
        self.task_id = task_id
        self.blocking = list(blocking)
        ids = ", ".join(str(b) for b in self.blocking)
        super().__init__(f"Cannot mark task as DONE. Unfinished dependencies: [{ids}]")


class NotFoundError(TaskTrackerError):
    status_code = 404


class TaskNotFoundError(NotFoundError):
    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__(f"Task not found with id: {task_id}")


class ProjectNotFoundError(NotFoundError):
    def __init__(self, project_id: int) -> None:
        self.project_id = project_id
        super().__init__(f"Project not found with id: {project_id}")
