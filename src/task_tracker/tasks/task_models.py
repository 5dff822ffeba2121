# src/task_tracker/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum

from .errors import InvalidRequestError


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Only DONE vs not-DONE matters to the dependency graph; moving into DONE
    is gated on the task's direct dependencies.
    """

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO

    @classmethod
    def parse(cls, raw: str) -> TaskStatus:
        """Strict parse for user input ("DONE", "in-progress", ...)."""
        key = (raw or "").strip().lower().replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise InvalidRequestError(f"Invalid status: {raw!r} (expected one of: {allowed})") from None


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM

    @classmethod
    def parse(cls, raw: str) -> TaskPriority:
        key = (raw or "").strip().lower()
        try:
            return cls(key)
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise InvalidRequestError(f"Invalid priority: {raw!r} (expected one of: {allowed})") from None


@dataclass(slots=True)
class Project:
    id: int
    name: str
    description: str
    created_at: float


@dataclass(slots=True)
class Task:
    id: int
    project_id: int
    title: str
    description: str
    status: TaskStatus
    priority: TaskPriority
    due_date: date | None
    created_at: float
    updated_at: float


@dataclass(slots=True)
class TaskView:
    """A task together with its direct dependency ids (ascending)."""

    task: Task
    dependency_ids: list[int] = field(default_factory=list)

    @property
    def id(self) -> int:
        return self.task.id
