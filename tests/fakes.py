# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field

from task_tracker.tasks import dependency_graph as graph
from task_tracker.tasks.task_models import TaskStatus


@dataclass(slots=True)
class FakeBoard:
    """
    In-memory collaborator for engine tests.

    Holds the edge set and the status of each task, and commits engine
    results the way the SQLite-backed service does: replace the whole
    snapshot only when the engine call returned.
    """

    statuses: dict[int, TaskStatus] = field(default_factory=dict)
    edges: graph.EdgeSet = frozenset()

    def add_task(self, task_id: int, status: TaskStatus = TaskStatus.TODO) -> None:
        self.statuses[task_id] = status

    def exists(self, task_id: int) -> bool:
        return task_id in self.statuses

    def status_of(self, task_id: int) -> TaskStatus | None:
        return self.statuses.get(task_id)

    def depend(self, task_id: int, dependency_id: int) -> None:
        self.edges = graph.add_dependency(self.edges, task_id, dependency_id, exists=self.exists)

    def set_status(self, task_id: int, status: TaskStatus) -> None:
        graph.ensure_can_transition(self.edges, task_id, status, self.status_of)
        self.statuses[task_id] = status

    def delete(self, task_id: int) -> None:
        self.edges = graph.detach_task(self.edges, task_id)
        del self.statuses[task_id]


@dataclass(slots=True)
class RecordingEmitter:
    lines: list[str] = field(default_factory=list)

    def __call__(self, text: str) -> None:
        self.lines.append(text)
