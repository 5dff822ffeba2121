# src/task_tracker/tasks/dependency_graph.py

"""
Dependency graph engine.

The graph is the relation "task depends on dependency" over task ids,
held as a single set of (task, dependency) pairs. Dependents are always
derived from the same set, never stored separately.

Every function here is pure: it takes an edge-set snapshot and returns a new
value (or a decision). Nothing mutates its input, performs I/O, or calls
back into storage; committing the result is the caller's job.

Invariants kept by the mutating operations:
- no self-loops
- acyclic after every mutation
- no duplicate edges (set semantics)
- query results are ascending by id
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from .errors import (
    CircularDependencyError,
    DependencyNotMetError,
    SelfDependencyError,
    TaskNotFoundError,
)
from .task_models import TaskStatus

logger = logging.getLogger(__name__)

Edge = tuple[int, int]
EdgeSet = frozenset[Edge]
StatusLookup = Callable[[int], TaskStatus | None]
ExistsCheck = Callable[[int], bool]


def _adjacency(edges: Iterable[Edge]) -> dict[int, set[int]]:
    out: dict[int, set[int]] = {}
    for task, dep in edges:
        out.setdefault(task, set()).add(dep)
    return out


# ---- reachability ----


def find_path(edges: Iterable[Edge], start: int, goal: int) -> list[int] | None:
    """
    Return one path start -> ... -> goal following depends-on edges, or None.

    Iterative DFS with a visited set: terminates on any input (even a cyclic
    one) and uses no recursion regardless of graph depth.
    """
    if start == goal:
        return [start]

    adj = _adjacency(edges)
    parent: dict[int, int | None] = {start: None}
    stack = [start]

    while stack:
        node = stack.pop()
        for nxt in sorted(adj.get(node, ()), reverse=True):
            if nxt in parent:
                continue
            parent[nxt] = node
            if nxt == goal:
                path = [nxt]
                cur = parent[nxt]
                while cur is not None:
                    path.append(cur)
                    cur = parent[cur]
                path.reverse()
                return path
            stack.append(nxt)

    return None


def has_path(edges: Iterable[Edge], start: int, goal: int) -> bool:
    return find_path(edges, start, goal) is not None


def find_cycle(edges: Iterable[Edge]) -> list[int] | None:
    """
    Find any cycle in an edge list, returned as [a, b, ..., a], or None.

    Used to validate snapshots that did not come through add_dependency
    (imports, hand-edited databases).
    """
    adj = _adjacency(edges)
    # 0 = unseen, 1 = on the current DFS path, 2 = finished
    color: dict[int, int] = {}

    for root in sorted(adj):
        if color.get(root, 0):
            continue
        path: list[int] = [root]
        color[root] = 1
        iters = [iter(sorted(adj.get(root, ())))]

        while iters:
            nxt = next(iters[-1], None)
            if nxt is None:
                color[path.pop()] = 2
                iters.pop()
                continue
            state = color.get(nxt, 0)
            if state == 1:
                return path[path.index(nxt):] + [nxt]
            if state == 0:
                color[nxt] = 1
                path.append(nxt)
                iters.append(iter(sorted(adj.get(nxt, ()))))

    return None


# ---- mutations ----


def add_dependency(
    edges: Iterable[Edge],
    task: int,
    dependency: int,
    *,
    exists: ExistsCheck | None = None,
) -> EdgeSet:
    """
    Return `edges` plus (task -> dependency).

    Raises (leaving the input untouched):
    - SelfDependencyError if task == dependency
    - TaskNotFoundError if `exists` is given and rejects either id
    - CircularDependencyError if `dependency` can already reach `task`

    Adding an edge that is already present is a no-op success.
    """
    if task == dependency:
        logger.info("Rejected self-dependency task=%s", task)
        raise SelfDependencyError(task)

    if exists is not None:
        for tid in (task, dependency):
            if not exists(tid):
                raise TaskNotFoundError(tid)

    current = frozenset(edges)
    if (task, dependency) in current:
        logger.debug("Dependency %s -> %s already present", task, dependency)
        return current

    path = find_path(current, dependency, task)
    if path is not None:
        logger.info(
            "Rejected circular dependency %s -> %s (path %s)",
            task,
            dependency,
            path,
        )
        raise CircularDependencyError(task, dependency, path)

    logger.debug("Dependency added %s -> %s", task, dependency)
    return current | {(task, dependency)}


def remove_dependency(edges: Iterable[Edge], task: int, dependency: int) -> EdgeSet:
    """Return `edges` without (task -> dependency). Absence is not an error."""
    current = frozenset(edges)
    if (task, dependency) not in current:
        return current
    logger.debug("Dependency removed %s -> %s", task, dependency)
    return current - {(task, dependency)}


def detach_task(edges: Iterable[Edge], task: int) -> EdgeSet:
    """Drop every edge where `task` is either endpoint. Never fails."""
    current = frozenset(edges)
    kept = frozenset(e for e in current if task not in e)
    if len(kept) != len(current):
        logger.debug("Detached task=%s (%d edges removed)", task, len(current) - len(kept))
    return kept


# ---- queries ----


def list_dependencies(edges: Iterable[Edge], task: int) -> list[int]:
    return sorted({dep for t, dep in edges if t == task})


def list_dependents(edges: Iterable[Edge], task: int) -> list[int]:
    return sorted({t for t, dep in edges if dep == task})


@dataclass(slots=True, frozen=True)
class CompletionCheck:
    allowed: bool
    blocking: list[int] = field(default_factory=list)


def can_complete(edges: Iterable[Edge], task: int, status_of: StatusLookup) -> CompletionCheck:
    """
    Decide whether `task` may move to DONE.

    Only direct dependencies are checked. Transitive blocking follows by
    induction as long as every DONE write goes through this gate; a status
    set out-of-band (bulk import) can break that.
    """
    blocking = [d for d in list_dependencies(edges, task) if status_of(d) != TaskStatus.DONE]
    return CompletionCheck(allowed=not blocking, blocking=blocking)


def ensure_can_transition(
    edges: Iterable[Edge],
    task: int,
    new_status: TaskStatus,
    status_of: StatusLookup,
) -> None:
    """Raise DependencyNotMetError if moving `task` to `new_status` is gated."""
    if new_status != TaskStatus.DONE:
        return
    check = can_complete(edges, task, status_of)
    if not check.allowed:
        logger.info("Completion blocked task=%s blocking=%s", task, check.blocking)
        raise DependencyNotMetError(task, check.blocking)


def ready_tasks(edges: Iterable[Edge], task_ids: Iterable[int], status_of: StatusLookup) -> list[int]:
    """Not-DONE tasks whose direct dependencies are all DONE."""
    snapshot = frozenset(edges)
    return sorted(
        t
        for t in set(task_ids)
        if status_of(t) != TaskStatus.DONE and can_complete(snapshot, t, status_of).allowed
    )


# ---- value wrapper ----


@dataclass(slots=True, frozen=True)
class DependencyGraph:
    """
    Immutable graph value over the functions above.

    Each mutating method returns a new DependencyGraph; the original is left
    as it was, so a failed call never leaves a half-applied graph behind.
    """

    edges: EdgeSet = frozenset()

    @classmethod
    def from_edges(cls, pairs: Iterable[Edge], *, validate: bool = False) -> DependencyGraph:
        """
        Rebuild a graph from a stored edge list.

        With validate=True, self-loops and cycles in the input are rejected
        instead of being trusted.
        """
        edges = frozenset((int(t), int(d)) for t, d in pairs)
        if validate:
            for t, d in edges:
                if t == d:
                    raise SelfDependencyError(t)
            cycle = find_cycle(edges)
            if cycle is not None:
                # cycle = [a, ..., z, a]; the closing edge is z -> a
                raise CircularDependencyError(cycle[-2], cycle[-1], cycle[:-1])
        return cls(edges)

    def __len__(self) -> int:
        return len(self.edges)

    def __contains__(self, edge: object) -> bool:
        return edge in self.edges

    def as_list(self) -> list[Edge]:
        return sorted(self.edges)

    def add(self, task: int, dependency: int, *, exists: ExistsCheck | None = None) -> DependencyGraph:
        return DependencyGraph(add_dependency(self.edges, task, dependency, exists=exists))

    def remove(self, task: int, dependency: int) -> DependencyGraph:
        return DependencyGraph(remove_dependency(self.edges, task, dependency))

    def detach(self, task: int) -> DependencyGraph:
        return DependencyGraph(detach_task(self.edges, task))

    def dependencies_of(self, task: int) -> list[int]:
        return list_dependencies(self.edges, task)

    def dependents_of(self, task: int) -> list[int]:
        return list_dependents(self.edges, task)

    def can_complete(self, task: int, status_of: StatusLookup) -> CompletionCheck:
        return can_complete(self.edges, task, status_of)

    def ready(self, task_ids: Iterable[int], status_of: StatusLookup) -> list[int]:
        return ready_tasks(self.edges, task_ids, status_of)
