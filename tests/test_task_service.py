# tests/test_task_service.py

from __future__ import annotations

import sqlite3
import threading
from datetime import date

import pytest

from task_tracker.tasks.errors import (
    CircularDependencyError,
    DependencyNotMetError,
    InvalidRequestError,
    ProjectNotFoundError,
    SelfDependencyError,
    TaskNotFoundError,
)
from task_tracker.tasks.task_models import TaskPriority, TaskStatus
from task_tracker.tasks.task_service import TaskService


def _project_with_tasks(service: TaskService, *titles: str) -> tuple[int, list[int]]:
    project = service.create_project("Launch")
    ids = [service.create_task(project.id, t).id for t in titles]
    return project.id, ids


def test_create_and_update_task(service: TaskService) -> None:
    project = service.create_project("Launch", "q4")
    view = service.create_task(
        project.id, "Ship it", "final step", priority=TaskPriority.HIGH, due_date=date(2026, 12, 1)
    )
    assert view.dependency_ids == []
    assert view.task.priority == TaskPriority.HIGH

    updated = service.update_task(view.id, title="Ship v1", status=TaskStatus.IN_PROGRESS)
    assert updated.task.title == "Ship v1"
    assert updated.task.status == TaskStatus.IN_PROGRESS
    assert updated.task.due_date == date(2026, 12, 1)


def test_unknown_ids_raise_not_found(service: TaskService) -> None:
    _, (a,) = _project_with_tasks(service, "a")

    with pytest.raises(ProjectNotFoundError):
        service.create_task(999, "orphan")
    with pytest.raises(TaskNotFoundError):
        service.get_task(999)
    with pytest.raises(TaskNotFoundError) as exc:
        service.add_dependency(a, 999)
    assert exc.value.task_id == 999
    with pytest.raises(TaskNotFoundError):
        service.remove_dependency(999, a)
    with pytest.raises(TaskNotFoundError):
        service.delete_task(999)


def test_blank_title_is_invalid(service: TaskService) -> None:
    project = service.create_project("P")
    with pytest.raises(InvalidRequestError):
        service.create_task(project.id, "   ")


def test_add_dependency_and_listings(service: TaskService) -> None:
    _, (a, b, c) = _project_with_tasks(service, "a", "b", "c")

    view = service.add_dependency(c, b)
    service.add_dependency(c, a)
    view = service.add_dependency(c, a)  # idempotent

    assert service.get_task(c).dependency_ids == [a, b]
    assert [t.id for t in service.get_dependencies(c)] == [a, b]
    assert [t.id for t in service.get_dependents(a)] == [c]
    assert view.dependency_ids == [a, b]


def test_self_and_circular_dependencies_rejected(service: TaskService, store) -> None:
    _, (a, b, c) = _project_with_tasks(service, "a", "b", "c")
    service.add_dependency(a, b)
    service.add_dependency(b, c)

    with pytest.raises(SelfDependencyError):
        service.add_dependency(a, a)
    with pytest.raises(CircularDependencyError):
        service.add_dependency(c, a)

    assert store.list_edges() == frozenset({(a, b), (b, c)})


def test_remove_dependency_is_idempotent(service: TaskService) -> None:
    _, (a, b) = _project_with_tasks(service, "a", "b")
    service.add_dependency(b, a)

    assert service.remove_dependency(b, a).dependency_ids == []
    assert service.remove_dependency(b, a).dependency_ids == []


def test_done_gate(service: TaskService) -> None:
    _, (a, b) = _project_with_tasks(service, "a", "b")
    service.add_dependency(b, a)

    check = service.check_completion(b)
    assert not check.allowed
    assert check.blocking == [a]

    with pytest.raises(DependencyNotMetError) as exc:
        service.update_task(b, status=TaskStatus.DONE, title="renamed")
    assert exc.value.blocking == [a]
    # all-or-nothing: neither status nor title was written
    task = service.get_task(b).task
    assert task.status == TaskStatus.TODO
    assert task.title == "b"

    service.update_task(a, status=TaskStatus.DONE)
    assert service.update_task(b, status=TaskStatus.DONE).task.status == TaskStatus.DONE

    # leaving DONE is never gated
    assert service.update_task(a, status=TaskStatus.TODO).task.status == TaskStatus.TODO


def test_delete_task_detaches_it(service: TaskService, store) -> None:
    _, (a, b, c) = _project_with_tasks(service, "a", "b", "c")
    service.add_dependency(c, b)
    service.add_dependency(b, a)

    service.delete_task(b)

    assert store.list_edges() == frozenset()
    assert service.get_dependents(a) == []
    assert service.get_task(c).dependency_ids == []


def test_delete_project_detaches_cross_project_edges(service: TaskService, store) -> None:
    p1, (a,) = _project_with_tasks(service, "a")
    p2 = service.create_project("Other")
    b = service.create_task(p2.id, "b").id
    service.add_dependency(b, a)

    service.delete_project(p1)

    assert store.list_edges() == frozenset()
    assert service.get_task(b).dependency_ids == []
    with pytest.raises(ProjectNotFoundError):
        service.get_project(p1)


def test_ready_tasks(service: TaskService) -> None:
    pid, (a, b, c) = _project_with_tasks(service, "a", "b", "c")
    service.add_dependency(b, a)
    service.add_dependency(c, b)

    assert [t.id for t in service.ready_tasks(pid)] == [a]
    service.update_task(a, status=TaskStatus.DONE)
    assert [t.id for t in service.ready_tasks(pid)] == [b]


def test_check_graph_detects_rows_written_behind_its_back(service: TaskService, store) -> None:
    _, (a, b) = _project_with_tasks(service, "a", "b")
    service.add_dependency(a, b)
    assert len(service.check_graph()) == 1

    conn = sqlite3.connect(str(store.db_path))
    conn.execute("INSERT INTO task_dependencies(task_id, dependency_id) VALUES (?, ?)", (b, a))
    conn.commit()
    conn.close()

    with pytest.raises(CircularDependencyError):
        service.check_graph()


def test_concurrent_opposite_edges_cannot_both_land(service: TaskService, store) -> None:
    _, (a, b) = _project_with_tasks(service, "a", "b")
    errors: list[Exception] = []

    def add(task_id: int, dep_id: int) -> None:
        try:
            service.add_dependency(task_id, dep_id)
        except CircularDependencyError as e:
            errors.append(e)

    threads = [threading.Thread(target=add, args=(a, b)), threading.Thread(target=add, args=(b, a))]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(errors) == 1
    assert len(store.list_edges()) == 1


def test_unchecked_done_still_reports_blocking_dependencies(service: TaskService, store) -> None:
    _, (a, b) = _project_with_tasks(service, "a", "b")
    service.add_dependency(b, a)

    # imports write DONE directly; the gate is not consulted
    store.set_status_unchecked(b, TaskStatus.DONE)

    assert service.get_task(b).task.status == TaskStatus.DONE
    check = service.check_completion(b)
    assert not check.allowed
    assert check.blocking == [a]
    # b is DONE, so only its open dependency is offered as ready
    assert [t.id for t in service.ready_tasks(service.get_task(b).task.project_id)] == [a]


def test_update_project(service: TaskService) -> None:
    project = service.create_project("Launch", "q4")

    assert service.update_project(project.id, name="  Relaunch ").name == "Relaunch"
    # blank name leaves the name alone
    same = service.update_project(project.id, name="   ")
    assert same.name == "Relaunch"
    assert same.description == "q4"

    updated = service.update_project(project.id, description="moved to q1")
    assert updated.name == "Relaunch"
    assert updated.description == "moved to q1"

    with pytest.raises(ProjectNotFoundError):
        service.update_project(999, name="ghost")


def test_list_tasks_by_status_and_task_counts(service: TaskService) -> None:
    pid, (a, b) = _project_with_tasks(service, "a", "b")
    empty = service.create_project("Empty")
    service.update_task(a, status=TaskStatus.IN_PROGRESS)

    assert [v.id for v in service.list_tasks(pid, status=TaskStatus.IN_PROGRESS)] == [a]
    assert [v.id for v in service.list_tasks(pid, status=TaskStatus.TODO)] == [b]
    assert service.task_counts() == {pid: 2, empty.id: 0}

    with pytest.raises(ProjectNotFoundError):
        service.list_tasks(999, status=TaskStatus.TODO)
