# tests/test_commands.py

from __future__ import annotations

from task_tracker.cli.commands import CommandRegistry, registry
from task_tracker.tasks.errors import TaskNotFoundError
from task_tracker.tasks.task_models import TaskStatus

from .fakes import RecordingEmitter


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b")

    assert reg.handle(state, "/a x") == "h2"
    assert reg.handle(state, "/b y", emit=lambda _: None) == "h3"
    assert called["h2"] == 1
    assert called["h3"] == 1


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_command_registry_renders_tracker_errors(state) -> None:
    reg = CommandRegistry()

    def boom(state, args):
        raise TaskNotFoundError(7)

    reg.register("boom", boom, "boom")
    assert reg.handle(state, "/boom") == "Error (404): Task not found with id: 7"


def test_dependency_workflow(state) -> None:
    out = registry.handle(state, "/project add Launch website relaunch")
    assert out is not None and out.startswith("Project created: #1 Launch")

    assert "#1" in registry.handle(state, "/task add 1 Design mockups")
    assert "#2" in registry.handle(state, "/task add 1 Build pages")

    out = registry.handle(state, "/dep add 2 1")
    assert out is not None and "depends on 1" in out

    out = registry.handle(state, "/dep add 1 2")
    assert out is not None and out.startswith("Error (400):")

    out = registry.handle(state, "/dep add 1 1")
    assert out == "Error (400): A task cannot depend on itself"

    out = registry.handle(state, "/task set 2 status done")
    assert out == "Error (409): Cannot mark task as DONE. Unfinished dependencies: [1]"

    out = registry.handle(state, "/dep list 2")
    assert out is not None and "Blocked by: 1" in out

    emitter = RecordingEmitter()
    out = registry.handle(state, "/task set 1 status DONE", emit=emitter)
    assert out is not None and "[done]" in out
    assert emitter.lines == ["Unblocks: #2"]

    assert "#2" in (registry.handle(state, "/dep ready 1") or "")
    assert "[done]" in (registry.handle(state, "/task set 2 status done") or "")

    out = registry.handle(state, "/dep dependents 1")
    assert out is not None and "#2" in out

    assert registry.handle(state, "/task rm 1") == "Task #1 deleted."
    assert registry.handle(state, "/dep dependents 1") == "Error (404): Task not found with id: 1"
    assert registry.handle(state, "/dep list 2") == "Task #2 has no dependencies."
    assert "0 edges" in (registry.handle(state, "/dep check") or "")


def test_task_set_fields_and_bad_input(state) -> None:
    registry.handle(state, "/project add P")
    registry.handle(state, "/task add 1 Write docs")

    assert "(high)" in (registry.handle(state, "/task set 1 priority high") or "")
    assert "due 2026-11-30" in (registry.handle(state, "/task set 1 due 2026-11-30") or "")
    assert "Write guide" in (registry.handle(state, "/task set 1 title Write guide") or "")
    assert state.service.get_task(1).task.status == TaskStatus.TODO

    assert (registry.handle(state, "/task set 1 status finished") or "").startswith("Error (400): Invalid status")
    assert (registry.handle(state, "/task set 1 due tomorrow") or "").startswith("Error (400): Invalid date")
    assert registry.handle(state, "/task show abc") == "Error (400): Invalid task id: 'abc'"
    assert (registry.handle(state, "/task") or "").startswith("Usage:")


def test_status_and_project_listing(state) -> None:
    assert registry.handle(state, "/project list") == "No projects yet."
    registry.handle(state, "/project add Alpha")
    registry.handle(state, "/task add 1 First")

    out = registry.handle(state, "/status") or ""
    assert "Projects: 1" in out
    assert "Tasks: 1" in out

    out = registry.handle(state, "/project show 1") or ""
    assert out.splitlines()[0] == "#1 Alpha"
    assert "First" in out

    assert registry.handle(state, "/project rm 1") == "Project #1 deleted."
    assert registry.handle(state, "/project show 1") == "Error (404): Project not found with id: 1"


def test_quoted_project_name_and_project_set(state) -> None:
    out = registry.handle(state, '/project add "Website relaunch" q4 push')
    assert out == "Project created: #1 Website relaunch - q4 push"

    out = registry.handle(state, '/project set 1 name "Site relaunch"')
    assert out == "Project updated: #1 Site relaunch - q4 push"
    out = registry.handle(state, "/project set 1 description moved to q1")
    assert out == "Project updated: #1 Site relaunch - moved to q1"

    assert registry.handle(state, "/project set 2 name Ghost") == "Error (404): Project not found with id: 2"
    assert (registry.handle(state, "/project set 1 owner Bob") or "").startswith("Usage:")

    assert registry.handle(state, '/project add "Unclosed name') == "Unbalanced quotes in command."
    # apostrophes are not quotes
    assert "Don't forget" in (registry.handle(state, "/task add 1 Don't forget") or "")


def test_task_list_status_filter_and_project_counts(state) -> None:
    registry.handle(state, "/project add Alpha")
    registry.handle(state, "/project add Beta")
    registry.handle(state, "/task add 1 First")
    registry.handle(state, "/task add 1 Second")
    registry.handle(state, "/task set 2 status in-progress")

    assert registry.handle(state, "/project list") == "#1 Alpha (2 tasks)\n#2 Beta (0 tasks)"

    out = registry.handle(state, "/task list 1 in_progress") or ""
    assert out.startswith("#2 [in_progress]")
    assert "First" not in out
    assert "First" in (registry.handle(state, "/task list 1 todo") or "")
    assert registry.handle(state, "/task list 1 done") == "No done tasks in this project."
    assert (registry.handle(state, "/task list 1 archived") or "").startswith("Error (400): Invalid status")
