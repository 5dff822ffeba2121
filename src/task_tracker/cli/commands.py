# src/task_tracker/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Callable
from datetime import date
from typing import cast

from ..core.state import AppState
from ..tasks.errors import InvalidRequestError, TaskTrackerError
from ..tasks.task_models import Project, Task, TaskPriority, TaskStatus, TaskView

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /task, /dep, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Double quotes group words, so '/project add "Big launch" q4'
        passes the quoted name as one argument.
        Tracker errors raised by handlers are rendered as
        "Error (<status_code>): <message>".
        """
        if not line.startswith("/"):
            return None

        try:
            parts = _split_args(line[1:])
        except ValueError as e:
            logger.debug("Cannot split command %r: %s", line, e)
            return "Unbalanced quotes in command."
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)

            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except TaskTrackerError as e:
            logger.debug("Command /%s failed: %s", name, e)
            return f"Error ({e.status_code}): {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _split_args(text: str) -> list[str]:
    # Only double quotes group; apostrophes stay literal ("Don't forget").
    lexer = shlex.shlex(text, posix=True)
    lexer.whitespace_split = True
    lexer.quotes = '"'
    lexer.commenters = ""
    return list(lexer)


# ---- parsing / formatting ----


def _parse_id(raw: str, what: str = "id") -> int:
    try:
        value = int(raw)
    except ValueError:
        raise InvalidRequestError(f"Invalid {what}: {raw!r}") from None
    if value <= 0:
        raise InvalidRequestError(f"Invalid {what}: {raw!r}")
    return value


def _parse_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise InvalidRequestError(f"Invalid date: {raw!r} (expected YYYY-MM-DD)") from None


def _fmt_project(p: Project) -> str:
    desc = f" - {p.description}" if p.description else ""
    return f"#{p.id} {p.name}{desc}"


def _fmt_task(t: Task, dependency_ids: list[int] | None = None) -> str:
    line = f"#{t.id} [{t.status.value}] ({t.priority.value}) {t.title}"
    if t.due_date is not None:
        line += f" due {t.due_date.isoformat()}"
    if dependency_ids:
        line += f" <- depends on {', '.join(str(d) for d in dependency_ids)}"
    return line


def _fmt_view(v: TaskView) -> str:
    return _fmt_task(v.task, v.dependency_ids)


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    store = state.task_store
    return (
        "Status:\n"
        f"  Database: {store.db_path}\n"
        f"  Projects: {store.count_projects()}\n"
        f"  Tasks: {store.count_tasks()}"
    )


_PROJECT_USAGE = (
    "Usage:\n"
    "  /project add <name> [description...]   (quote multi-word names: \"Big launch\")\n"
    "  /project list\n"
    "  /project show <id>\n"
    "  /project set <id> name|description <value...>\n"
    "  /project rm <id>"
)


def cmd_project(state: AppState, args: list[str]) -> str:
    if not args:
        return _PROJECT_USAGE

    sub = args[0].lower()
    svc = state.service

    if sub == "add" and len(args) >= 2:
        p = svc.create_project(args[1], " ".join(args[2:]))
        return f"Project created: {_fmt_project(p)}"

    if sub in ("list", "ls"):
        projects = svc.list_projects()
        if not projects:
            return "No projects yet."
        counts = svc.task_counts()
        return "\n".join(f"{_fmt_project(p)} ({counts.get(p.id, 0)} tasks)" for p in projects)

    if sub == "show" and len(args) == 2:
        p = svc.get_project(_parse_id(args[1], "project id"))
        limit = int(getattr(state.settings, "list_limit", 100))
        views = svc.list_tasks(p.id, limit=limit)
        lines = [_fmt_project(p)]
        lines.extend(f"  {_fmt_view(v)}" for v in views)
        return "\n".join(lines)

    if sub == "set" and len(args) >= 4:
        project_id = _parse_id(args[1], "project id")
        field_name = args[2].lower()
        value = " ".join(args[3:])

        if field_name == "name":
            p = svc.update_project(project_id, name=value)
        elif field_name in ("description", "desc"):
            p = svc.update_project(project_id, description=value)
        else:
            return _PROJECT_USAGE
        return f"Project updated: {_fmt_project(p)}"

    if sub in ("rm", "delete") and len(args) == 2:
        project_id = _parse_id(args[1], "project id")
        svc.delete_project(project_id)
        return f"Project #{project_id} deleted."

    return _PROJECT_USAGE


_TASK_USAGE = (
    "Usage:\n"
    "  /task add <project_id> <title...>\n"
    "  /task list <project_id> [status]\n"
    "  /task show <id>\n"
    "  /task set <id> status|priority|due|title <value...>\n"
    "  /task rm <id>"
)


def cmd_task(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return _TASK_USAGE

    sub = args[0].lower()
    svc = state.service

    if sub == "add" and len(args) >= 3:
        view = svc.create_task(_parse_id(args[1], "project id"), " ".join(args[2:]))
        return f"Task created: {_fmt_view(view)}"

    if sub in ("list", "ls") and len(args) in (2, 3):
        limit = int(getattr(state.settings, "list_limit", 100))
        status = TaskStatus.parse(args[2]) if len(args) == 3 else None
        views = svc.list_tasks(_parse_id(args[1], "project id"), status=status, limit=limit)
        if not views:
            if status is not None:
                return f"No {status.value} tasks in this project."
            return "No tasks in this project."
        return "\n".join(_fmt_view(v) for v in views)

    if sub == "show" and len(args) == 2:
        view = svc.get_task(_parse_id(args[1], "task id"))
        lines = [_fmt_view(view)]
        if view.task.description:
            lines.append(f"  {view.task.description}")
        return "\n".join(lines)

    if sub == "set" and len(args) >= 4:
        task_id = _parse_id(args[1], "task id")
        field_name = args[2].lower()
        value = " ".join(args[3:])

        if field_name == "status":
            view = svc.update_task(task_id, status=TaskStatus.parse(value))
        elif field_name == "priority":
            view = svc.update_task(task_id, priority=TaskPriority.parse(value))
        elif field_name == "due":
            view = svc.update_task(task_id, due_date=_parse_date(value))
        elif field_name == "title":
            view = svc.update_task(task_id, title=value)
        else:
            return _TASK_USAGE

        if emit and view.task.status == TaskStatus.DONE:
            dependents = svc.get_dependents(task_id)
            if dependents:
                emit(f"Unblocks: {', '.join(f'#{t.id}' for t in dependents)}")
        return f"Task updated: {_fmt_view(view)}"

    if sub in ("rm", "delete") and len(args) == 2:
        task_id = _parse_id(args[1], "task id")
        svc.delete_task(task_id)
        return f"Task #{task_id} deleted."

    return _TASK_USAGE


_DEP_USAGE = (
    "Usage:\n"
    "  /dep add <task> <dependency>\n"
    "  /dep rm <task> <dependency>\n"
    "  /dep list <task>\n"
    "  /dep dependents <task>\n"
    "  /dep ready <project_id>\n"
    "  /dep check"
)


def cmd_dep(state: AppState, args: list[str]) -> str:
    if not args:
        return _DEP_USAGE

    sub = args[0].lower()
    svc = state.service

    if sub == "add" and len(args) == 3:
        view = svc.add_dependency(_parse_id(args[1], "task id"), _parse_id(args[2], "dependency id"))
        return f"Dependency added: {_fmt_view(view)}"

    if sub in ("rm", "remove") and len(args) == 3:
        view = svc.remove_dependency(_parse_id(args[1], "task id"), _parse_id(args[2], "dependency id"))
        return f"Dependency removed: {_fmt_view(view)}"

    if sub in ("list", "ls") and len(args) == 2:
        task_id = _parse_id(args[1], "task id")
        deps = svc.get_dependencies(task_id)
        if not deps:
            return f"Task #{task_id} has no dependencies."
        check = svc.check_completion(task_id)
        lines = [f"Task #{task_id} depends on:"]
        lines.extend(f"  {_fmt_task(t)}" for t in deps)
        if check.allowed:
            lines.append("Ready to be marked done.")
        else:
            lines.append(f"Blocked by: {', '.join(str(b) for b in check.blocking)}")
        return "\n".join(lines)

    if sub == "dependents" and len(args) == 2:
        task_id = _parse_id(args[1], "task id")
        dependents = svc.get_dependents(task_id)
        if not dependents:
            return f"No task depends on #{task_id}."
        lines = [f"Tasks depending on #{task_id}:"]
        lines.extend(f"  {_fmt_task(t)}" for t in dependents)
        return "\n".join(lines)

    if sub == "ready" and len(args) == 2:
        ready = svc.ready_tasks(_parse_id(args[1], "project id"))
        if not ready:
            return "No open task is ready."
        return "\n".join(_fmt_task(t) for t in ready)

    if sub == "check" and len(args) == 1:
        g = svc.check_graph()
        return f"Dependency graph OK ({len(g)} edges, no cycles)."

    return _DEP_USAGE


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show database path and totals.")
registry.register(
    "project", cmd_project, help_text="Projects: /project add | list | show | set | rm.", aliases=["p"]
)
registry.register(
    "task", cmd_task, help_text="Tasks: /task add | list | show | set | rm.", aliases=["t"]
)
registry.register(
    "dep",
    cmd_dep,
    help_text="Dependencies: /dep add | rm | list | dependents | ready | check.",
    aliases=["d"],
)
