# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from task_tracker.core.state import AppState
from task_tracker.tasks.task_service import TaskService
from task_tracker.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="task-tracker-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        db_path=tmp_path / "tasks.sqlite3",
        log_dir=tmp_path,
        list_limit=50,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.db_path)


@pytest.fixture()
def service(store: TaskStore) -> TaskService:
    return TaskService(store)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, service: TaskService) -> AppState:
    """
    AppState wired with a real SQLite store in tmp_path.

    The store's transactional behaviour is part of what we want to test,
    so it is not faked here.
    """
    return AppState(settings=settings, task_store=store, service=service)
