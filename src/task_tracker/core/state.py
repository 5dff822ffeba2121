# src/task_tracker/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_service import TaskService
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Settings object (config.Settings or a test stand-in).
    settings: Any

    task_store: TaskStore
    service: TaskService

    # Serializes command handling when several front-ends share one state.
    lock: threading.Lock = field(default_factory=threading.Lock)
