# src/task_tracker/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "task_tracker.log"

# Handlers installed here carry this name so a second call replaces them.
_HANDLER_NAME = "task_tracker"


class _TrackerConsoleFilter(logging.Filter):
    """
    Keep the REPL readable while commands print their replies to stdout:
    - task_tracker records pass (level is set on the handler)
    - captured warnings ('py.warnings') and other libraries only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == "task_tracker" or name.startswith("task_tracker."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/task_tracker",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Send tracker logs to stderr (filtered) and to <log_dir>/task_tracker.log.

    cli.main calls this before building AppState, so the store's schema
    and migration messages land in the file. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        if h.get_name() == _HANDLER_NAME:
            root.removeHandler(h)
            h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.set_name(_HANDLER_NAME)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_TrackerConsoleFilter())
    root.addHandler(console)

    # Full DEBUG trail: edge diffs, no-op dependency adds, row deletes.
    to_file = logging.FileHandler(str(log_file), encoding="utf-8")
    to_file.set_name(_HANDLER_NAME)
    to_file.setLevel(file_level)
    to_file.setFormatter(fmt)
    root.addHandler(to_file)

    logging.captureWarnings(True)
    return log_file
