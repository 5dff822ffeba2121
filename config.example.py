# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKTRACKER_APP_NAME": "App display name (default: task-tracker).",
    "TASKTRACKER_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Paths (gitignored)
    "TASKTRACKER_DATA_DIR": "Local data directory (default: .local/task_tracker).",
    "TASKTRACKER_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    "TASKTRACKER_LOG_DIR": "Directory for task_tracker.log (default: <data_dir>).",
    # Listing
    "TASKTRACKER_LIST_LIMIT": "Max tasks shown by /task list and /project show (default: 100).",
}
