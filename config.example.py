# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a
local .env file, read with python-dotenv). Every variable has a default.

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "DAYBANDS_APP_NAME": "App display name (default: daybands).",
    "DAYBANDS_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "DAYBANDS_DATA_DIR": "Local data directory (default: .local/daybands).",
    "DAYBANDS_ALIAS_PATH": "Routine alias JSON (default: <data_dir>/routine-aliases.json).",
    "DAYBANDS_RUNNING_PATH": "Running-task snapshot JSON (default: <data_dir>/running-task.json).",
    "DAYBANDS_EXECUTIONS_DB_PATH": "Execution history SQLite path (default: <data_dir>/executions.sqlite3).",
    # Ordering
    "DAYBANDS_ORDER_STEP": "Spacing between seeded order keys (default: 100, minimum 2).",
    "DAYBANDS_RENORMALIZE_AFTER": (
        "Consecutive exhausted-gap inserts in one band before it is renumbered (default: 3)."
    ),
    # Slot tracking
    "DAYBANDS_AUTO_MOVE_IDLE": "Move idle tasks out of past bands at band boundaries (true/false).",
}
