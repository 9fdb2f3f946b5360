# src/daybands/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing is required at import time; every value has a local default.
- Components take explicit values too, so tests never need the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "DAYBANDS"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    alias_path: Path
    running_path: Path
    executions_db_path: Path

    # ---- Ordering ----
    order_step: int
    renormalize_after: int

    # ---- Slot tracking ----
    auto_move_idle: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="daybands") or "daybands"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/daybands"))
        alias_path = _env_path(_k("ALIAS_PATH"), data_dir / "routine-aliases.json")
        running_path = _env_path(_k("RUNNING_PATH"), data_dir / "running-task.json")
        executions_db_path = _env_path(_k("EXECUTIONS_DB_PATH"), data_dir / "executions.sqlite3")

        # Non-positive values would make the allocator loop on the same key.
        order_step = max(2, _env_int(_k("ORDER_STEP"), 100))
        renormalize_after = max(1, _env_int(_k("RENORMALIZE_AFTER"), 3))

        auto_move_idle = _env_bool(_k("AUTO_MOVE_IDLE"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            alias_path=alias_path,
            running_path=running_path,
            executions_db_path=executions_db_path,
            order_step=order_step,
            renormalize_after=renormalize_after,
            auto_move_idle=auto_move_idle,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
