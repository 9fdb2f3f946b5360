# src/daybands/bootstrap.py

"""
Composition root.

- loads settings once (or takes them injected),
- ensures the local data directory exists,
- wires the file/SQLite stores and the clock into a DayView.
"""

from __future__ import annotations

import logging

from .config import Settings, get_settings
from .core.clock import SystemClock
from .core.day_view import DayView
from .core.ports import Clock
from .logging_setup import setup_logging
from .routine.aliases import WarningSink
from .storage.alias_store import AliasStore
from .storage.execution_store import ExecutionStore
from .storage.running_store import RunningStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.alias_path.parent.mkdir(parents=True, exist_ok=True)
    settings.running_path.parent.mkdir(parents=True, exist_ok=True)
    settings.executions_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_day_view(
    *,
    settings: Settings | None = None,
    clock: Clock | None = None,
    on_warning: WarningSink | None = None,
    configure_logging: bool = False,
) -> DayView:
    """
    Build a DayView backed by the configured stores.

    If settings is None, falls back to get_settings().
    Hosts pass configure_logging=True once at startup; tests leave logging alone.
    """
    if settings is None:
        settings = get_settings()

    if configure_logging:
        level = logging.getLevelName(settings.log_level.upper())
        setup_logging(
            log_dir=settings.data_dir / "logs",
            console_level=level if isinstance(level, int) else logging.INFO,
        )

    _ensure_local_dirs(settings)

    view = DayView(
        clock=clock or SystemClock(),
        alias_repo=AliasStore(settings.alias_path),
        running_repo=RunningStore(settings.running_path),
        execution_repo=ExecutionStore(settings.executions_db_path),
        step=settings.order_step,
        renormalize_after=settings.renormalize_after,
        auto_move_idle=settings.auto_move_idle,
        on_warning=on_warning,
    )
    logger.debug("DayView created data_dir=%s", settings.data_dir)
    return view
