# src/daybands/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
The host's file layer (aliases, running snapshot, execution history) stays
swappable, and tests plug in in-memory fakes and a fixed clock.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Protocol


class Clock(Protocol):
    """Wall-clock source (local time)."""

    def now(self) -> datetime: ...


class AliasRepo(Protocol):
    """Where the alias-chain document lives: {current_name: [former names]}."""

    def load(self) -> dict[str, list[str]]: ...
    def save(self, aliases: dict[str, list[str]]) -> None: ...


class RunningRepo(Protocol):
    def load_for_date(self, date_str: str) -> list[Any]: ...
    def save(self, running_instances: Iterable[Any], view_date: str | None = None) -> None: ...
    def delete_by_instance_or_path(
            self,
            *,
            instance_id: str | None = None,
            task_path: str | None = None,
    ) -> int: ...


class ExecutionRepo(Protocol):
    def add_execution(self, instance: Any, *, date_str: str) -> int: ...
    def list_for_date(self, date_str: str) -> list[Any]: ...
