# src/daybands/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

RoutineWeek = int | Literal["last"]


def new_instance_id(task_path: str, date_str: str | None) -> str:
    """Per-occurrence id; unique even for same-day duplicates of one task."""
    return f"{task_path}_{date_str or 'undated'}_{uuid.uuid4().hex[:12]}"


class TaskState(StrEnum):
    """
    Execution state of one task instance.

    Notes:
    - persisted data may carry other strings; those are kept as-is on the
      instance and sort after IDLE (see schedule.ordering.state_priority).
    """

    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"

    @classmethod
    def from_raw(cls, raw: str | None) -> TaskState:
        if not raw:
            return cls.IDLE
        try:
            return cls(raw)
        except ValueError:
            return cls.IDLE


class RoutineType(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(slots=True)
class RoutineRule:
    type: RoutineType
    interval: int = 1
    start: str | None = None  # YYYY-MM-DD, the rule's epoch
    end: str | None = None
    enabled: bool = True

    # weekly: weekday; monthly: week + weekday (0 = Sunday .. 6 = Saturday)
    weekday: int | None = None
    week: RoutineWeek | None = None

    # Multi-value variants; when non-empty they take precedence over the single fields.
    weekday_set: tuple[int, ...] = ()
    week_set: tuple[RoutineWeek, ...] = ()


@dataclass(slots=True)
class TaskDefinition:
    """Read-only view of a task note. `path` is the stable identity key."""

    title: str
    path: str
    is_routine: bool = False
    scheduled_time: str | None = None  # "HH:MM"
    rule: RoutineRule | None = None
    moved_target_date: str | None = None
    created_at: float | None = None


@dataclass(slots=True, eq=False)
class TaskInstance:
    task: TaskDefinition
    instance_id: str
    state: TaskState | str = TaskState.IDLE
    slot_key: str = "none"
    original_slot_key: str | None = None
    order: float | None = None

    start_time: datetime | None = None
    stop_time: datetime | None = None

    # Legacy placement flag kept for persisted data; ordering uses `order` only.
    manually_positioned: bool = False

    date: str | None = None
    created_at: float | None = None
    executed_title: str | None = None
    duration_seconds: int | None = None

    @property
    def title(self) -> str:
        return self.executed_title or self.task.title


@dataclass(slots=True)
class RunningRecord:
    """
    One entry of the persisted running snapshot.

    Unknown keys read from disk are kept in `extra` and written back untouched.
    """

    task_path: str
    start_time: str  # ISO 8601
    slot_key: str | None = None
    original_slot_key: str | None = None
    instance_id: str | None = None
    date: str | None = None
    task_title: str | None = None
    is_routine: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = (
        "taskPath",
        "startTime",
        "slotKey",
        "originalSlotKey",
        "instanceId",
        "date",
        "taskTitle",
        "isRoutine",
    )

    @classmethod
    def from_dict(cls, raw: Any) -> RunningRecord | None:
        if not isinstance(raw, dict):
            return None
        path = raw.get("taskPath")
        start = raw.get("startTime")
        if not isinstance(path, str) or not path or not isinstance(start, str) or not start:
            return None

        def _opt_str(key: str) -> str | None:
            v = raw.get(key)
            return v if isinstance(v, str) and v else None

        return cls(
            task_path=path,
            start_time=start,
            slot_key=_opt_str("slotKey"),
            original_slot_key=_opt_str("originalSlotKey"),
            instance_id=_opt_str("instanceId"),
            date=_opt_str("date"),
            task_title=_opt_str("taskTitle"),
            is_routine=raw.get("isRoutine") is True,
            extra={k: v for k, v in raw.items() if k not in cls._KNOWN},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        out.update(
            {
                "taskPath": self.task_path,
                "startTime": self.start_time,
                "slotKey": self.slot_key,
                "originalSlotKey": self.original_slot_key,
                "instanceId": self.instance_id,
                "date": self.date,
                "taskTitle": self.task_title,
                "isRoutine": self.is_routine,
            }
        )
        return {k: v for k, v in out.items() if v is not None}


@dataclass(frozen=True, slots=True)
class ExecutionRecord:
    id: int
    date: str
    title: str
    task_path: str | None
    instance_id: str | None
    slot_key: str
    start_time: datetime | None
    stop_time: datetime | None
    duration_seconds: int | None
    is_routine: bool
