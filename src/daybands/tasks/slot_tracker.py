# src/daybands/tasks/slot_tracker.py

from __future__ import annotations

"""
Slot assignment while tasks run.

A band shows where execution actually happened, not where the task was
scheduled:
- start: the instance jumps to the current band (its natural band is kept in
  original_slot_key),
- stop: it stays in the band it ran in,
- restart: instances that were running come back in their execution band,
  never in their nominal one,
- band boundary: idle instances left in a past band follow the clock.

Every mutation sets all affected fields before returning, so a sort right
after it never sees a half-updated instance.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime

from ..core.ports import Clock
from ..routine.recurrence import parse_date
from ..schedule.order_keys import DEFAULT_STEP, SEED_ORDER, normalize_state
from ..schedule.time_slots import group_key, is_valid_slot_key, slot_for_datetime, slot_index
from .task_models import RunningRecord, TaskInstance, TaskState

logger = logging.getLogger(__name__)

_DAY_SECONDS = 24 * 60 * 60


def parse_start_time(raw: str | None) -> datetime | None:
    """ISO timestamp -> naive local datetime (aware values are converted)."""
    if not raw:
        return None
    try:
        dt = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def cross_day_duration(start: datetime | None, stop: datetime | None) -> int:
    """Seconds between start and stop; a stop "before" the start wrapped past midnight."""
    if start is None or stop is None:
        return 0
    seconds = (stop - start).total_seconds()
    if seconds < 0:
        seconds += _DAY_SECONDS
    return int(seconds)


class SlotAssignmentTracker:
    def __init__(self, clock: Clock, *, step: int = DEFAULT_STEP) -> None:
        self._clock = clock
        self._step = step

    # ---- start / stop ----

    def start(self, instance: TaskInstance, *, view_date: str | None = None) -> TaskInstance:
        now = self._clock.now()
        viewed = parse_date(view_date) if view_date else None
        if viewed is not None and viewed > now.date():
            raise ValueError("cannot start a task on a future date")
        if normalize_state(instance.state) != TaskState.IDLE:
            raise ValueError(f"instance {instance.instance_id} is already {instance.state}")

        slot = slot_for_datetime(now)
        original = instance.original_slot_key
        if instance.slot_key != slot and original is None:
            original = instance.slot_key

        instance.original_slot_key = original
        instance.slot_key = slot
        instance.state = TaskState.RUNNING
        instance.start_time = now
        instance.stop_time = None

        logger.info(
            "Started instance=%s slot=%s original=%s",
            instance.instance_id,
            slot,
            original,
        )
        return instance

    def stop(self, instance: TaskInstance) -> TaskInstance:
        if normalize_state(instance.state) != TaskState.RUNNING:
            raise ValueError(f"instance {instance.instance_id} is not running")

        now = self._clock.now()
        instance.state = TaskState.DONE
        instance.stop_time = now
        instance.duration_seconds = cross_day_duration(instance.start_time, now)
        if not (instance.executed_title or "").strip():
            instance.executed_title = instance.task.title

        logger.info(
            "Stopped instance=%s slot=%s duration=%ss",
            instance.instance_id,
            instance.slot_key,
            instance.duration_seconds,
        )
        return instance

    # ---- restart reconciliation ----

    def restore_running(
        self,
        instances: Sequence[TaskInstance],
        records: Iterable[RunningRecord],
        *,
        deleted_paths: Iterable[str] = (),
    ) -> list[TaskInstance]:
        """
        Promote freshly rebuilt idle instances back to running.

        Per record: an idle instance with the record's instance id, else one
        with the same path already in the record's band, else any idle one with
        the same path (moved into that band). No match means the occurrence
        finished or was deleted meanwhile; nothing is fabricated.
        """
        deleted = set(deleted_paths)
        restored: list[TaskInstance] = []

        for record in records:
            if record.task_path in deleted:
                logger.debug("Skipping running record for deleted path=%s", record.task_path)
                continue

            started = parse_start_time(record.start_time)
            if started is None:
                logger.warning("Unreadable start time in running record path=%s", record.task_path)
                continue

            slot = record.slot_key
            if not is_valid_slot_key(slot, include_none=False):
                slot = slot_for_datetime(started)

            match = self._find_idle_match(instances, record, slot)
            if match is None:
                logger.info("No idle instance to restore for path=%s slot=%s", record.task_path, slot)
                continue

            match.slot_key = slot
            match.state = TaskState.RUNNING
            match.start_time = started
            match.stop_time = None
            match.original_slot_key = record.original_slot_key or record.slot_key or slot
            if record.instance_id:
                match.instance_id = record.instance_id
            restored.append(match)

            logger.info("Restored running instance=%s slot=%s", match.instance_id, slot)

        return restored

    @staticmethod
    def _find_idle_match(
        instances: Sequence[TaskInstance],
        record: RunningRecord,
        slot: str,
    ) -> TaskInstance | None:
        idle = [i for i in instances if i.state == TaskState.IDLE]
        if record.instance_id:
            for inst in idle:
                if inst.instance_id == record.instance_id:
                    return inst
        same_path = [i for i in idle if i.task.path == record.task_path]
        for inst in same_path:
            if inst.slot_key == slot:
                return inst
        return same_path[0] if same_path else None

    def snapshot_running(self, instances: Iterable[TaskInstance]) -> list[RunningRecord]:
        """Running instances as records for the persisted snapshot."""
        out: list[RunningRecord] = []
        for inst in instances:
            if normalize_state(inst.state) != TaskState.RUNNING:
                continue
            started = inst.start_time or self._clock.now()
            out.append(
                RunningRecord(
                    task_path=inst.task.path,
                    start_time=started.astimezone().isoformat(),
                    slot_key=inst.slot_key,
                    original_slot_key=inst.original_slot_key,
                    instance_id=inst.instance_id,
                    date=started.date().isoformat(),
                    task_title=inst.task.title,
                    is_routine=inst.task.is_routine,
                )
            )
        return out

    # ---- band boundary ----

    def move_overdue_idle(
        self,
        instances: Sequence[TaskInstance],
        *,
        now: datetime | None = None,
        view_date: str | None = None,
    ) -> list[TaskInstance]:
        """
        Move idle instances sitting in an already-passed band into the current one.

        Only applies to today's view. Movers keep their relative order and go on
        top of the current band's idle instances. Running/done instances and the
        unbanded group stay where they are.
        """
        now = now or self._clock.now()
        if view_date is not None and parse_date(view_date) != now.date():
            return []

        target = slot_for_datetime(now)
        target_idx = slot_index(target)

        movers = [
            i
            for i in instances
            if i.state == TaskState.IDLE and 0 <= slot_index(group_key(i.slot_key)) < target_idx
        ]
        if not movers:
            return []
        movers.sort(key=lambda i: (slot_index(i.slot_key), i.order if i.order is not None else 0.0))

        resident = sorted(
            (i.order for i in instances if i.state == TaskState.IDLE and i.slot_key == target and i.order is not None),
        )
        base = resident[0] if resident else SEED_ORDER + self._step * len(movers)

        for k, inst in enumerate(reversed(movers), start=1):
            if inst.original_slot_key is None:
                inst.original_slot_key = inst.slot_key
            inst.slot_key = target
            inst.order = base - k * self._step

        logger.info("Moved %d idle instance(s) into slot=%s", len(movers), target)
        return movers


__all__ = ["SlotAssignmentTracker", "cross_day_duration", "parse_start_time"]
