# src/daybands/core/day_view.py

"""
One host view of one calendar day.

DayView wires the pieces together for a view's lifetime:
- builds the day's instances (due routines, plain tasks, completed history),
- reconciles them with the running snapshot after a restart,
- forwards user actions (start, stop, drag, duplicate) and keeps the
  collection sorted after each of them,
- persists side effects (running snapshot, execution history) best-effort.

Persistence failures never undo an in-memory change; they are logged.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from ..routine.aliases import AliasChainResolver, WarningSink
from ..routine.recurrence import is_due
from ..schedule.order_keys import DEFAULT_STEP, OrderKeyAllocator, ensure_orders_across_slots, normalize_state
from ..schedule.ordering import duplicate_instance, move_instance, same_state_peers, sort_instances
from ..schedule.time_slots import group_key, natural_slot
from ..tasks.slot_tracker import SlotAssignmentTracker
from ..tasks.task_models import (
    ExecutionRecord,
    RunningRecord,
    TaskDefinition,
    TaskInstance,
    TaskState,
    new_instance_id,
)
from .ports import AliasRepo, Clock, ExecutionRepo, RunningRepo

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DayView:
    clock: Clock
    alias_repo: AliasRepo
    running_repo: RunningRepo | None = None
    execution_repo: ExecutionRepo | None = None

    step: int = DEFAULT_STEP
    renormalize_after: int = 3
    auto_move_idle: bool = True
    on_warning: WarningSink | None = None

    date_str: str | None = None
    instances: list[TaskInstance] = field(default_factory=list)

    aliases: AliasChainResolver = field(init=False)
    allocator: OrderKeyAllocator = field(init=False)
    tracker: SlotAssignmentTracker = field(init=False)

    def __post_init__(self) -> None:
        self.aliases = AliasChainResolver(self.alias_repo, on_warning=self.on_warning)
        self.allocator = OrderKeyAllocator(step=self.step, renormalize_after=self.renormalize_after)
        self.tracker = SlotAssignmentTracker(self.clock, step=self.step)

    # ---- building ----

    def build(
        self,
        date_str: str,
        definitions: Iterable[TaskDefinition],
        executions: Iterable[ExecutionRecord] = (),
        deleted_paths: Iterable[str] = (),
    ) -> list[TaskInstance]:
        """
        Rebuild the day's instances from scratch.

        Completed instances come from `executions`; idle ones from due routines
        and every non-routine definition. A routine already completed that day
        gets no extra idle instance.
        """
        self.aliases.load()
        deleted = set(deleted_paths)
        defs = [d for d in definitions if d.path not in deleted]

        instances: list[TaskInstance] = []
        completed_paths: set[str] = set()

        for record in executions:
            if record.task_path and record.task_path in deleted:
                continue
            inst = self._completed_instance(record, defs, date_str)
            instances.append(inst)
            if inst.task.is_routine:
                completed_paths.add(inst.task.path)

        for definition in defs:
            if definition.is_routine:
                if not is_due(date_str, definition.rule, definition.moved_target_date):
                    continue
                if definition.path in completed_paths:
                    continue
            instances.append(
                TaskInstance(
                    task=definition,
                    instance_id=new_instance_id(definition.path, date_str),
                    state=TaskState.IDLE,
                    slot_key=natural_slot(definition.scheduled_time),
                    date=date_str,
                    created_at=definition.created_at,
                )
            )

        ensure_orders_across_slots(instances, step=self.step)
        self.date_str = date_str
        self.instances = sort_instances(instances)

        logger.info(
            "Built day view date=%s instances=%d completed=%d",
            date_str,
            len(self.instances),
            sum(1 for i in self.instances if i.state == TaskState.DONE),
        )
        return self.instances

    def _match_definition(
        self,
        record: ExecutionRecord,
        definitions: Sequence[TaskDefinition],
    ) -> TaskDefinition | None:
        if record.task_path:
            for d in definitions:
                if d.path == record.task_path:
                    return d
        names = set(self.aliases.get_all_possible_names(record.title))
        for d in definitions:
            if d.title in names:
                return d
        return None

    def _completed_instance(
        self,
        record: ExecutionRecord,
        definitions: Sequence[TaskDefinition],
        date_str: str,
    ) -> TaskInstance:
        definition = self._match_definition(record, definitions)
        if definition is None:
            # History of a task whose note is gone; shown under its logged title.
            definition = TaskDefinition(
                title=record.title,
                path=record.task_path or record.title,
                is_routine=record.is_routine,
            )

        slot = group_key(record.slot_key)
        natural = natural_slot(definition.scheduled_time)
        return TaskInstance(
            task=definition,
            instance_id=record.instance_id or new_instance_id(definition.path, date_str),
            state=TaskState.DONE,
            slot_key=slot,
            original_slot_key=natural if natural != slot else None,
            start_time=record.start_time,
            stop_time=record.stop_time,
            date=date_str,
            executed_title=record.title,
            duration_seconds=record.duration_seconds,
        )

    def restore(
        self,
        records: Iterable[RunningRecord] | None = None,
        *,
        deleted_paths: Iterable[str] = (),
    ) -> list[TaskInstance]:
        """Promote instances that were running before a restart; reads the snapshot when no records are given."""
        if records is None:
            if self.running_repo is None or self.date_str is None:
                return []
            records = self.running_repo.load_for_date(self.date_str)

        restored = self.tracker.restore_running(self.instances, records, deleted_paths=deleted_paths)
        if restored:
            self._resort()
        return restored

    # ---- user actions ----

    def start(self, instance: TaskInstance) -> TaskInstance:
        self.tracker.start(instance, view_date=self.date_str)
        self._place_last_among_state(instance)
        self._save_running()
        self._resort()
        return instance

    def stop(self, instance: TaskInstance) -> TaskInstance:
        self.tracker.stop(instance)
        self._place_last_among_state(instance)
        self._record_execution(instance)
        self._save_running()
        self._resort()
        return instance

    def move(self, instance: TaskInstance, target_slot: str, target_index: int) -> TaskInstance:
        move_instance(
            instance,
            self.instances,
            target_slot,
            target_index,
            self.allocator,
            natural_slot=natural_slot(instance.task.scheduled_time),
        )
        if normalize_state(instance.state) == TaskState.RUNNING:
            self._save_running()
        self._resort()
        return instance

    def duplicate(self, instance: TaskInstance) -> TaskInstance:
        dup = duplicate_instance(instance, self.instances, self.allocator, date_str=self.date_str)
        self._resort()
        return dup

    def rename_routine(self, old_name: str, new_name: str) -> bool:
        return self.aliases.add_alias(new_name, old_name)

    def on_band_boundary(self) -> list[TaskInstance]:
        """Called by the host at time_slots.next_boundary(); moves overdue idle instances."""
        if not self.auto_move_idle:
            return []
        moved = self.tracker.move_overdue_idle(self.instances, view_date=self.date_str)
        if moved:
            self._resort()
        return moved

    def sorted(self) -> list[TaskInstance]:
        return sort_instances(self.instances)

    # ---- internals ----

    def _resort(self) -> None:
        self.instances[:] = sort_instances(self.instances)

    def _place_last_among_state(self, instance: TaskInstance) -> None:
        slot = group_key(instance.slot_key)
        state = normalize_state(instance.state)
        peers = same_state_peers(self.instances, exclude=instance, slot_key=slot, state=state)
        instance.order = self.allocator.allocate(len(peers), peers, slot_key=slot)

    def _save_running(self) -> None:
        if self.running_repo is None:
            return
        try:
            self.running_repo.save(self.tracker.snapshot_running(self.instances), view_date=self.date_str)
        except OSError:
            logger.warning("Failed to save running snapshot", exc_info=True)

    def _record_execution(self, instance: TaskInstance) -> None:
        if self.execution_repo is None:
            return
        date_str = self.date_str or instance.date
        if not date_str:
            logger.warning("No date for completed instance=%s; execution not recorded", instance.instance_id)
            return
        try:
            self.execution_repo.add_execution(instance, date_str=date_str)
        except (OSError, sqlite3.Error):
            logger.exception("Failed to record execution instance=%s", instance.instance_id)


__all__ = ["DayView"]
