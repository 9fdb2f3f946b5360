# src/daybands/schedule/ordering.py

"""
Display order of a day's instances.

Groups by band ("none" first, then bands in caller order); inside a band the
state decides first (done, running, idle, anything else) and the order key
second. Python's sort is stable, so equal keys keep their insertion order.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, MutableSequence, Sequence

from ..tasks.task_models import TaskInstance, TaskState, new_instance_id
from .order_keys import OrderKeyAllocator, normalize_state
from .time_slots import NONE_SLOT, SLOT_KEYS, group_key

logger = logging.getLogger(__name__)

_STATE_PRIORITY = {
    TaskState.DONE: 0,
    TaskState.RUNNING: 1,
    TaskState.IDLE: 2,
}
_UNKNOWN_STATE_PRIORITY = 3


def state_priority(state: object) -> int:
    return _STATE_PRIORITY.get(state, _UNKNOWN_STATE_PRIORITY)  # type: ignore[call-overload]


def _sort_key(inst: TaskInstance) -> tuple[int, int, float]:
    # Instances without a key go after keyed ones of the same state.
    if inst.order is None:
        return state_priority(inst.state), 1, 0.0
    return state_priority(inst.state), 0, inst.order


def group_by_slot(
    instances: Iterable[TaskInstance],
    band_keys: Sequence[str] = SLOT_KEYS,
) -> dict[str, list[TaskInstance]]:
    groups: dict[str, list[TaskInstance]] = {NONE_SLOT: []}
    for key in band_keys:
        groups.setdefault(key, [])
    for inst in instances:
        key = inst.slot_key if inst.slot_key in band_keys else NONE_SLOT
        groups[key].append(inst)
    return groups


def sort_instances(
    instances: Iterable[TaskInstance],
    band_keys: Sequence[str] = SLOT_KEYS,
) -> list[TaskInstance]:
    groups = group_by_slot(instances, band_keys)
    out: list[TaskInstance] = []
    for key in (NONE_SLOT, *band_keys):
        out.extend(sorted(groups.pop(key, []), key=_sort_key))
    return out


def same_state_peers(
    instances: Iterable[TaskInstance],
    *,
    exclude: TaskInstance,
    slot_key: str,
    state: TaskState,
) -> list[TaskInstance]:
    return sorted(
        (
            i
            for i in instances
            if i is not exclude and group_key(i.slot_key) == slot_key and normalize_state(i.state) == state
        ),
        key=_sort_key,
    )


def move_instance(
    instance: TaskInstance,
    instances: Sequence[TaskInstance],
    target_slot: str,
    target_index: int,
    allocator: OrderKeyAllocator,
    *,
    natural_slot: str | None = None,
) -> TaskInstance:
    """
    Drag `instance` to position `target_index` of `target_slot`.

    The index counts only instances of the same state in that band (a dragged
    idle task cannot land among done ones). Completed instances stay put.
    """
    state = normalize_state(instance.state)
    if state == TaskState.DONE:
        raise ValueError("completed instances cannot be moved")

    target = group_key(target_slot)
    peers = same_state_peers(instances, exclude=instance, slot_key=target, state=state)
    index = max(0, min(int(target_index), len(peers)))
    order = allocator.allocate(index, peers, slot_key=target)

    previous_slot = instance.slot_key
    if state == TaskState.IDLE and natural_slot is not None:
        if target == natural_slot:
            instance.original_slot_key = None
        elif instance.original_slot_key is None:
            instance.original_slot_key = natural_slot

    instance.slot_key = target
    instance.order = order
    instance.manually_positioned = True

    logger.info(
        "Moved instance=%s %s -> %s index=%s order=%s",
        instance.instance_id,
        previous_slot,
        target,
        index,
        order,
    )
    return instance


def duplicate_instance(
    instance: TaskInstance,
    instances: MutableSequence[TaskInstance],
    allocator: OrderKeyAllocator,
    *,
    date_str: str | None = None,
) -> TaskInstance:
    """Idle copy of `instance` placed right after it (or first among idle when it already ran)."""
    slot = group_key(instance.slot_key)
    dup = TaskInstance(
        task=instance.task,
        instance_id=new_instance_id(instance.task.path, date_str or instance.date),
        state=TaskState.IDLE,
        slot_key=slot,
        original_slot_key=instance.original_slot_key,
        date=date_str or instance.date,
        created_at=time.time(),
    )

    peers = same_state_peers(instances, exclude=dup, slot_key=slot, state=TaskState.IDLE)
    index = peers.index(instance) + 1 if instance in peers else 0
    dup.order = allocator.allocate(index, peers, slot_key=slot)

    instances.append(dup)
    logger.info("Duplicated instance=%s as %s slot=%s", instance.instance_id, dup.instance_id, slot)
    return dup
