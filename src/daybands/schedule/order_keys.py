# src/daybands/schedule/order_keys.py

"""
Fractional order keys inside one band.

A reorder writes a single instance's `order` (midpoint between its new
neighbours). Only when repeated inserts at the same point exhaust the gap
does a band get renumbered.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from typing import Any

from ..tasks.task_models import TaskInstance, TaskState
from .time_slots import NONE_SLOT, SLOT_KEYS, group_key

logger = logging.getLogger(__name__)

DEFAULT_STEP = 100
SEED_ORDER = 100


def _order_of(sibling: Any) -> float:
    if isinstance(sibling, (int, float)):
        return sibling
    return sibling.order


def allocate_order(
    target_index: int,
    siblings: Sequence[Any],
    *,
    step: int = DEFAULT_STEP,
) -> float:
    """
    Order key for inserting at `target_index` among `siblings`.

    `siblings` must already be sorted ascending by order and scoped to one band.
    Items are instances (anything with `.order`) or plain numbers.
    """
    if not siblings:
        return SEED_ORDER

    if target_index <= 0:
        return _order_of(siblings[0]) - step

    if target_index >= len(siblings):
        return _order_of(siblings[-1]) + step

    prev = _order_of(siblings[target_index - 1])
    nxt = _order_of(siblings[target_index])
    if nxt - prev > 1:
        return math.floor((prev + nxt) / 2)

    # Gap exhausted: renormalized-position key.
    return target_index * step + step // 2


def gap_exhausted(target_index: int, siblings: Sequence[Any]) -> bool:
    if target_index <= 0 or target_index >= len(siblings):
        return False
    return _order_of(siblings[target_index]) - _order_of(siblings[target_index - 1]) <= 1


def _has_order(inst: TaskInstance) -> bool:
    return isinstance(inst.order, (int, float)) and math.isfinite(inst.order)


def renormalize_orders(instances: Iterable[TaskInstance], *, step: int = DEFAULT_STEP) -> list[TaskInstance]:
    """
    Rewrite orders as step, 2*step, ... keeping the current sequence.

    Missing keys go last; equal keys are broken by title. Returns the new sequence.
    """
    ordered = sorted(
        instances,
        key=lambda inst: (inst.order if _has_order(inst) else math.inf, inst.task.title),
    )
    for i, inst in enumerate(ordered, start=1):
        inst.order = i * step
    return ordered


class OrderKeyAllocator:
    """
    allocate_order() plus the starvation policy.

    Renumbers a band when an exhausted gap yields a fallback key that does not
    land between the neighbours, or after `renormalize_after` consecutive
    fallback allocations in the same band.
    """

    def __init__(self, *, step: int = DEFAULT_STEP, renormalize_after: int = 3) -> None:
        self.step = step
        self.renormalize_after = max(1, int(renormalize_after))
        self._fallbacks: dict[str, int] = {}

    def fallback_count(self, slot_key: str) -> int:
        return self._fallbacks.get(slot_key, 0)

    def allocate(self, target_index: int, siblings: Iterable[TaskInstance], *, slot_key: str) -> float:
        working = list(siblings)
        if any(not _has_order(inst) for inst in working):
            working = renormalize_orders(working, step=self.step)
        else:
            working.sort(key=lambda inst: inst.order)

        index = min(max(target_index, 0), len(working))
        if not gap_exhausted(index, working):
            self._fallbacks[slot_key] = 0
            return allocate_order(index, working, step=self.step)

        key = allocate_order(index, working, step=self.step)
        count = self._fallbacks.get(slot_key, 0) + 1
        fits = working[index - 1].order < key < working[index].order
        if fits and count < self.renormalize_after:
            self._fallbacks[slot_key] = count
            logger.debug("Order gap exhausted slot=%s index=%s fallback=%s", slot_key, index, key)
            return key

        renormalize_orders(working, step=self.step)
        self._fallbacks[slot_key] = 0
        logger.debug("Renormalized %d orders in slot=%s", len(working), slot_key)
        return allocate_order(index, working, step=self.step)


# ---- seeding missing keys ----


def normalize_state(state: Any) -> TaskState:
    if state == TaskState.DONE:
        return TaskState.DONE
    if state == TaskState.RUNNING:
        return TaskState.RUNNING
    return TaskState.IDLE


def scheduled_minutes(inst: TaskInstance) -> int | None:
    value = inst.task.scheduled_time
    if not isinstance(value, str):
        return None
    hours, _, minutes = value.partition(":")
    try:
        return int(hours) * 60 + int(minutes)
    except ValueError:
        return None


def ensure_orders_for_slot(
    instances: Iterable[TaskInstance],
    slot_key: str,
    *,
    force_done: bool = False,
    step: int = DEFAULT_STEP,
) -> None:
    """
    Give every instance of one band an order key.

    - done: by start time from SEED_ORDER up (always when force_done)
    - running without a key: after the band's current maximum
    - idle without a key: scheduled ones after the maximum by scheduled time,
      unscheduled ones below the minimum by creation time
    """
    members = [inst for inst in instances if group_key(inst.slot_key) == slot_key]
    if not members:
        return

    done = [i for i in members if normalize_state(i.state) == TaskState.DONE]
    running = [i for i in members if normalize_state(i.state) == TaskState.RUNNING]
    idle = [i for i in members if normalize_state(i.state) == TaskState.IDLE]

    known: list[float] = []

    def assign(items: list[TaskInstance], start: float, delta: int) -> None:
        cursor = start
        for inst in items:
            inst.order = cursor
            known.append(cursor)
            cursor += delta

    if force_done or any(not _has_order(i) for i in done):
        by_start = sorted(done, key=lambda i: i.start_time.timestamp() if i.start_time else math.inf)
        assign(by_start, SEED_ORDER, step)
    else:
        known.extend(i.order for i in done)  # type: ignore[misc]

    known.extend(i.order for i in running if _has_order(i))  # type: ignore[misc]
    running_missing = [i for i in running if not _has_order(i)]
    if running_missing:
        running_missing.sort(key=lambda i: i.start_time.timestamp() if i.start_time else 0.0)
        assign(running_missing, max(known, default=0) + step, step)

    known.extend(i.order for i in idle if _has_order(i))  # type: ignore[misc]
    idle_missing = [i for i in idle if not _has_order(i)]
    if not idle_missing:
        return

    unscheduled = [i for i in idle_missing if scheduled_minutes(i) is None]
    scheduled = [i for i in idle_missing if scheduled_minutes(i) is not None]

    if unscheduled:
        unscheduled.sort(
            key=lambda i: (
                i.created_at if i.created_at is not None else -math.inf,
                i.task.title,
                i.instance_id,
            )
        )
        start = min(known) - step if known else SEED_ORDER
        assign(unscheduled, start, -step)

    if scheduled:
        scheduled.sort(key=lambda i: (scheduled_minutes(i), i.task.title))
        assign(scheduled, max(known, default=0) + step, step)


def ensure_orders_across_slots(
    instances: Sequence[TaskInstance],
    *,
    force_done: bool = False,
    step: int = DEFAULT_STEP,
) -> None:
    for slot_key in (NONE_SLOT, *SLOT_KEYS):
        ensure_orders_for_slot(instances, slot_key, force_done=force_done, step=step)
