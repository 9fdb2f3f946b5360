# tests/test_ordering.py

from __future__ import annotations

import pytest

from daybands.schedule.order_keys import OrderKeyAllocator
from daybands.schedule.ordering import (
    duplicate_instance,
    group_by_slot,
    move_instance,
    sort_instances,
    state_priority,
)
from daybands.tasks.task_models import TaskState

from .fakes import make_instance

MORNING = "8:00-12:00"
AFTERNOON = "12:00-16:00"


def test_state_priority_dominates_order() -> None:
    a = make_instance("A", state=TaskState.DONE, slot_key=MORNING, order=200)
    b = make_instance("B", state=TaskState.RUNNING, slot_key=MORNING, order=10)
    c = make_instance("C", state=TaskState.IDLE, slot_key=MORNING, order=5)

    assert sort_instances([c, b, a]) == [a, b, c]


def test_unknown_state_sorts_after_idle() -> None:
    idle = make_instance("Idle", slot_key=MORNING, order=900)
    odd = make_instance("Odd", state="paused", slot_key=MORNING, order=1)

    assert state_priority("paused") > state_priority(TaskState.IDLE)
    assert sort_instances([odd, idle]) == [idle, odd]


def test_groups_none_first_then_bands_in_order() -> None:
    evening = make_instance("Evening", slot_key="16:00-0:00", order=1)
    night = make_instance("Night", slot_key="0:00-8:00", order=1)
    loose = make_instance("Loose", slot_key="none", order=1)
    stray = make_instance("Stray", slot_key="9:00-10:00", order=0)

    result = sort_instances([evening, night, loose, stray])

    assert result == [stray, loose, night, evening]
    groups = group_by_slot([evening, stray])
    assert groups["none"] == [stray]
    assert groups["16:00-0:00"] == [evening]


def test_keyless_instances_follow_keyed_ones_and_ties_are_stable() -> None:
    first = make_instance("First", slot_key=MORNING, order=100)
    second = make_instance("Second", slot_key=MORNING, order=100)
    keyless = make_instance("Keyless", slot_key=MORNING, order=None)

    assert sort_instances([keyless, first, second]) == [first, second, keyless]


def test_move_idle_between_peers(allocator: OrderKeyAllocator) -> None:
    a = make_instance("A", slot_key=AFTERNOON, order=100)
    b = make_instance("B", slot_key=AFTERNOON, order=200)
    done = make_instance("Done", state=TaskState.DONE, slot_key=AFTERNOON, order=150)
    mover = make_instance("Mover", slot_key=MORNING, order=100, scheduled_time="09:00")

    move_instance(mover, [a, b, done, mover], AFTERNOON, 1, allocator, natural_slot=MORNING)

    assert mover.slot_key == AFTERNOON
    assert mover.order == 150
    assert mover.original_slot_key == MORNING
    assert mover.manually_positioned is True
    assert sort_instances([a, b, done, mover]) == [done, a, mover, b]


def test_move_back_to_natural_band_clears_original(allocator: OrderKeyAllocator) -> None:
    mover = make_instance("Mover", slot_key=AFTERNOON, order=100, original_slot_key=MORNING)

    move_instance(mover, [mover], MORNING, 0, allocator, natural_slot=MORNING)

    assert mover.slot_key == MORNING
    assert mover.original_slot_key is None
    assert mover.order == 100


def test_move_clamps_index(allocator: OrderKeyAllocator) -> None:
    a = make_instance("A", slot_key=MORNING, order=100)
    mover = make_instance("Mover", slot_key="none", order=5)

    move_instance(mover, [a, mover], MORNING, 99, allocator)
    assert mover.order == 200

    move_instance(mover, [a, mover], MORNING, -3, allocator)
    assert mover.order == 0


def test_completed_instance_cannot_be_moved(allocator: OrderKeyAllocator) -> None:
    done = make_instance("Done", state=TaskState.DONE, slot_key=MORNING, order=100)

    with pytest.raises(ValueError):
        move_instance(done, [done], AFTERNOON, 0, allocator)
    assert done.slot_key == MORNING


def test_duplicate_lands_right_after_source(allocator: OrderKeyAllocator) -> None:
    a = make_instance("A", slot_key=MORNING, order=100)
    b = make_instance("B", slot_key=MORNING, order=200)
    instances = [a, b]

    dup = duplicate_instance(a, instances, allocator, date_str="2025-09-22")

    assert dup in instances
    assert dup.task is a.task
    assert dup.instance_id != a.instance_id
    assert dup.state == TaskState.IDLE
    assert dup.slot_key == MORNING
    assert sort_instances(instances) == [a, dup, b]


def test_duplicate_of_done_goes_first_among_idle(allocator: OrderKeyAllocator) -> None:
    done = make_instance("Done", state=TaskState.DONE, slot_key=MORNING, order=100)
    idle = make_instance("Idle", slot_key=MORNING, order=100)
    instances = [done, idle]

    dup = duplicate_instance(done, instances, allocator)

    assert dup.order == 0
    assert sort_instances(instances) == [done, dup, idle]


def test_sort_is_idempotent() -> None:
    items = [
        make_instance("A", state=TaskState.IDLE, slot_key=AFTERNOON, order=3),
        make_instance("B", state=TaskState.DONE, slot_key=MORNING, order=9),
        make_instance("C", state=TaskState.RUNNING, slot_key=AFTERNOON, order=50),
        make_instance("D", state=TaskState.IDLE, slot_key="none", order=None),
    ]
    once = sort_instances(items)

    assert sort_instances(once) == once
