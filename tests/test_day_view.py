# tests/test_day_view.py

from __future__ import annotations

from datetime import datetime

import pytest

from daybands.core.clock import FixedClock
from daybands.core.day_view import DayView
from daybands.tasks.task_models import ExecutionRecord, RoutineRule, RoutineType, RunningRecord, TaskState

from .fakes import FakeAliasRepo, FakeExecutionRepo, FakeRunningRepo, make_definition

DATE = "2025-09-22"
MORNING = "8:00-12:00"
AFTERNOON = "12:00-16:00"

DAILY = RoutineRule(type=RoutineType.DAILY)


def _execution(title: str, path: str | None, *, slot_key: str = MORNING, is_routine: bool = True) -> ExecutionRecord:
    return ExecutionRecord(
        id=1,
        date=DATE,
        title=title,
        task_path=path,
        instance_id=f"{title}-done",
        slot_key=slot_key,
        start_time=datetime(2025, 9, 22, 9, 0),
        stop_time=datetime(2025, 9, 22, 9, 30),
        duration_seconds=1800,
        is_routine=is_routine,
    )


@pytest.fixture()
def running_repo() -> FakeRunningRepo:
    return FakeRunningRepo()


@pytest.fixture()
def execution_repo() -> FakeExecutionRepo:
    return FakeExecutionRepo()


@pytest.fixture()
def view(
    clock: FixedClock,
    alias_repo: FakeAliasRepo,
    running_repo: FakeRunningRepo,
    execution_repo: FakeExecutionRepo,
) -> DayView:
    return DayView(
        clock=clock,
        alias_repo=alias_repo,
        running_repo=running_repo,
        execution_repo=execution_repo,
    )


def _titles(view: DayView) -> list[str]:
    return [i.title for i in view.instances]


def test_build_includes_due_routines_and_plain_tasks(view: DayView) -> None:
    defs = [
        make_definition("Stretch", is_routine=True, rule=DAILY, scheduled_time="07:00"),
        make_definition("Review", is_routine=True, rule=RoutineRule(type=RoutineType.WEEKLY, weekday=5)),
        make_definition("Shop", scheduled_time="13:00"),
        make_definition("Inbox"),
    ]

    view.build(DATE, defs)

    assert _titles(view) == ["Inbox", "Stretch", "Shop"]
    by_title = {i.title: i for i in view.instances}
    assert by_title["Stretch"].slot_key == "0:00-8:00"
    assert by_title["Inbox"].slot_key == "none"
    assert all(i.state == TaskState.IDLE and i.order is not None for i in view.instances)


def test_build_skips_deleted_paths(view: DayView) -> None:
    keep = make_definition("Keep")
    gone = make_definition("Gone")

    view.build(DATE, [keep, gone], deleted_paths=[gone.path])

    assert _titles(view) == ["Keep"]


def test_completed_routine_gets_no_extra_idle(view: DayView) -> None:
    stretch = make_definition("Stretch", is_routine=True, rule=DAILY, scheduled_time="07:00")

    view.build(DATE, [stretch], executions=[_execution("Stretch", stretch.path)])

    (only,) = view.instances
    assert only.state == TaskState.DONE
    assert only.slot_key == MORNING
    assert only.original_slot_key == "0:00-8:00"
    assert only.task is stretch


def test_renamed_routine_keeps_history() -> None:
    clock = FixedClock(datetime(2025, 9, 22, 11, 0))
    view = DayView(clock=clock, alias_repo=FakeAliasRepo({"Morning run": ["Run"]}))
    routine = make_definition("Morning run", is_routine=True, rule=DAILY)

    view.build(DATE, [routine], executions=[_execution("Run", None)])

    (only,) = view.instances
    assert only.state == TaskState.DONE
    assert only.task is routine
    assert only.title == "Run"


def test_orphaned_history_is_still_shown(view: DayView) -> None:
    view.build(DATE, [], executions=[_execution("Old note", "Old.md", is_routine=False)])

    (only,) = view.instances
    assert only.state == TaskState.DONE
    assert only.task.path == "Old.md"


def test_start_stop_persist_side_effects(
    view: DayView,
    clock: FixedClock,
    running_repo: FakeRunningRepo,
    execution_repo: FakeExecutionRepo,
) -> None:
    done_earlier = _execution("Stretch", "Stretch.md", is_routine=False)
    write = make_definition("Write")
    view.build(DATE, [write], executions=[done_earlier])
    inst = next(i for i in view.instances if i.task is write)

    view.start(inst)

    assert inst.slot_key == MORNING
    assert inst.original_slot_key == "none"
    assert [r.task_path for r in running_repo.records] == [write.path]
    assert _titles(view) == ["Stretch", "Write"]

    clock.advance(minutes=20)
    view.stop(inst)

    assert inst.state == TaskState.DONE
    assert inst.duration_seconds == 1200
    assert running_repo.records == []
    assert execution_repo.added == [(inst, DATE)]
    # completed after the earlier one, so listed after it
    assert _titles(view) == ["Stretch", "Write"]


def test_restore_after_restart_reads_snapshot(
    clock: FixedClock,
    alias_repo: FakeAliasRepo,
    running_repo: FakeRunningRepo,
) -> None:
    clock.set(datetime(2025, 9, 22, 14, 0))
    read = make_definition("Read", scheduled_time="09:00")
    running_repo.records = [
        RunningRecord(
            task_path=read.path,
            start_time="2025-09-22T13:10:00",
            slot_key=AFTERNOON,
            original_slot_key=MORNING,
            instance_id="read-1",
            date=DATE,
        )
    ]
    view = DayView(clock=clock, alias_repo=alias_repo, running_repo=running_repo)
    view.build(DATE, [read])

    restored = view.restore()

    (inst,) = restored
    assert inst.state == TaskState.RUNNING
    assert inst.slot_key == AFTERNOON
    assert inst.original_slot_key == MORNING
    assert inst.instance_id == "read-1"


def test_move_and_duplicate_keep_collection_sorted(view: DayView) -> None:
    a = make_definition("A", scheduled_time="13:00")
    b = make_definition("B", scheduled_time="14:00")
    c = make_definition("C", scheduled_time="09:00")
    view.build(DATE, [a, b, c])
    inst_c = next(i for i in view.instances if i.task is c)

    view.move(inst_c, AFTERNOON, 1)

    assert _titles(view) == ["A", "C", "B"]
    assert inst_c.original_slot_key == MORNING

    dup = view.duplicate(inst_c)
    assert _titles(view) == ["A", "C", "C", "B"]
    assert view.instances[2] is dup


def test_band_boundary_moves_idle_when_enabled(view: DayView, clock: FixedClock) -> None:
    early = make_definition("Early", scheduled_time="09:00")
    view.build(DATE, [early])
    clock.set(datetime(2025, 9, 22, 12, 1))

    moved = view.on_band_boundary()

    assert [i.title for i in moved] == ["Early"]
    assert view.instances[0].slot_key == AFTERNOON


def test_band_boundary_disabled(clock: FixedClock, alias_repo: FakeAliasRepo) -> None:
    view = DayView(clock=clock, alias_repo=alias_repo, auto_move_idle=False)
    view.build(DATE, [make_definition("Early", scheduled_time="09:00")])
    clock.set(datetime(2025, 9, 22, 12, 1))

    assert view.on_band_boundary() == []
    assert view.instances[0].slot_key == MORNING


def test_rename_routine_records_alias(view: DayView, alias_repo: FakeAliasRepo) -> None:
    assert view.rename_routine("Run", "Morning run") is True
    assert alias_repo.data == {"Morning run": ["Run"]}
