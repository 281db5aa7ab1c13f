# tests/test_columns.py

from __future__ import annotations

import datetime as dt

import pytest

from tasklane.board.columns import (
    BACKLOG,
    ContainerKind,
    DropEvent,
    Lane,
    container_filter,
    parse_container,
    resolve_drop,
)
from tasklane.core.dates import UTC
from tasklane.core.errors import ValidationError
from tasklane.tasks.task_models import Task, TaskStatus

from .fakes import MONDAY, day_at

WED = MONDAY + dt.timedelta(days=2)


def _t(task_id: int, *, date: dt.datetime | None = None, order: int = 0, status=TaskStatus.PENDING) -> Task:
    return Task(id=task_id, workspace_id="ws1", name=f"t{task_id}", date=date, order=order, status=status)


def _by_id(mutation) -> dict[int, dict]:
    return {u.task_id: u.updates for u in mutation.updates}


def test_parse_container_kinds() -> None:
    assert parse_container("backlog").kind == ContainerKind.BACKLOG
    assert parse_container("in-progress").lane == Lane.IN_PROGRESS
    day = parse_container("2026-10-21")
    assert day.kind == ContainerKind.DAY
    assert day.day == WED
    with pytest.raises(ValidationError):
        parse_container("someday")


def test_same_day_drop_is_noop_regardless_of_time() -> None:
    t = _t(1, date=day_at(WED, 15), order=0)
    event = DropEvent(source="2026-10-21", target="2026-10-21", task=t, target_items=[_t(2, date=day_at(WED)), t])

    assert resolve_drop(event, UTC) is None


def test_backlog_to_backlog_is_noop() -> None:
    t = _t(1, order=2)
    event = DropEvent(source=BACKLOG, target=BACKLOG, task=t, target_items=[t, _t(2), _t(3)])

    assert resolve_drop(event, UTC) is None


def test_drop_backlog_task_into_wednesday_writes_whole_column() -> None:
    t = _t(10, order=2)
    a = _t(11, date=day_at(WED), order=0)
    b = _t(12, date=day_at(WED), order=1)
    rest = [_t(20, order=0), _t(21, order=1)]

    event = DropEvent(source=BACKLOG, target=WED.isoformat(), task=t, target_items=[t, a, b], source_items=rest)
    mutation = resolve_drop(event, UTC)

    assert mutation is not None
    assert mutation.kind == ContainerKind.DAY
    updates = _by_id(mutation)
    assert set(updates) == {10, 11, 12}
    for task_id, order in ((10, 0), (11, 1), (12, 2)):
        assert updates[task_id] == {"date": day_at(WED), "order": order}


def test_day_date_is_local_midnight_as_instant() -> None:
    tz = dt.timezone(dt.timedelta(hours=3))
    t = _t(1)
    event = DropEvent(source=BACKLOG, target=WED.isoformat(), task=t, target_items=[t])

    mutation = resolve_drop(event, tz)

    written = _by_id(mutation)[1]["date"]
    assert written == dt.datetime(2026, 10, 20, 21, 0, tzinfo=UTC)


def test_drop_into_backlog_writes_only_dragged_task() -> None:
    t = _t(1, date=day_at(WED), order=0)
    event = DropEvent(
        source=WED.isoformat(),
        target=BACKLOG,
        task=t,
        target_items=[_t(5, order=0), t, _t(6, order=1)],
        source_items=[_t(2, date=day_at(WED), order=1)],
    )

    mutation = resolve_drop(event, UTC)

    assert mutation.kind == ContainerKind.BACKLOG
    assert _by_id(mutation) == {1: {"date": None, "order": 1}}


def test_day_to_day_resequences_source_gaps_only() -> None:
    thu = WED + dt.timedelta(days=1)
    t = _t(1, date=day_at(WED), order=0)
    left = [_t(2, date=day_at(WED), order=1), _t(3, date=day_at(WED), order=2)]

    event = DropEvent(source=WED.isoformat(), target=thu.isoformat(), task=t, target_items=[t], source_items=left)
    updates = _by_id(resolve_drop(event, UTC))

    assert updates[1] == {"date": day_at(thu), "order": 0}
    assert updates[2] == {"order": 0}
    assert updates[3] == {"order": 1}


def test_lane_drop_sets_status_for_every_lane_member() -> None:
    t = _t(1, status=TaskStatus.PENDING, order=0)
    done = [_t(2, status=TaskStatus.COMPLETED, order=0)]
    event = DropEvent(
        source="todo",
        target="done",
        task=t,
        target_items=[*done, t],
        source_items=[_t(3, order=1)],
    )

    mutation = resolve_drop(event, UTC)

    updates = _by_id(mutation)
    assert mutation.kind == ContainerKind.LANE
    assert updates[2] == {"status": TaskStatus.COMPLETED, "order": 0}
    assert updates[1] == {"status": TaskStatus.COMPLETED, "order": 1}
    assert updates[3] == {"order": 0}


def test_reorder_within_lane_writes_lane() -> None:
    a = _t(1, status=TaskStatus.IN_PROGRESS, order=0)
    b = _t(2, status=TaskStatus.IN_PROGRESS, order=1)
    event = DropEvent(source="in-progress", target="in-progress", task=a, target_items=[b, a])

    updates = _by_id(resolve_drop(event, UTC))

    assert updates == {
        2: {"status": TaskStatus.IN_PROGRESS, "order": 0},
        1: {"status": TaskStatus.IN_PROGRESS, "order": 1},
    }


def test_lane_and_calendar_do_not_mix() -> None:
    t = _t(1)
    with pytest.raises(ValidationError):
        resolve_drop(DropEvent(source=BACKLOG, target="done", task=t, target_items=[t]), UTC)


def test_dragged_task_must_be_in_target_list() -> None:
    t = _t(1)
    with pytest.raises(ValidationError):
        resolve_drop(DropEvent(source=BACKLOG, target=WED.isoformat(), task=t, target_items=[_t(2)]), UTC)


def test_container_filter_matches_container_members() -> None:
    wed = container_filter(parse_container(WED.isoformat()), "ws1", UTC)
    assert wed.matches(_t(1, date=day_at(WED, 23)))
    assert not wed.matches(_t(2, date=day_at(WED + dt.timedelta(days=1))))
    assert not wed.matches(_t(3))

    backlog = container_filter(parse_container(BACKLOG), "ws1", UTC)
    assert backlog.matches(_t(3))

    done = container_filter(parse_container("done"), "ws1", UTC)
    assert done.matches(_t(4, status=TaskStatus.COMPLETED))
    assert not done.matches(_t(5))
