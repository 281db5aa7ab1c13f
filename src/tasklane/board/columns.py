# src/tasklane/board/columns.py

"""
Drop resolution.

A container id is one of:
- "backlog"                         (date is null)
- "YYYY-MM-DD"                      (one calendar day in the viewer's timezone)
- "todo" / "in-progress" / "done"   (kanban lanes, grouped by status)

resolve_drop() is pure: it turns a finished drag into the task updates to
write, or None when nothing needs writing.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from ..core.dates import local_day, parse_day, start_of_day
from ..core.errors import ValidationError
from ..tasks.task_models import Task, TaskFilter, TaskStatus
from ..tasks.task_mutator import TaskUpdate

BACKLOG = "backlog"


class Lane(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"


LANE_STATUS: dict[Lane, TaskStatus] = {
    Lane.TODO: TaskStatus.PENDING,
    Lane.IN_PROGRESS: TaskStatus.IN_PROGRESS,
    Lane.DONE: TaskStatus.COMPLETED,
}
STATUS_LANE: dict[TaskStatus, Lane] = {v: k for k, v in LANE_STATUS.items()}


class ContainerKind(StrEnum):
    BACKLOG = "backlog"
    DAY = "day"
    LANE = "lane"


@dataclass(slots=True, frozen=True)
class Container:
    kind: ContainerKind
    token: str
    day: dt.date | None = None
    lane: Lane | None = None

    @property
    def is_date_view(self) -> bool:
        return self.kind in (ContainerKind.BACKLOG, ContainerKind.DAY)


def parse_container(token: str) -> Container:
    t = (token or "").strip()
    if t == BACKLOG:
        return Container(ContainerKind.BACKLOG, t)
    try:
        return Container(ContainerKind.LANE, t, lane=Lane(t))
    except ValueError:
        pass
    day = parse_day(t)
    if day is None:
        raise ValidationError(f"unknown container: {token!r}")
    return Container(ContainerKind.DAY, day.isoformat(), day=day)


def day_container(day: dt.date) -> str:
    return day.isoformat()


def date_container_of(task: Task, tz: dt.tzinfo) -> str:
    """Calendar container currently holding the task."""
    if task.date is None:
        return BACKLOG
    return day_container(local_day(task.date, tz))


def lane_container_of(task: Task) -> str:
    return STATUS_LANE[task.status].value


@dataclass(slots=True, frozen=True)
class DropEvent:
    """
    A finished drag.

    target_items is the destination list after the drop (dragged task
    included); source_items is what is left in the source container.
    """

    source: str
    target: str
    task: Task
    target_items: Sequence[Task]
    source_items: Sequence[Task] = ()


@dataclass(slots=True, frozen=True)
class Mutation:
    kind: ContainerKind
    updates: tuple[TaskUpdate, ...]

    @property
    def task_ids(self) -> list[int]:
        return [u.task_id for u in self.updates]


def _index_of(task_id: int, items: Sequence[Task]) -> int:
    for i, item in enumerate(items):
        if item.id == task_id:
            return i
    raise ValidationError(f"task {task_id} is not in the destination list")


def _resequence(items: Sequence[Task]) -> list[TaskUpdate]:
    """Order-only updates for members whose order drifted from their index."""
    return [
        TaskUpdate(task_id=item.id, updates={"order": i})
        for i, item in enumerate(items)
        if item.order != i
    ]


def resolve_drop(event: DropEvent, tz: dt.tzinfo) -> Mutation | None:
    source = parse_container(event.source)
    target = parse_container(event.target)
    task = event.task

    if source.is_date_view != target.is_date_view:
        raise ValidationError(
            f"cannot move a task between {source.token!r} and {target.token!r}"
        )

    if target.kind == ContainerKind.LANE:
        assert target.lane is not None
        _index_of(task.id, event.target_items)
        status = LANE_STATUS[target.lane]
        updates = [
            TaskUpdate(task_id=item.id, updates={"status": status, "order": i})
            for i, item in enumerate(event.target_items)
        ]
        if source.token != target.token:
            updates.extend(_resequence(event.source_items))
        return Mutation(ContainerKind.LANE, tuple(updates))

    # Calendar: same day (time of day ignored) or backlog -> backlog is a no-op.
    current_day = local_day(task.date, tz) if task.date is not None else None
    if current_day == target.day:
        return None

    if target.kind == ContainerKind.BACKLOG:
        # Only the dragged task is written; the backlog is not re-sequenced.
        index = _index_of(task.id, event.target_items)
        return Mutation(
            ContainerKind.BACKLOG,
            (TaskUpdate(task_id=task.id, updates={"date": None, "order": index}),),
        )

    assert target.day is not None
    _index_of(task.id, event.target_items)
    new_date = start_of_day(target.day, tz)
    updates = [
        TaskUpdate(task_id=item.id, updates={"date": new_date, "order": i})
        for i, item in enumerate(event.target_items)
    ]
    if source.kind == ContainerKind.DAY:
        updates.extend(_resequence(event.source_items))
    return Mutation(ContainerKind.DAY, tuple(updates))


def container_filter(container: Container, workspace_id: str, tz: dt.tzinfo) -> TaskFilter:
    """The store query that loads exactly the members of `container`."""
    if container.kind == ContainerKind.BACKLOG:
        return TaskFilter(workspace_id=workspace_id, backlog=True)
    if container.kind == ContainerKind.LANE:
        assert container.lane is not None
        return TaskFilter(
            workspace_id=workspace_id,
            statuses=frozenset({LANE_STATUS[container.lane]}),
        )
    assert container.day is not None
    return TaskFilter(
        workspace_id=workspace_id,
        date_from=start_of_day(container.day, tz),
        date_to=start_of_day(container.day + dt.timedelta(days=1), tz),
    )
