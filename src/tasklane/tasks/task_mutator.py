# src/tasklane/tasks/task_mutator.py

from __future__ import annotations

"""
Bulk task mutator.

Turns a list of {task_id, updates} pairs into independent per-task writes:
- validates every payload before the first write,
- derives completed_at for status toggles,
- writes concurrently, collecting failures instead of stopping at the first,
- refetches every view query that could show the old or new state.

There is no cross-task transaction: after a BulkMutationError some of the
updates may have been applied, so callers refetch instead of trusting their own
optimistic state.
"""

import asyncio
import datetime as dt
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from ..core.dates import UTC, ensure_aware
from ..core.errors import BulkMutationError, PersistenceError, ValidationError
from ..core.ports import TaskRepo
from .task_models import Task, TaskStatus
from .task_views import ViewQueries

logger = logging.getLogger(__name__)

ALLOWED_FIELDS = frozenset(
    {
        "date",
        "status",
        "order",
        "priority",
        "tags",
        "project_id",
        "milestone_id",
        "assignee",
        "name",
        "description",
        "completed_at",
    }
)

# The remote tracker is authoritative for these on imported tasks.
REMOTE_OWNED_FIELDS = frozenset({"name", "description"})


@dataclass(slots=True, frozen=True)
class TaskUpdate:
    task_id: int
    updates: dict[str, Any]


def _utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


def _check_payload(upd: TaskUpdate) -> None:
    unknown = set(upd.updates) - ALLOWED_FIELDS
    if unknown:
        raise ValidationError(
            f"task {upd.task_id}: fields not updatable: {', '.join(sorted(unknown))}"
        )
    u = upd.updates
    if "date" in u and u["date"] is not None and not isinstance(u["date"], dt.datetime):
        raise ValidationError(f"task {upd.task_id}: date must be a datetime or None")
    if "completed_at" in u and u["completed_at"] is not None and not isinstance(u["completed_at"], dt.datetime):
        raise ValidationError(f"task {upd.task_id}: completed_at must be a datetime or None")
    if "status" in u:
        try:
            TaskStatus(u["status"])
        except ValueError as e:
            raise ValidationError(f"task {upd.task_id}: unknown status {u['status']!r}") from e
    if "order" in u:
        order = u["order"]
        if isinstance(order, bool) or not isinstance(order, int) or order < 0:
            raise ValidationError(f"task {upd.task_id}: order must be a non-negative integer")
    if "name" in u and not str(u["name"] or "").strip():
        raise ValidationError(f"task {upd.task_id}: name cannot be empty")
    if "status" in u and "completed_at" in u:
        completed = TaskStatus(u["status"]) == TaskStatus.COMPLETED
        if completed != (u["completed_at"] is not None):
            raise ValidationError(
                f"task {upd.task_id}: completed_at must be set exactly when status is completed"
            )
    elif "completed_at" in u:
        raise ValidationError(f"task {upd.task_id}: completed_at cannot be sent without status")


def _merge(updates: Sequence[TaskUpdate]) -> list[TaskUpdate]:
    """One write per task; later updates for the same id win field by field."""
    merged: dict[int, dict[str, Any]] = {}
    for upd in updates:
        merged.setdefault(int(upd.task_id), {}).update(upd.updates)
    return [TaskUpdate(task_id=k, updates=v) for k, v in merged.items()]


class BulkTaskMutator:
    def __init__(
        self,
        store: TaskRepo,
        views: ViewQueries | None = None,
        *,
        clock: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._views = views
        self._clock = clock

    def derive_completion(self, old: Task, updates: dict[str, Any]) -> dict[str, Any]:
        """
        Fill completed_at for status changes that do not carry it.

        Entering completed stamps now; staying completed keeps the stamp;
        every other status clears it.
        """
        if "status" not in updates or "completed_at" in updates:
            return updates
        out = dict(updates)
        new_status = TaskStatus(updates["status"])
        if new_status == TaskStatus.COMPLETED:
            if old.status == TaskStatus.COMPLETED and old.completed_at is not None:
                out["completed_at"] = old.completed_at
            else:
                out["completed_at"] = ensure_aware(self._clock())
        else:
            out["completed_at"] = None
        return out

    async def _check_against_row(self, old: Task, updates: dict[str, Any]) -> None:
        if old.is_imported:
            touched = REMOTE_OWNED_FIELDS & set(updates)
            changed = [f for f in touched if updates[f] != getattr(old, f)]
            if changed:
                raise ValidationError(
                    f"task {old.id}: {', '.join(sorted(changed))} is owned by "
                    f"{old.integration_source} and cannot be edited locally"
                )
        if "milestone_id" in updates or "project_id" in updates:
            milestone_id = updates.get("milestone_id", old.milestone_id)
            project_id = updates.get("project_id", old.project_id)
            if milestone_id is not None:
                if not project_id:
                    raise ValidationError(f"task {old.id}: milestone_id requires a project_id")
                owner = await asyncio.to_thread(self._store.milestone_project, int(milestone_id))
                if owner != project_id:
                    raise ValidationError(
                        f"task {old.id}: milestone {milestone_id} does not belong to project {project_id}"
                    )

    async def apply(self, updates: Sequence[TaskUpdate]) -> list[Task]:
        """
        Apply updates and return the new state of every task written.

        Raises ValidationError before any write, BulkMutationError if at least
        one write failed (the others may have succeeded).
        """
        for upd in updates:
            _check_payload(upd)
        batch = _merge(updates)
        if not batch:
            return []

        olds = await asyncio.gather(
            *(asyncio.to_thread(self._store.get, upd.task_id) for upd in batch),
            return_exceptions=True,
        )

        failed: dict[int, BaseException] = {}
        planned: list[tuple[Task, dict[str, Any]]] = []
        for upd, old in zip(batch, olds):
            if isinstance(old, BaseException):
                failed[upd.task_id] = old
                continue
            if old is None:
                failed[upd.task_id] = PersistenceError(f"task {upd.task_id} not found")
                continue
            final = self.derive_completion(old, upd.updates)
            await self._check_against_row(old, final)
            planned.append((old, final))

        results = await asyncio.gather(
            *(asyncio.to_thread(self._store.update, old.id, final) for old, final in planned),
            return_exceptions=True,
        )

        before: list[Task] = []
        after: list[Task] = []
        for (old, final), res in zip(planned, results):
            before.append(old)
            if isinstance(res, BaseException):
                logger.warning("Task update failed id=%s: %s", old.id, res)
                failed[old.id] = res
                continue
            after.append(replace(old, **final))

        logger.info(
            "Bulk mutation: %d written, %d failed (ids=%s)",
            len(after),
            len(failed),
            [u.task_id for u in batch],
        )

        if self._views is not None and before:
            await self._views.invalidate(before, after)

        if failed:
            raise BulkMutationError(failed, attempted=[u.task_id for u in batch])
        return after
