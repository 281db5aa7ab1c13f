# src/tasklane/tasks/task_scheduler.py

from __future__ import annotations

"""
Overdue rescheduler.

A small polling loop that moves tasks still in progress but dated before
today onto today, in the viewer's timezone. Only `date` is written; the
tasks keep their order value.
"""

import asyncio
import logging

from ..core.errors import BulkMutationError
from ..core.ports import TaskRepo
from ..core.state import ViewContext
from .task_models import TaskFilter, TaskStatus
from .task_mutator import BulkTaskMutator, TaskUpdate

logger = logging.getLogger(__name__)


async def reschedule_overdue(
        task_store: TaskRepo,
        mutator: BulkTaskMutator,
        ctx: ViewContext,
) -> list[int]:
    """Move overdue in-progress tasks to today. Returns the ids written."""
    today_start = ctx.day_start(ctx.today())
    flt = TaskFilter(
        workspace_id=ctx.workspace_id,
        statuses=frozenset({TaskStatus.IN_PROGRESS}),
        date_to=today_start,
    )
    overdue = await asyncio.to_thread(task_store.list, flt)
    ids = [t.id for t in overdue]
    if not ids:
        logger.debug("No overdue in-progress tasks ws=%s", ctx.workspace_id)
        return []

    logger.info("Rescheduling %d overdue tasks to %s ws=%s", len(ids), today_start, ctx.workspace_id)
    try:
        written = await mutator.apply([TaskUpdate(i, {"date": today_start}) for i in ids])
    except BulkMutationError as e:
        logger.warning("Overdue reschedule partially failed: %s", e)
        return [i for i in e.attempted if i not in e.failed]
    return [t.id for t in written]


async def run_overdue_rescheduler(
        task_store: TaskRepo,
        mutator: BulkTaskMutator,
        ctx: ViewContext,
        *,
        interval_seconds: float = 3600.0,
) -> None:
    """
    Simple polling loop around reschedule_overdue().

    Failures are logged and the loop keeps going. To stop it, cancel the
    coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))

    while True:
        try:
            await reschedule_overdue(task_store, mutator, ctx)
        except Exception:
            logger.exception("reschedule_overdue failed")

        await asyncio.sleep(sleep_s)
