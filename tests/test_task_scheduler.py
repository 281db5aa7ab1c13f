# tests/test_task_scheduler.py

from __future__ import annotations

import asyncio
import datetime as dt

import pytest

from tasklane.tasks.task_models import TaskStatus
from tasklane.tasks.task_mutator import BulkTaskMutator
from tasklane.tasks.task_scheduler import reschedule_overdue, run_overdue_rescheduler

from .fakes import MONDAY, FlakyTaskStore, day_at

LAST_WEEK = MONDAY - dt.timedelta(days=7)


@pytest.mark.asyncio
async def test_overdue_in_progress_moves_to_today(store, mutator, ctx, make_task) -> None:
    late = make_task("late", status=TaskStatus.IN_PROGRESS, date=day_at(LAST_WEEK), order=4)
    pending = make_task("pending", status=TaskStatus.PENDING, date=day_at(LAST_WEEK))
    today = make_task("today", status=TaskStatus.IN_PROGRESS, date=day_at(MONDAY, 8))
    backlog = make_task("backlog", status=TaskStatus.IN_PROGRESS)

    moved = await reschedule_overdue(store, mutator, ctx)

    assert moved == [late.id]
    got = store.get(late.id)
    assert got.date == day_at(MONDAY)
    assert got.order == 4
    assert store.get(pending.id).date == day_at(LAST_WEEK)
    assert store.get(today.id).date == day_at(MONDAY, 8)
    assert store.get(backlog.id).date is None


@pytest.mark.asyncio
async def test_overdue_ignores_other_workspaces(store, mutator, ctx, make_task) -> None:
    other = make_task("other", workspace_id="ws2", status=TaskStatus.IN_PROGRESS, date=day_at(LAST_WEEK))

    assert await reschedule_overdue(store, mutator, ctx) == []
    assert store.get(other.id).date == day_at(LAST_WEEK)


@pytest.mark.asyncio
async def test_partial_failure_reports_written_ids(store, ctx, clock, make_task) -> None:
    a = make_task("a", status=TaskStatus.IN_PROGRESS, date=day_at(LAST_WEEK))
    b = make_task("b", status=TaskStatus.IN_PROGRESS, date=day_at(LAST_WEEK))
    mutator = BulkTaskMutator(FlakyTaskStore(store, fail_ids={b.id}), clock=clock)

    moved = await reschedule_overdue(store, mutator, ctx)

    assert moved == [a.id]
    assert store.get(a.id).date == day_at(MONDAY)
    assert store.get(b.id).date == day_at(LAST_WEEK)


@pytest.mark.asyncio
async def test_loop_runs_until_cancelled(store, mutator, ctx, make_task) -> None:
    late = make_task("late", status=TaskStatus.IN_PROGRESS, date=day_at(LAST_WEEK))

    runner = asyncio.create_task(
        run_overdue_rescheduler(store, mutator, ctx, interval_seconds=0.01)
    )
    await asyncio.sleep(0.1)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert store.get(late.id).date == day_at(MONDAY)


@pytest.mark.asyncio
async def test_loop_survives_errors(mutator, ctx) -> None:
    class Broken:
        calls = 0

        def list(self, flt):
            Broken.calls += 1
            raise RuntimeError("db gone")

    runner = asyncio.create_task(
        run_overdue_rescheduler(Broken(), mutator, ctx, interval_seconds=0.01)
    )
    await asyncio.sleep(0.05)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert Broken.calls >= 1
