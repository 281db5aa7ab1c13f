# tests/test_commands.py

from __future__ import annotations

import datetime as dt

import pytest

from tasklane.cli.commands import CommandRegistry, registry
from tasklane.core.errors import PersistenceError, ValidationError
from tasklane.tasks.task_models import IntegrationSource, TaskFilter, TaskStatus

from .fakes import MONDAY, day_at

WEDNESDAY = MONDAY + dt.timedelta(days=2)


@pytest.mark.asyncio
async def test_command_registry_routes_sync_and_async_handlers(state) -> None:
    reg = CommandRegistry()
    notes: list[str] = []

    def plain(state, args, emit):
        return "plain " + " ".join(args)

    async def awaited(state, args, emit):
        if emit is not None:
            emit("note")
        return "awaited"

    reg.register("a", plain, "a")
    reg.register("b", awaited, "b", aliases=["bee"])

    assert await reg.handle(state, "/a x y") == "plain x y"
    assert await reg.handle(state, "/BEE", emit=notes.append) == "awaited"
    assert notes == ["note"]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_command_registry_reports_errors(state) -> None:
    reg = CommandRegistry()

    def bad_input(state, args, emit):
        raise ValidationError("bad date")

    async def bad_store(state, args, emit):
        raise PersistenceError("disk full")

    reg.register("v", bad_input, "v")
    reg.register("p", bad_store, "p")

    assert await reg.handle(state, "/v") == "Invalid: bad date"
    assert await reg.handle(state, "/p") == "Failed: disk full"


@pytest.mark.asyncio
async def test_help_lists_commands(state) -> None:
    out = await registry.handle(state, "/help")
    for name in ("/days", "/backlog", "/move", "/done", "/plan", "/rollback"):
        assert name in out


@pytest.mark.asyncio
async def test_add_to_backlog_and_day(state) -> None:
    out = await registry.handle(state, "/add Write report")
    assert out.startswith("Added #")
    out = await registry.handle(state, "/add Call bank @2026-10-21")
    assert out.endswith("to 2026-10-21.")

    rows = {t.name: t for t in state.task_store.list(TaskFilter(workspace_id="ws1"))}
    backlog = await registry.handle(state, "/backlog")
    assert "Write report" in backlog
    assert "Call bank" not in backlog

    days = await registry.handle(state, "/days")
    assert "Mon 2026-10-19 (today)" in days
    assert "Call bank" in days
    assert rows["Call bank"].date == day_at(WEDNESDAY)
    assert rows["Write report"].date is None


@pytest.mark.asyncio
async def test_add_rejects_bad_day(state) -> None:
    assert (await registry.handle(state, "/add thing @someday")).startswith("Usage")
    assert (await registry.handle(state, "/add")).startswith("Usage")


@pytest.mark.asyncio
async def test_backlog_search_and_collapse(state, make_task) -> None:
    make_task("Refactor parser")
    make_task("Buy milk")

    out = await registry.handle(state, "/backlog parsr")
    assert "Refactor parser" in out
    assert "Buy milk" not in out

    assert "collapsed" in await registry.handle(state, "/backlog collapse")
    assert "2 tasks (collapsed" in await registry.handle(state, "/backlog")
    assert state.prefs.backlog_collapsed is True


@pytest.mark.asyncio
async def test_move_backlog_task_onto_day(state, make_task) -> None:
    first = make_task("first", date=day_at(WEDNESDAY), order=0)
    task = make_task("drag me")

    out = await registry.handle(state, f"/move {task.id} 2026-10-21 1")

    assert out.startswith(f"Moved #{task.id} to 2026-10-21")
    got = state.task_store.get(task.id)
    assert got.date == day_at(WEDNESDAY)
    assert got.order == 0
    assert state.task_store.get(first.id).order == 1
    assert [t.id for t in state.engine.items("2026-10-21")] == [task.id, first.id]


@pytest.mark.asyncio
async def test_move_to_lane_changes_status(state, make_task) -> None:
    task = make_task("lane", status=TaskStatus.PENDING)

    out = await registry.handle(state, f"/mv {task.id} in-progress")

    assert out.startswith("Moved")
    assert state.task_store.get(task.id).status == TaskStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_move_unknown_task_is_invalid(state) -> None:
    assert (await registry.handle(state, "/move 999 backlog")).startswith("Invalid:")
    assert (await registry.handle(state, "/move abc backlog")).startswith("Invalid:")


@pytest.mark.asyncio
async def test_done_and_undo_done_local_task(state, make_task) -> None:
    task = make_task("finish")

    out = await registry.handle(state, f"/done {task.id}")
    assert out == f"#{task.id} completed (remote: local-only)."
    got = state.task_store.get(task.id)
    assert got.status == TaskStatus.COMPLETED
    assert got.completed_at is not None

    await registry.handle(state, f"/undo-done {task.id}")
    got = state.task_store.get(task.id)
    assert got.status == TaskStatus.PENDING
    assert got.completed_at is None


@pytest.mark.asyncio
async def test_plan_then_rollback(state, make_task) -> None:
    tasks = [make_task(f"b{i}", order=i) for i in range(3)]
    emitted: list[str] = []

    out = await registry.handle(state, "/plan", emit=emitted.append)

    assert emitted and emitted[0].startswith("[PLAN]")
    assert out.startswith("Scheduled 3 tasks")
    assert all(state.task_store.get(t.id).date is not None for t in tasks)

    out = await registry.handle(state, "/rollback")
    assert out == "Rolled back: 3 tasks returned to the backlog."
    assert all(state.task_store.get(t.id).date is None for t in tasks)
    assert await registry.handle(state, "/rollback") == "Nothing to roll back."


@pytest.mark.asyncio
async def test_plan_with_empty_backlog_fails(state) -> None:
    out = await registry.handle(state, "/plan")
    assert out.startswith("Failed:")


@pytest.mark.asyncio
async def test_view_prefs(state) -> None:
    assert await registry.handle(state, "/view days sort name") == "View days: mode=list sort=name"
    assert await registry.handle(state, "/view days") == "View days: mode=list sort=name"
    assert (await registry.handle(state, "/view days mode gantt")).startswith("Invalid:")


@pytest.mark.asyncio
async def test_overdue_command(state, make_task) -> None:
    late = make_task("late", status=TaskStatus.IN_PROGRESS, date=day_at(MONDAY - dt.timedelta(days=3)))

    assert await registry.handle(state, "/overdue") == "Moved 1 overdue in-progress tasks to today."
    assert state.task_store.get(late.id).date == day_at(MONDAY)


@pytest.mark.asyncio
async def test_integration_configure_and_list(state) -> None:
    assert await registry.handle(state, "/integration") == "No integrations configured."
    assert await registry.handle(state, "/integration github auto tok") == "github: sync=auto"

    got = state.integrations.get_integration("ws1", IntegrationSource.GITHUB)
    assert got.access_token == "tok"
    assert "github: active, sync=auto" in await registry.handle(state, "/integration")
    assert (await registry.handle(state, "/integration github sometimes")).startswith("Sync policy")
