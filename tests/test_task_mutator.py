# tests/test_task_mutator.py

from __future__ import annotations

import datetime as dt
import threading

import pytest

from tasklane.core.errors import BulkMutationError, ValidationError
from tasklane.tasks.task_models import IntegrationSource, TaskFilter, TaskStatus
from tasklane.tasks.task_mutator import BulkTaskMutator, TaskUpdate
from tasklane.tasks.task_views import ViewQueries

from .fakes import MONDAY, FlakyTaskStore, day_at


@pytest.mark.asyncio
async def test_apply_writes_and_returns_new_state(store, mutator, make_task) -> None:
    a = make_task("a")
    b = make_task("b")

    written = await mutator.apply(
        [
            TaskUpdate(a.id, {"date": day_at(MONDAY), "order": 0}),
            TaskUpdate(b.id, {"date": day_at(MONDAY), "order": 1}),
        ]
    )

    assert {t.id: t.order for t in written} == {a.id: 0, b.id: 1}
    assert store.get(a.id).date == day_at(MONDAY)
    assert store.get(b.id).order == 1


@pytest.mark.asyncio
async def test_updates_for_same_task_are_merged(store, mutator, make_task) -> None:
    a = make_task("a")

    written = await mutator.apply([TaskUpdate(a.id, {"order": 1}), TaskUpdate(a.id, {"order": 5, "priority": 1})])

    assert len(written) == 1
    got = store.get(a.id)
    assert got.order == 5
    assert got.priority == 1


@pytest.mark.asyncio
async def test_status_toggle_derives_completed_at(store, mutator, make_task, clock) -> None:
    t = make_task("t")

    await mutator.apply([TaskUpdate(t.id, {"status": TaskStatus.COMPLETED})])
    done = store.get(t.id)
    assert done.status == TaskStatus.COMPLETED
    assert done.completed_at == clock.now

    # Staying completed keeps the original stamp.
    clock.advance(hours=1)
    await mutator.apply([TaskUpdate(t.id, {"status": TaskStatus.COMPLETED, "order": 2})])
    assert store.get(t.id).completed_at == done.completed_at

    for status in (TaskStatus.IN_PROGRESS, TaskStatus.PENDING):
        await mutator.apply([TaskUpdate(t.id, {"status": TaskStatus.COMPLETED})])
        await mutator.apply([TaskUpdate(t.id, {"status": status})])
        got = store.get(t.id)
        assert got.status == status
        assert got.completed_at is None


@pytest.mark.asyncio
async def test_full_form_edit_may_supply_completed_at(store, mutator, make_task) -> None:
    t = make_task("t")
    when = dt.datetime(2026, 10, 1, 12, tzinfo=dt.timezone.utc)

    await mutator.apply([TaskUpdate(t.id, {"status": TaskStatus.COMPLETED, "completed_at": when})])

    assert store.get(t.id).completed_at == when


@pytest.mark.parametrize(
    "updates",
    [
        {"external_id": "x"},
        {"status": "archived"},
        {"order": -1},
        {"order": True},
        {"date": "2026-10-19"},
        {"name": "  "},
        {"status": TaskStatus.COMPLETED, "completed_at": None},
        {"status": TaskStatus.PENDING, "completed_at": dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)},
        {"completed_at": None},
    ],
)
@pytest.mark.asyncio
async def test_invalid_payload_rejected_before_any_write(store, make_task, updates) -> None:
    good = make_task("good")
    bad = make_task("bad")
    flaky = FlakyTaskStore(store)
    mutator = BulkTaskMutator(flaky)

    with pytest.raises(ValidationError):
        await mutator.apply([TaskUpdate(good.id, {"order": 7}), TaskUpdate(bad.id, updates)])

    assert flaky.update_calls == []
    assert store.get(good.id).order == 0


@pytest.mark.asyncio
async def test_imported_task_name_is_read_only(store, mutator, make_task) -> None:
    t = make_task("Issue title", integration_source=IntegrationSource.GITHUB, external_id="7")

    with pytest.raises(ValidationError):
        await mutator.apply([TaskUpdate(t.id, {"name": "renamed"})])

    # Unchanged value and local fields are fine.
    await mutator.apply([TaskUpdate(t.id, {"name": "Issue title", "priority": 3, "tags": ["x"]})])
    assert store.get(t.id).priority == 3


@pytest.mark.asyncio
async def test_milestone_must_match_project(store, mutator, make_task) -> None:
    m = store.add_milestone("p1", "v1")
    t = make_task("t")

    with pytest.raises(ValidationError):
        await mutator.apply([TaskUpdate(t.id, {"milestone_id": m})])
    with pytest.raises(ValidationError):
        await mutator.apply([TaskUpdate(t.id, {"project_id": "p2", "milestone_id": m})])

    await mutator.apply([TaskUpdate(t.id, {"project_id": "p1", "milestone_id": m})])
    assert store.get(t.id).milestone_id == m


@pytest.mark.asyncio
async def test_milestone_lookup_runs_off_the_event_loop(store, mutator, make_task, monkeypatch) -> None:
    m = store.add_milestone("p1", "v1")
    t = make_task("t", project_id="p1")
    real = store.milestone_project
    threads: list[int] = []

    def recording(milestone_id: int) -> str | None:
        threads.append(threading.get_ident())
        return real(milestone_id)

    monkeypatch.setattr(store, "milestone_project", recording)

    await mutator.apply([TaskUpdate(t.id, {"milestone_id": m})])

    assert store.get(t.id).milestone_id == m
    assert threads and threading.get_ident() not in threads


@pytest.mark.asyncio
async def test_partial_failure_reports_all_attempted(store, make_task) -> None:
    a = make_task("a")
    b = make_task("b")
    c = make_task("c")
    flaky = FlakyTaskStore(store, fail_ids={b.id})
    mutator = BulkTaskMutator(flaky)

    with pytest.raises(BulkMutationError) as ei:
        await mutator.apply([TaskUpdate(x.id, {"order": 9}) for x in (a, b, c)])

    err = ei.value
    assert set(err.failed) == {b.id}
    assert err.attempted == [a.id, b.id, c.id]
    # Independent writes: the others landed.
    assert store.get(a.id).order == 9
    assert store.get(c.id).order == 9
    assert store.get(b.id).order == 0


@pytest.mark.asyncio
async def test_missing_task_is_reported_as_failure(store, mutator, make_task) -> None:
    a = make_task("a")

    with pytest.raises(BulkMutationError) as ei:
        await mutator.apply([TaskUpdate(a.id, {"order": 3}), TaskUpdate(404, {"order": 1})])

    assert set(ei.value.failed) == {404}
    assert store.get(a.id).order == 3


@pytest.mark.asyncio
async def test_views_refetched_for_old_and_new_state(store, views, mutator, make_task) -> None:
    t = make_task("t")
    views.register("backlog", TaskFilter(workspace_id="ws1", backlog=True))
    views.register(
        "monday",
        TaskFilter(workspace_id="ws1", date_from=day_at(MONDAY), date_to=day_at(MONDAY + dt.timedelta(days=1))),
    )
    views.register("other-ws", TaskFilter(workspace_id="ws2"))
    seen: dict[str, list[list[int]]] = {"backlog": [], "monday": [], "other-ws": []}
    for key in seen:
        views.subscribe(key, lambda rows, _k=key: seen[_k].append([r.id for r in rows]))

    await mutator.apply([TaskUpdate(t.id, {"date": day_at(MONDAY, 0)})])

    assert seen["backlog"] == [[]]
    assert seen["monday"] == [[t.id]]
    assert seen["other-ws"] == []
    assert views.cached("monday")[0].id == t.id


@pytest.mark.asyncio
async def test_views_refetched_after_partial_failure(store, make_task) -> None:
    a = make_task("a")
    b = make_task("b")
    flaky = FlakyTaskStore(store, fail_ids={b.id})
    views = ViewQueries(flaky)
    views.register("backlog", TaskFilter(workspace_id="ws1", backlog=True))
    mutator = BulkTaskMutator(flaky, views)

    with pytest.raises(BulkMutationError):
        await mutator.apply([TaskUpdate(a.id, {"date": day_at(MONDAY)}), TaskUpdate(b.id, {"date": day_at(MONDAY)})])

    assert [t.id for t in views.cached("backlog")] == [b.id]
