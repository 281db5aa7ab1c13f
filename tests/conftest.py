# tests/conftest.py

from __future__ import annotations

import dataclasses
import datetime as dt
from collections.abc import Callable
from pathlib import Path

import pytest

from tasklane.cli.bootstrap import create_initial_state
from tasklane.config import Settings, get_settings
from tasklane.core.dates import UTC
from tasklane.core.state import AppState, ViewContext
from tasklane.tasks.task_models import Task
from tasklane.tasks.task_mutator import BulkTaskMutator
from tasklane.tasks.task_store import TaskStore
from tasklane.tasks.task_views import ViewQueries

from .fakes import EDT, MONDAY, FakeClock, FakeNotifier, FakePrompter


@pytest.fixture()
def clock() -> FakeClock:
    """Monday 2026-10-19, 09:00 UTC."""
    return FakeClock(dt.datetime(MONDAY.year, MONDAY.month, MONDAY.day, 9, 0, tzinfo=UTC))


@pytest.fixture()
def ctx(clock: FakeClock) -> ViewContext:
    return ViewContext(workspace_id="ws1", user_id="u1", tz=UTC, clock=clock)


@pytest.fixture()
def west_ctx(clock: FakeClock) -> ViewContext:
    """Same workspace and clock, viewed from UTC-4 (05:00 local on Monday)."""
    return ViewContext(workspace_id="ws1", user_id="u1", tz=EDT, clock=clock)


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    """
    Real SQLite store in a temp dir.

    Its correctness is part of what we want to test, so no in-memory fake here.
    """
    return TaskStore(tmp_path / "tasks.sqlite3")


@pytest.fixture()
def views(store: TaskStore) -> ViewQueries:
    return ViewQueries(store)


@pytest.fixture()
def mutator(store: TaskStore, views: ViewQueries, clock: FakeClock) -> BulkTaskMutator:
    return BulkTaskMutator(store, views, clock=clock)


@pytest.fixture()
def make_task(store: TaskStore) -> Callable[..., Task]:
    """Insert a task (defaults: ws1, pending, backlog) and return it as stored."""

    def _make(name: str = "task", **fields) -> Task:
        fields.setdefault("workspace_id", "ws1")
        task_id = store.insert(Task(id=0, name=name, **fields))
        task = store.get(task_id)
        assert task is not None
        return task

    return _make


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings rooted in the temp dir, with every remote backend switched off.

    Starting from get_settings() keeps the field list in one place.
    """
    return dataclasses.replace(
        get_settings(),
        workspace_id="ws1",
        user_id="u1",
        timezone="UTC",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        prefs_path=tmp_path / "view_prefs.json",
        planner_day_threshold=2,
        planner_service_url=None,
        llm_api_key=None,
    )


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def prompter() -> FakePrompter:
    return FakePrompter()


@pytest.fixture()
def state(settings: Settings, clock: FakeClock, notifier: FakeNotifier, prompter: FakePrompter) -> AppState:
    """AppState from the real composition root, on a fixed clock."""
    st = create_initial_state(settings=settings, notifier=notifier, prompter=prompter)
    st.context.clock = clock
    return st
