# tests/fakes.py

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any

from tasklane.core.errors import PersistenceError, PlanningServiceError, RemoteIntegrationError
from tasklane.integrations.models import Integration, Transition
from tasklane.planning.models import PlanAssignment, PlanRequest
from tasklane.tasks.task_models import IntegrationSource, Task, TaskStatus
from tasklane.tasks.task_store import TaskStore

# Monday
MONDAY = dt.date(2026, 10, 19)

# New York in October 2026 (EDT). A fixed offset keeps tests off the tz database.
EDT = dt.timezone(dt.timedelta(hours=-4), "EDT")


def day_at(day: dt.date, hour: int = 0) -> dt.datetime:
    return dt.datetime(day.year, day.month, day.day, hour, tzinfo=dt.timezone.utc)


class FakeClock:
    """Settable clock; pass the instance wherever a `clock` callable is expected."""

    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + dt.timedelta(**kwargs)


@dataclass(slots=True)
class FakeNotifier:
    messages: list[tuple[str, str]] = field(default_factory=list)

    def notify(self, message: str, *, level: str = "info") -> None:
        self.messages.append((level, message))

    def levels(self) -> list[str]:
        return [lvl for lvl, _ in self.messages]


@dataclass(slots=True)
class FakePrompter:
    """
    Scripted answers for the remote-sync prompts.

    `pick` is the index of the transition to choose, or None to cancel.
    """

    confirm: bool = False
    pick: int | None = None
    confirm_calls: list[int] = field(default_factory=list)
    choose_calls: list[tuple[int, list[Transition]]] = field(default_factory=list)

    async def confirm_sync(self, task: Task) -> bool:
        self.confirm_calls.append(task.id)
        return self.confirm

    async def choose_transition(self, task: Task, transitions: list[Transition]) -> Transition | None:
        self.choose_calls.append((task.id, list(transitions)))
        if self.pick is None:
            return None
        return transitions[self.pick]


class FakeIntegrationRepo:
    def __init__(self, *integrations: Integration) -> None:
        self.items = {(i.workspace_id, i.type): i for i in integrations}

    def get_integration(self, workspace_id: str, source: IntegrationSource) -> Integration | None:
        return self.items.get((workspace_id, source))


class FakeAdapter:
    """
    Provider adapter double.

    Records pushes; `fail=True` makes every remote call raise.
    """

    def __init__(
        self,
        source: IntegrationSource,
        *,
        has_transitions: bool = False,
        transitions: list[Transition] | None = None,
        fail: bool = False,
    ) -> None:
        self.source = source
        self.has_transitions = has_transitions
        self.transitions = transitions or []
        self.fail = fail
        self.pushed: list[tuple[int, Any, str]] = []
        self.applied: list[tuple[int, str]] = []

    def to_remote_status(self, task: Task, status: TaskStatus) -> Any:
        return "closed" if status == TaskStatus.COMPLETED else "open"

    def _maybe_fail(self) -> None:
        if self.fail:
            raise RemoteIntegrationError(self.source.value, "HTTP 503: unavailable", status_code=503)

    async def push_status(self, task: Task, remote_status: Any, integration: Integration, *, user_id: str) -> None:
        self._maybe_fail()
        self.pushed.append((task.id, remote_status, user_id))

    async def list_transitions(self, task: Task, integration: Integration) -> list[Transition]:
        self._maybe_fail()
        return list(self.transitions)

    async def apply_transition(
        self, task: Task, transition: Transition, integration: Integration, *, user_id: str
    ) -> None:
        self._maybe_fail()
        self.applied.append((task.id, transition.id))


class FakePlanningService:
    """Returns canned assignments (or raises) and records requests."""

    def __init__(self, assignments: list[PlanAssignment] | None = None, *, error: Exception | None = None) -> None:
        self.assignments = assignments or []
        self.error = error
        self.requests: list[PlanRequest] = []

    async def request_plan(self, request: PlanRequest) -> list[PlanAssignment]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return list(self.assignments)


class FirstDayPlanningService(FakePlanningService):
    """Assigns every given id to the first available day."""

    def __init__(self, ids: list[int], tz: dt.tzinfo = dt.timezone.utc) -> None:
        super().__init__()
        self.ids = ids
        self.tz = tz

    async def request_plan(self, request: PlanRequest) -> list[PlanAssignment]:
        self.requests.append(request)
        if not request.available_dates:
            raise PlanningServiceError("no days")
        day = request.available_dates[0].date
        at = dt.datetime(day.year, day.month, day.day, tzinfo=self.tz)
        return [PlanAssignment(id=i, date=at) for i in self.ids]


class FlakyTaskStore:
    """
    TaskStore wrapper whose update() fails for selected ids.

    Everything else goes to the real store.
    """

    def __init__(self, store: TaskStore, fail_ids: set[int] | None = None) -> None:
        self._store = store
        self.fail_ids = set(fail_ids or ())
        self.update_calls: list[tuple[int, dict[str, Any]]] = []

    def update(self, task_id: int, partial: dict[str, Any]) -> None:
        self.update_calls.append((task_id, dict(partial)))
        if task_id in self.fail_ids:
            raise PersistenceError(f"simulated write failure for task {task_id}")
        self._store.update(task_id, partial)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._store, name)
