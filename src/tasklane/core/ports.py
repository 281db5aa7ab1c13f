# src/tasklane/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the store, trackers and planning backends swappable and makes
testing easier.
"""

import datetime as dt
from typing import TYPE_CHECKING, Any, Awaitable, Protocol

if TYPE_CHECKING:
    from ..integrations.models import Integration, Transition
    from ..planning.models import PlanAssignment, PlanRequest
    from ..tasks.task_models import IntegrationSource, Task, TaskFilter


class TaskRepo(Protocol):
    """Row-level persistence keyed by task id (see tasks.task_store.TaskStore)."""

    def list(self, flt: TaskFilter) -> list[Task]: ...
    def get(self, task_id: int) -> Task | None: ...
    def insert(self, task: Task) -> int: ...
    def update(self, task_id: int, partial: dict[str, Any]) -> None: ...
    def delete(self, task_id: int) -> None: ...

    # Capacity query used by the auto planner
    def count_by_day(
            self,
            workspace_id: str,
            start: dt.datetime,
            end: dt.datetime,
            tz: dt.tzinfo,
    ) -> list[dict[str, Any]]: ...

    def milestone_project(self, milestone_id: int) -> str | None: ...


class IntegrationRepo(Protocol):
    def get_integration(
            self, workspace_id: str, source: IntegrationSource
    ) -> Integration | None: ...


class PlanningService(Protocol):
    """External planning decision: available days in, task -> date assignments out."""

    def request_plan(self, request: PlanRequest) -> Awaitable[list[PlanAssignment]]: ...


class Notifier(Protocol):
    """Transient user-facing notifications (toasts)."""

    def notify(self, message: str, *, level: str = "info") -> None: ...


class SyncPrompter(Protocol):
    """
    UI-side port for the remote status prompts.

    choose_transition returns None when the user closes the dialog.
    """

    def confirm_sync(self, task: Task) -> Awaitable[bool]: ...

    def choose_transition(
            self, task: Task, transitions: list[Transition]
    ) -> Awaitable[Transition | None]: ...
