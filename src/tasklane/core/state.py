# src/tasklane/core/state.py

from __future__ import annotations

import datetime as dt
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .dates import UTC, local_day, start_of_day

if TYPE_CHECKING:
    import httpx

    from ..board.drag_engine import DragReorderEngine
    from ..integrations.status_sync import IntegrationStatusSync
    from ..integrations.store import IntegrationStore
    from ..planning.auto_planner import AutoPlanner
    from ..tasks.task_mutator import BulkTaskMutator
    from ..tasks.task_store import TaskStore
    from ..tasks.task_views import ViewQueries
    from .prefs import ViewPreferences


def _utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


@dataclass(slots=True)
class ViewContext:
    """
    Who is looking at the board, and from which timezone.

    Passed explicitly to the scheduling components; nothing reads the current
    workspace or the viewer's timezone from globals.
    """

    workspace_id: str
    user_id: str
    tz: dt.tzinfo = UTC
    clock: Callable[[], dt.datetime] = _utcnow

    def now(self) -> dt.datetime:
        return self.clock()

    def today(self) -> dt.date:
        return local_day(self.now(), self.tz)

    def day_start(self, day: dt.date) -> dt.datetime:
        return start_of_day(day, self.tz)


@dataclass
class AppState:
    """Composition root output: every wired component, plus session-only state."""

    settings: object
    context: ViewContext

    task_store: TaskStore
    integrations: IntegrationStore
    views: ViewQueries
    mutator: BulkTaskMutator
    engine: DragReorderEngine
    planner: AutoPlanner
    status_sync: IntegrationStatusSync
    prefs: ViewPreferences

    # Shared HTTP client for trackers and the planning endpoint (closed on shutdown).
    http: httpx.AsyncClient | None = None

    # Containers the console has registered as view queries.
    open_views: set[str] = field(default_factory=set)

    # Session-only notes shown by the console (e.g. last toasts).
    notices: list[str] = field(default_factory=list)
