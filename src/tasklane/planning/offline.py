# src/tasklane/planning/offline.py

from __future__ import annotations

import asyncio
import datetime as dt

from ..core.dates import start_of_day
from ..core.ports import TaskRepo
from ..tasks.task_models import TaskFilter, TaskStatus
from .models import PlanAssignment, PlanRequest
from .service import BACKLOG_LIMIT


class GreedyPlanningService:
    """
    Deterministic planning service for local runs without an LLM.

    Walks the backlog in order and deals tasks onto the available days
    round-robin, earliest day first.
    """

    def __init__(self, store: TaskRepo, tz: dt.tzinfo, *, backlog_limit: int = BACKLOG_LIMIT) -> None:
        self._store = store
        self._tz = tz
        self._backlog_limit = backlog_limit

    async def request_plan(self, request: PlanRequest) -> list[PlanAssignment]:
        backlog = await asyncio.to_thread(
            self._store.list,
            TaskFilter(
                workspace_id=request.workspace_id,
                backlog=True,
                statuses=frozenset({TaskStatus.PENDING}),
                limit=self._backlog_limit,
            ),
        )
        days = [d.date for d in request.available_dates]
        if not days:
            return []
        return [
            PlanAssignment(id=task.id, date=start_of_day(days[i % len(days)], self._tz))
            for i, task in enumerate(backlog)
        ]
