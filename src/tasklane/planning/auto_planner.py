# src/tasklane/planning/auto_planner.py

from __future__ import annotations

"""
Auto planner.

Redistributes backlog tasks over the next days without overloading any day:

    idle -> computing-capacity -> requesting-plan -> applying -> done
    (any busy state) -> failed
    done -> rolled-back   (rollback of the retained PlanResponse)

Nothing is written before `applying`, so a failure while computing capacity or
waiting for the planning service leaves the backlog untouched and the run can
simply be retried.
"""

import asyncio
import datetime as dt
import logging

from ..core.dates import local_day
from ..core.errors import BulkMutationError, PlanningServiceError, ValidationError
from ..core.ports import PlanningService, TaskRepo
from ..core.state import ViewContext
from ..tasks.task_models import Task, TaskFilter
from ..tasks.task_mutator import BulkTaskMutator, TaskUpdate
from .capacity import DEFAULT_DAY_THRESHOLD, available_days, counts_by_day, planning_window
from .models import PlanAssignment, PlannerState, PlanRequest, PlanResponse

logger = logging.getLogger(__name__)

_BUSY = (PlannerState.COMPUTING_CAPACITY, PlannerState.REQUESTING_PLAN, PlannerState.APPLYING)


class AutoPlanner:
    def __init__(
        self,
        store: TaskRepo,
        service: PlanningService,
        mutator: BulkTaskMutator,
        context: ViewContext,
        *,
        threshold: int = DEFAULT_DAY_THRESHOLD,
    ) -> None:
        self._store = store
        self._service = service
        self._mutator = mutator
        self._ctx = context
        self._threshold = max(1, int(threshold))

        self.state = PlannerState.IDLE
        self.last_plan: PlanResponse | None = None
        self.last_error: Exception | None = None

    @property
    def can_rollback(self) -> bool:
        return self.last_plan is not None and len(self.last_plan) > 0

    async def build_request(self) -> PlanRequest:
        """Capacity step: window bounds plus the weekdays with spare room."""
        first, last = planning_window(self._ctx.today())
        start = self._ctx.day_start(first)
        end = self._ctx.day_start(last + dt.timedelta(days=1))

        rows = await asyncio.to_thread(
            self._store.count_by_day, self._ctx.workspace_id, start, end, self._ctx.tz
        )
        days = available_days(first, last, counts_by_day(rows), threshold=self._threshold)
        logger.info(
            "Planner capacity ws=%s window=%s..%s available=%d threshold=%d",
            self._ctx.workspace_id,
            first,
            last,
            len(days),
            self._threshold,
        )
        if not days:
            raise PlanningServiceError("no weekday in the planning window has spare capacity")

        return PlanRequest(
            start_date=start,
            end_date=end - dt.timedelta(milliseconds=1),
            available_dates=tuple(days),
            workspace_id=self._ctx.workspace_id,
        )

    async def _backlog_ids(self) -> set[int]:
        rows: list[Task] = await asyncio.to_thread(
            self._store.list, TaskFilter(workspace_id=self._ctx.workspace_id, backlog=True)
        )
        return {t.id for t in rows}

    def _at_day_start(self, a: PlanAssignment) -> PlanAssignment:
        """Pin an assignment to local midnight of its day in the workspace timezone."""
        day = local_day(a.date, self._ctx.tz) if isinstance(a.date, dt.datetime) else a.date
        return PlanAssignment(id=a.id, date=self._ctx.day_start(day))

    async def run(self) -> PlanResponse:
        """Plan and apply. The returned PlanResponse is also kept as `last_plan`."""
        if self.state in _BUSY:
            raise ValidationError(f"auto plan already running ({self.state})")
        self.last_error = None

        try:
            self.state = PlannerState.COMPUTING_CAPACITY
            request = await self.build_request()

            self.state = PlannerState.REQUESTING_PLAN
            try:
                assignments = await self._service.request_plan(request)
            except PlanningServiceError:
                raise
            except Exception as e:
                raise PlanningServiceError(f"planning service failed: {e}") from e
            if not assignments:
                raise PlanningServiceError("planning service returned no assignments")

            self.state = PlannerState.APPLYING
            backlog = await self._backlog_ids()
            chosen: dict[int, PlanAssignment] = {}
            for a in assignments:
                if a.id in backlog:
                    chosen[a.id] = self._at_day_start(a)
                else:
                    logger.debug("Ignoring assignment for non-backlog task id=%s", a.id)
            if not chosen:
                raise PlanningServiceError("plan did not assign any backlog task")

            plan = PlanResponse(assignments=list(chosen.values()), created_at=self._ctx.now())
            try:
                await self._mutator.apply(
                    [TaskUpdate(task_id=a.id, updates={"date": a.date}) for a in plan.assignments]
                )
            except BulkMutationError as e:
                # Keep what did land so it can still be rolled back.
                plan.assignments = [a for a in plan.assignments if a.id not in e.failed]
                self.last_plan = plan if plan.assignments else None
                raise
        except Exception as e:
            self.state = PlannerState.FAILED
            self.last_error = e
            logger.warning("Auto plan failed: %s", e)
            raise

        self.last_plan = plan
        self.state = PlannerState.DONE
        logger.info("Auto plan applied: %d tasks scheduled", len(plan))
        return plan

    async def rollback(self, plan: PlanResponse | None = None) -> list[Task]:
        """
        Send every task of the plan back to the backlog (date = null).

        Only `date` is touched, whatever else changed since the plan ran.
        """
        plan = plan if plan is not None else self.last_plan
        if plan is None or not plan.assignments:
            raise ValidationError("there is no plan to roll back")

        written = await self._mutator.apply(
            [TaskUpdate(task_id=task_id, updates={"date": None}) for task_id in plan.task_ids]
        )
        if plan is self.last_plan:
            self.last_plan = None
        self.state = PlannerState.ROLLED_BACK
        logger.info("Auto plan rolled back: %d tasks returned to backlog", len(written))
        return written
