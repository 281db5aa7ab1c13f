# src/tasklane/planning/service.py

from __future__ import annotations

import asyncio
import datetime as dt
import json
import logging
import re
from typing import Any, Protocol

import httpx

from ..core.dates import iso_utc, parse_instant
from ..core.errors import PlanningServiceError
from ..core.ports import TaskRepo
from ..tasks.task_models import Task, TaskFilter, TaskStatus
from .models import PlanAssignment, PlanRequest

logger = logging.getLogger(__name__)

BACKLOG_LIMIT = 20

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _parse_plan_date(raw: Any) -> dt.date | dt.datetime:
    # A bare YYYY-MM-DD is a calendar day in the user's timezone, not UTC midnight.
    if isinstance(raw, str) and len(raw.strip()) == 10:
        return dt.date.fromisoformat(raw.strip())
    return parse_instant(raw)


def parse_assignments(raw: Any) -> list[PlanAssignment]:
    """
    Validate a planning response: a JSON array of {id, date}.

    `date` is either a day (YYYY-MM-DD, kept as a dt.date) or a full ISO timestamp.
    """
    if not isinstance(raw, list):
        raise PlanningServiceError("planning response is not a list")
    out: list[PlanAssignment] = []
    for item in raw:
        if not isinstance(item, dict) or "id" not in item or "date" not in item:
            raise PlanningServiceError(f"malformed assignment: {item!r}")
        try:
            task_id = int(item["id"])
            date = _parse_plan_date(item["date"])
        except (TypeError, ValueError) as e:
            raise PlanningServiceError(f"malformed assignment: {item!r}") from e
        out.append(PlanAssignment(id=task_id, date=date))
    return out


class HttpPlanningService:
    """
    Planning decisions from a remote endpoint.

    The request is allowed to take as long as the service needs: no timeout.
    """

    def __init__(self, url: str, *, client: httpx.AsyncClient | None = None) -> None:
        self._url = url
        self._client = client

    async def request_plan(self, request: PlanRequest) -> list[PlanAssignment]:
        payload = request.to_json()
        logger.info("Requesting plan url=%s days=%d", self._url, len(request.available_dates))
        try:
            if self._client is not None:
                resp = await self._client.post(self._url, json=payload, timeout=None)
            else:
                async with httpx.AsyncClient(timeout=None) as client:
                    resp = await client.post(self._url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise PlanningServiceError(f"planning request failed: {e}") from e
        except ValueError as e:
            raise PlanningServiceError("planning response is not JSON") from e
        return parse_assignments(data)


class ChatCompleter(Protocol):
    def complete(self, messages: list[dict[str, str]], system_prompt: str) -> str: ...


PLANNER_SYSTEM_PROMPT = """
You are a planning assistant. You distribute a user's unscheduled backlog tasks
across the days they still have room on.

Rules:
- Only use dates from availableDates. Never schedule on weekends.
- Respect priority: lower priority numbers are more urgent and go earlier.
- Keep related tasks (same project) close together.
- Spread the work: do not put more than one backlog task on a day unless
  there are more tasks than days.
- Output ONLY a JSON array, no prose, each element:
  {"id": <task id from the backlog>, "date": "<YYYY-MM-DD taken from availableDates>"}
""".strip()


def _task_brief(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "name": task.name,
        "description": task.description[:200],
        "priority": task.priority,
        "project_id": task.project_id,
        "date": iso_utc(task.date),
    }


def _extract_json(text: str) -> Any:
    s = _FENCE_RE.sub("", text.strip())
    start, end = s.find("["), s.rfind("]")
    if start < 0 or end < start:
        raise PlanningServiceError("model output has no JSON array")
    try:
        return json.loads(s[start : end + 1])
    except ValueError as e:
        raise PlanningServiceError("model output is not valid JSON") from e


class LLMPlanningService:
    """
    In-process planning service backed by an OpenAI-compatible model.

    Loads up to BACKLOG_LIMIT pending backlog tasks (by order) and the tasks
    already scheduled in the window, and asks the model for assignments.
    """

    def __init__(self, store: TaskRepo, llm: ChatCompleter, *, backlog_limit: int = BACKLOG_LIMIT) -> None:
        self._store = store
        self._llm = llm
        self._backlog_limit = backlog_limit

    def _build_prompt(self, request: PlanRequest) -> list[dict[str, str]]:
        backlog = self._store.list(
            TaskFilter(
                workspace_id=request.workspace_id,
                backlog=True,
                statuses=frozenset({TaskStatus.PENDING}),
                limit=self._backlog_limit,
            )
        )
        scheduled = self._store.list(
            TaskFilter(
                workspace_id=request.workspace_id,
                date_from=request.start_date,
                date_to=request.end_date,
            )
        )
        body = {
            **request.to_json(),
            "scheduledTasks": [_task_brief(t) for t in scheduled],
            "backlog": [_task_brief(t) for t in backlog],
        }
        return [{"role": "user", "content": json.dumps(body, ensure_ascii=False)}]

    async def request_plan(self, request: PlanRequest) -> list[PlanAssignment]:
        messages = await asyncio.to_thread(self._build_prompt, request)
        try:
            text = await asyncio.to_thread(self._llm.complete, messages, PLANNER_SYSTEM_PROMPT)
        except RuntimeError as e:
            raise PlanningServiceError(str(e)) from e

        assignments = parse_assignments(_extract_json(text))
        logger.info("LLM plan: %d assignments", len(assignments))
        return assignments
