# src/tasklane/integrations/providers/jira.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...tasks.task_models import IntegrationSource, Task, TaskStatus
from ..models import Integration, Transition
from .base import ProviderAdapter

logger = logging.getLogger(__name__)

# Jira status categories
CATEGORY_NEW = "new"
CATEGORY_IN_PROGRESS = "indeterminate"
CATEGORY_DONE = "done"

STATUS_TO_CATEGORY: dict[TaskStatus, str] = {
    TaskStatus.PENDING: CATEGORY_NEW,
    TaskStatus.IN_PROGRESS: CATEGORY_IN_PROGRESS,
    TaskStatus.COMPLETED: CATEGORY_DONE,
}


class JiraAdapter(ProviderAdapter):
    """
    Jira Cloud via the Atlassian API gateway.

    Issues move through workflow transitions, not by setting a status. With
    the auto policy the first transition into the wanted status category is
    applied.
    """

    source = IntegrationSource.JIRA
    has_transitions = True

    def __init__(
            self,
            client: httpx.AsyncClient | None = None,
            *,
            api_url: str = "https://api.atlassian.com",
    ) -> None:
        super().__init__(client)
        self._api_url = api_url.rstrip("/")

    def to_remote_status(self, task: Task, status: TaskStatus) -> str:
        return STATUS_TO_CATEGORY[status]

    def _headers(self, integration: Integration) -> dict[str, str]:
        return {**self._auth_headers(integration), "Accept": "application/json"}

    async def _cloud_id(self, task: Task, integration: Integration) -> str:
        cached = (task.external_data or {}).get("cloud_id") or integration.config.get("cloud_id")
        if cached:
            return str(cached)
        resp = await self._request(
            "GET",
            f"{self._api_url}/oauth/token/accessible-resources",
            headers=self._headers(integration),
        )
        resources = self._json(resp) or []
        if not resources:
            raise self._fail("no accessible Jira resources")
        return str(resources[0]["id"])

    async def _transitions_url(self, task: Task, integration: Integration) -> str:
        cloud_id = await self._cloud_id(task, integration)
        issue = self._external_id(task)
        return f"{self._api_url}/ex/jira/{cloud_id}/rest/api/2/issue/{issue}/transitions"

    async def list_transitions(self, task: Task, integration: Integration) -> list[Transition]:
        url = await self._transitions_url(task, integration)
        resp = await self._request("GET", url, headers=self._headers(integration))
        payload = self._json(resp) or {}

        out: list[Transition] = []
        for t in payload.get("transitions") or []:
            to = t.get("to") or {}
            category = (to.get("statusCategory") or {}).get("key")
            out.append(
                Transition(
                    id=str(t["id"]),
                    name=str(t.get("name") or to.get("name") or t["id"]),
                    category=category,
                )
            )
        return out

    async def apply_transition(
            self,
            task: Task,
            transition: Transition,
            integration: Integration,
            *,
            user_id: str,
    ) -> None:
        url = await self._transitions_url(task, integration)
        await self._request(
            "POST",
            url,
            headers=self._headers(integration),
            json={"transition": {"id": transition.id}},
        )
        logger.info(
            "Jira issue %s transition %s (%s) (user=%s)",
            task.external_id, transition.id, transition.name, user_id,
        )

    async def push_status(
            self,
            task: Task,
            remote_status: Any,
            integration: Integration,
            *,
            user_id: str,
    ) -> None:
        category = str(remote_status)
        transitions = await self.list_transitions(task, integration)
        match = next((t for t in transitions if t.category == category), None)
        if match is None:
            raise self._fail(f"issue {task.external_id} has no transition into {category!r}")
        await self.apply_transition(task, match, integration, user_id=user_id)
