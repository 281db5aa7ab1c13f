# src/tasklane/integrations/providers/github.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...tasks.task_models import IntegrationSource, Task, TaskStatus
from ..models import Integration
from .base import ProviderAdapter

logger = logging.getLogger(__name__)


class GitHubAdapter(ProviderAdapter):
    """Issues are either open or closed."""

    source = IntegrationSource.GITHUB

    def __init__(
            self,
            client: httpx.AsyncClient | None = None,
            *,
            api_url: str = "https://api.github.com",
    ) -> None:
        super().__init__(client)
        self._api_url = api_url.rstrip("/")

    def to_remote_status(self, task: Task, status: TaskStatus) -> str:
        return "closed" if status == TaskStatus.COMPLETED else "open"

    def _issue_url(self, task: Task) -> str:
        data = task.external_data or {}
        url = data.get("url")
        if url:
            return str(url)
        repo = data.get("repository") or data.get("repo")
        number = data.get("number")
        if repo and number:
            return f"{self._api_url}/repos/{repo}/issues/{number}"
        raise self._fail(f"task {task.id} has no issue url")

    async def push_status(
            self,
            task: Task,
            remote_status: Any,
            integration: Integration,
            *,
            user_id: str,
    ) -> None:
        url = self._issue_url(task)
        headers = {
            **self._auth_headers(integration),
            "Accept": "application/vnd.github+json",
        }
        await self._request("PATCH", url, headers=headers, json={"state": str(remote_status)})
        logger.info("GitHub issue %s -> %s (user=%s)", url, remote_status, user_id)
