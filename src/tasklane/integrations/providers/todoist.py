# src/tasklane/integrations/providers/todoist.py

from __future__ import annotations

import logging
from typing import Any

from ...tasks.task_models import IntegrationSource, Task, TaskStatus
from ..models import Integration
from .base import ProviderAdapter

logger = logging.getLogger(__name__)

TODOIST_API = "https://api.todoist.com/api/v1"


class TodoistAdapter(ProviderAdapter):
    """Todoist has no status field, only close/reopen endpoints."""

    source = IntegrationSource.TODOIST

    def to_remote_status(self, task: Task, status: TaskStatus) -> str:
        return "close" if status == TaskStatus.COMPLETED else "reopen"

    async def push_status(
            self,
            task: Task,
            remote_status: Any,
            integration: Integration,
            *,
            user_id: str,
    ) -> None:
        action = str(remote_status)
        if action not in ("close", "reopen"):
            raise self._fail(f"unknown action {action!r}")
        task_id = self._external_id(task)
        await self._request(
            "POST",
            f"{TODOIST_API}/tasks/{task_id}/{action}",
            headers=self._auth_headers(integration),
        )
        logger.info("Todoist task %s %s (user=%s)", task_id, action, user_id)
