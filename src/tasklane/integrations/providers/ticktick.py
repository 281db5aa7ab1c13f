# src/tasklane/integrations/providers/ticktick.py

from __future__ import annotations

import logging
from typing import Any

from ...tasks.task_models import IntegrationSource, Task, TaskStatus
from ..models import Integration
from .base import ProviderAdapter

logger = logging.getLogger(__name__)

TICKTICK_API = "https://api.ticktick.com/api/v2"

# TickTick task status codes
OPEN = 0
DONE = 2


class TickTickAdapter(ProviderAdapter):
    """
    TickTick wants the whole task object back on update, so push_status reads
    the current task first and writes it back with the new numeric status.
    """

    source = IntegrationSource.TICKTICK

    def to_remote_status(self, task: Task, status: TaskStatus) -> int:
        return DONE if status == TaskStatus.COMPLETED else OPEN

    async def push_status(
            self,
            task: Task,
            remote_status: Any,
            integration: Integration,
            *,
            user_id: str,
    ) -> None:
        task_id = self._external_id(task)
        url = f"{TICKTICK_API}/task/{task_id}"
        headers = self._auth_headers(integration)

        resp = await self._request("GET", url, headers=headers)
        current = self._json(resp)
        if not isinstance(current, dict):
            raise self._fail(f"task {task_id} not found")

        current["status"] = int(remote_status)
        await self._request("PUT", url, headers=headers, json=current)
        logger.info("TickTick task %s status=%s (user=%s)", task_id, remote_status, user_id)
