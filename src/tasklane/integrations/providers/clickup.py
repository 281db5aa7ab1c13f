# src/tasklane/integrations/providers/clickup.py

from __future__ import annotations

import logging
from typing import Any

from ...tasks.task_models import IntegrationSource, Task, TaskStatus
from ..models import Integration, Transition
from .base import ProviderAdapter

logger = logging.getLogger(__name__)

CLICKUP_API = "https://api.clickup.com/api/v2"

STATUS_TO_CLICKUP: dict[TaskStatus, str] = {
    TaskStatus.PENDING: "to do",
    TaskStatus.IN_PROGRESS: "in progress",
    TaskStatus.COMPLETED: "complete",
}

CLICKUP_TRANSITIONS: tuple[Transition, ...] = (
    Transition(id="to do", name="To Do", category="new"),
    Transition(id="in progress", name="In Progress", category="indeterminate"),
    Transition(id="complete", name="Complete", category="done"),
)


class ClickUpAdapter(ProviderAdapter):
    """ClickUp statuses are plain strings; the picker offers a fixed set."""

    source = IntegrationSource.CLICKUP
    has_transitions = True

    def to_remote_status(self, task: Task, status: TaskStatus) -> str:
        return STATUS_TO_CLICKUP[status]

    async def list_transitions(self, task: Task, integration: Integration) -> list[Transition]:
        return list(CLICKUP_TRANSITIONS)

    async def push_status(
            self,
            task: Task,
            remote_status: Any,
            integration: Integration,
            *,
            user_id: str,
    ) -> None:
        task_id = self._external_id(task)
        await self._request(
            "PUT",
            f"{CLICKUP_API}/task/{task_id}",
            headers=self._auth_headers(integration),
            json={"status": str(remote_status)},
        )
        logger.info("ClickUp task %s -> %s (user=%s)", task_id, remote_status, user_id)
