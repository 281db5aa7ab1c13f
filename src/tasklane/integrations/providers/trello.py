# src/tasklane/integrations/providers/trello.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...tasks.task_models import IntegrationSource, Task, TaskStatus
from ..models import Integration
from .base import ProviderAdapter

logger = logging.getLogger(__name__)

TRELLO_API = "https://api.trello.com/1"


class TrelloAdapter(ProviderAdapter):
    """Cards carry a boolean `dueComplete` flag."""

    source = IntegrationSource.TRELLO

    def __init__(
            self,
            client: httpx.AsyncClient | None = None,
            *,
            api_key: str | None = None,
    ) -> None:
        super().__init__(client)
        self._api_key = api_key

    def to_remote_status(self, task: Task, status: TaskStatus) -> bool:
        return status == TaskStatus.COMPLETED

    async def push_status(
            self,
            task: Task,
            remote_status: Any,
            integration: Integration,
            *,
            user_id: str,
    ) -> None:
        if not self._api_key:
            raise self._fail("TASKLANE_TRELLO_API_KEY is not set")
        card_id = self._external_id(task)
        await self._request(
            "PUT",
            f"{TRELLO_API}/cards/{card_id}",
            params={"key": self._api_key, "token": self._token(integration)},
            json={"dueComplete": bool(remote_status)},
        )
        logger.info("Trello card %s dueComplete=%s (user=%s)", card_id, remote_status, user_id)
