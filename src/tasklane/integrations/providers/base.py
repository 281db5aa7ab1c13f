# src/tasklane/integrations/providers/base.py

from __future__ import annotations

import logging
from typing import Any, ClassVar

import httpx

from ...core.errors import RemoteIntegrationError
from ...tasks.task_models import IntegrationSource, Task, TaskStatus
from ..models import Integration, Transition

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(20.0, connect=10.0)


class ProviderAdapter:
    """
    Base tracker adapter.

    Subclasses set `source`, map local statuses with to_remote_status() and
    implement push_status(). Trackers with a workflow (Jira, ClickUp) set
    `has_transitions` and implement list_transitions()/apply_transition().

    Every HTTP failure surfaces as RemoteIntegrationError.
    """

    source: ClassVar[IntegrationSource]
    has_transitions: ClassVar[bool] = False

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        # Shared client is optional; tests inject one backed by MockTransport.
        self._client = client

    # ---- vocabulary ----

    def to_remote_status(self, task: Task, status: TaskStatus) -> Any:
        raise NotImplementedError

    # ---- remote calls ----

    async def push_status(
            self,
            task: Task,
            remote_status: Any,
            integration: Integration,
            *,
            user_id: str,
    ) -> None:
        raise NotImplementedError

    async def list_transitions(self, task: Task, integration: Integration) -> list[Transition]:
        raise RemoteIntegrationError(self.source.value, "transitions are not supported")

    async def apply_transition(
            self,
            task: Task,
            transition: Transition,
            integration: Integration,
            *,
            user_id: str,
    ) -> None:
        await self.push_status(task, transition.id, integration, user_id=user_id)

    # ---- helpers ----

    def _fail(self, message: str, *, status_code: int | None = None) -> RemoteIntegrationError:
        return RemoteIntegrationError(self.source.value, message, status_code=status_code)

    def _external_id(self, task: Task) -> str:
        if not task.external_id:
            raise self._fail(f"task {task.id} has no external id")
        return str(task.external_id)

    def _token(self, integration: Integration) -> str:
        if not integration.access_token:
            raise self._fail("integration has no access token")
        return integration.access_token

    def _auth_headers(self, integration: Integration) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token(integration)}"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._client is not None:
                resp = await self._client.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
                    resp = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise self._fail(f"{method} {url} failed: {e}") from e

        if resp.status_code >= 400:
            body = resp.text[:200]
            logger.warning(
                "%s %s %s -> HTTP %s: %s",
                self.source.value, method, url, resp.status_code, body,
            )
            raise self._fail(f"HTTP {resp.status_code}: {body}", status_code=resp.status_code)
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None
