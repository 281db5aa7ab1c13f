# src/tasklane/integrations/status_sync.py

from __future__ import annotations

"""
Completion toggle -> local write + remote tracker sync.

Policy per task, from the integration record of its source tracker:
- no source / never / inactive integration: local write only
- auto: local write, then push the mapped status
- prompt + transition-capable tracker: local write, then let the user pick
  a transition (cancel leaves the remote untouched)
- prompt + plain tracker: ask first; yes -> local write + push,
  no -> local write only

Remote failures are reported through the notifier and never revert the
local write. Local write failures propagate to the caller.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.errors import RemoteIntegrationError
from ..core.ports import IntegrationRepo, Notifier, SyncPrompter
from ..core.state import ViewContext
from ..tasks.task_models import IntegrationSource, Task, TaskStatus
from ..tasks.task_mutator import BulkTaskMutator, TaskUpdate
from .models import Integration, SyncPolicy, Transition
from .providers.base import ProviderAdapter

logger = logging.getLogger(__name__)


class SyncOutcome(StrEnum):
    LOCAL_ONLY = "local-only"
    SYNCED = "synced"
    SKIPPED = "skipped"
    REMOTE_FAILED = "remote-failed"


@dataclass(slots=True, frozen=True)
class SyncResult:
    task: Task
    outcome: SyncOutcome
    policy: SyncPolicy = SyncPolicy.NEVER
    remote_status: Any = None
    error: RemoteIntegrationError | None = None


class IntegrationStatusSync:
    def __init__(
            self,
            mutator: BulkTaskMutator,
            integrations: IntegrationRepo,
            adapters: Mapping[IntegrationSource, ProviderAdapter],
            context: ViewContext,
            *,
            notifier: Notifier | None = None,
            prompter: SyncPrompter | None = None,
    ) -> None:
        self._mutator = mutator
        self._integrations = integrations
        self._adapters = dict(adapters)
        self._ctx = context
        self._notifier = notifier
        self._prompter = prompter

    def _notify(self, message: str, level: str = "info") -> None:
        if self._notifier is not None:
            self._notifier.notify(message, level=level)

    async def _apply_local(self, task: Task, status: TaskStatus) -> Task:
        # completed_at is derived by the mutator
        written = await self._mutator.apply([TaskUpdate(task.id, {"status": status})])
        return written[0] if written else task

    async def _resolve(self, task: Task) -> tuple[Integration | None, ProviderAdapter | None, SyncPolicy]:
        source = task.integration_source
        if source is None:
            return None, None, SyncPolicy.NEVER
        integration = await asyncio.to_thread(
            self._integrations.get_integration, task.workspace_id, source
        )
        adapter = self._adapters.get(source)
        if integration is None or not integration.is_active or adapter is None:
            return integration, adapter, SyncPolicy.NEVER
        return integration, adapter, integration.sync_policy

    async def toggle_completion(self, task: Task, completed: bool) -> SyncResult:
        """Handle one checkbox toggle for `task`."""
        new_status = TaskStatus.COMPLETED if completed else TaskStatus.PENDING
        integration, adapter, policy = await self._resolve(task)
        logger.info(
            "Toggle task=%s completed=%s source=%s policy=%s",
            task.id, completed, task.integration_source, policy.value,
        )

        if policy == SyncPolicy.NEVER or integration is None or adapter is None:
            local = await self._apply_local(task, new_status)
            return SyncResult(task=local, outcome=SyncOutcome.LOCAL_ONLY, policy=policy)

        if policy == SyncPolicy.AUTO:
            local = await self._apply_local(task, new_status)
            remote = adapter.to_remote_status(local, new_status)
            return await self._push(local, remote, integration, adapter, policy)

        if adapter.has_transitions:
            local = await self._apply_local(task, new_status)
            return await self._pick_transition(local, integration, adapter)

        confirmed = await self._prompter.confirm_sync(task) if self._prompter else False
        local = await self._apply_local(task, new_status)
        if not confirmed:
            logger.info("Remote sync declined task=%s", task.id)
            return SyncResult(task=local, outcome=SyncOutcome.SKIPPED, policy=policy)
        remote = adapter.to_remote_status(local, new_status)
        return await self._push(local, remote, integration, adapter, policy)

    async def _push(
            self,
            task: Task,
            remote: Any,
            integration: Integration,
            adapter: ProviderAdapter,
            policy: SyncPolicy,
    ) -> SyncResult:
        try:
            await adapter.push_status(task, remote, integration, user_id=self._ctx.user_id)
        except RemoteIntegrationError as e:
            return self._remote_failed(task, policy, remote, e)
        self._notify(f"Updated {adapter.source.value}: {task.name}", "success")
        return SyncResult(task=task, outcome=SyncOutcome.SYNCED, policy=policy, remote_status=remote)

    async def _pick_transition(
            self,
            task: Task,
            integration: Integration,
            adapter: ProviderAdapter,
    ) -> SyncResult:
        policy = SyncPolicy.PROMPT
        try:
            transitions = await adapter.list_transitions(task, integration)
        except RemoteIntegrationError as e:
            return self._remote_failed(task, policy, None, e)

        choice: Transition | None = None
        if self._prompter is not None and transitions:
            choice = await self._prompter.choose_transition(task, transitions)
        if choice is None:
            logger.info("Transition picker closed task=%s", task.id)
            return SyncResult(task=task, outcome=SyncOutcome.SKIPPED, policy=policy)

        try:
            await adapter.apply_transition(task, choice, integration, user_id=self._ctx.user_id)
        except RemoteIntegrationError as e:
            return self._remote_failed(task, policy, choice, e)
        self._notify(f"Moved to {choice.name} in {adapter.source.value}: {task.name}", "success")
        return SyncResult(task=task, outcome=SyncOutcome.SYNCED, policy=policy, remote_status=choice)

    def _remote_failed(
            self,
            task: Task,
            policy: SyncPolicy,
            remote: Any,
            error: RemoteIntegrationError,
    ) -> SyncResult:
        logger.warning("Remote sync failed task=%s: %s", task.id, error)
        self._notify(f"Could not update {error.provider}: {error}", "error")
        return SyncResult(
            task=task,
            outcome=SyncOutcome.REMOTE_FAILED,
            policy=policy,
            remote_status=remote,
            error=error,
        )
