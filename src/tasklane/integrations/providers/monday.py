# src/tasklane/integrations/providers/monday.py

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

from ...tasks.task_models import IntegrationSource, Task, TaskStatus
from ..models import Integration
from .base import ProviderAdapter

logger = logging.getLogger(__name__)

MONDAY_API = "https://api.monday.com/v2"

DONE_LABELS = ("done", "complete", "completed", "finished")
OPEN_LABELS = ("to do", "todo", "pending", "in progress", "not started")

COLUMNS_QUERY = """
query ($board: [ID!]) {
  boards(ids: $board) {
    columns { id title type settings_str }
  }
}
"""

CHANGE_STATUS_MUTATION = """
mutation ($board: ID!, $item: ID!, $column: String!, $value: JSON!) {
  change_column_value(board_id: $board, item_id: $item, column_id: $column, value: $value) {
    id
  }
}
"""


def pick_label(labels: Sequence[str], state: str) -> str | None:
    """
    Choose the board label for a local completion state.

    Falls back to the last label for "completed" and the first otherwise.
    """
    if not labels:
        return None
    wanted = DONE_LABELS if state == "completed" else OPEN_LABELS
    for label in labels:
        if label.strip().lower() in wanted:
            return label
    return labels[-1] if state == "completed" else labels[0]


def labels_from_settings(settings_str: str | None) -> list[str]:
    """Monday stores status labels as {"0": "Working on it", "1": "Done", ...}."""
    if not settings_str:
        return []
    try:
        settings = json.loads(settings_str)
    except ValueError:
        return []
    raw = settings.get("labels") if isinstance(settings, dict) else None
    if isinstance(raw, dict):
        def _key(k: str) -> int:
            return int(k) if str(k).isdigit() else 0
        return [str(raw[k]) for k in sorted(raw, key=_key) if raw[k]]
    if isinstance(raw, list):
        return [str(x) for x in raw if x]
    return []


class MondayAdapter(ProviderAdapter):
    """
    Monday boards have free-form status labels.

    to_remote_status() returns the local state ("completed"/"pending"); the
    concrete label is resolved at push time from the label snapshot stored
    in external_data, or from the board's status column.
    """

    source = IntegrationSource.MONDAY

    def to_remote_status(self, task: Task, status: TaskStatus) -> str:
        return "completed" if status == TaskStatus.COMPLETED else "pending"

    async def _graphql(self, integration: Integration, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        resp = await self._request(
            "POST",
            MONDAY_API,
            headers=self._auth_headers(integration),
            json={"query": query, "variables": variables},
        )
        payload = self._json(resp) or {}
        # GraphQL errors come back with HTTP 200.
        if payload.get("errors") or payload.get("error_message"):
            raise self._fail(f"graphql error: {payload.get('errors') or payload.get('error_message')}")
        return payload.get("data") or {}

    async def _status_column(self, integration: Integration, board_id: str) -> tuple[str, list[str]]:
        data = await self._graphql(integration, COLUMNS_QUERY, {"board": [board_id]})
        boards = data.get("boards") or []
        columns = (boards[0] or {}).get("columns") or [] if boards else []
        for col in columns:
            title = str(col.get("title") or "").lower()
            if col.get("type") == "status" or "status" in title:
                return str(col["id"]), labels_from_settings(col.get("settings_str"))
        raise self._fail(f"board {board_id} has no status column")

    async def push_status(
            self,
            task: Task,
            remote_status: Any,
            integration: Integration,
            *,
            user_id: str,
    ) -> None:
        item_id = self._external_id(task)
        data = task.external_data or {}
        board_id = data.get("board_id")
        if not board_id:
            raise self._fail(f"task {task.id} has no board id")

        column_id = data.get("status_column_id")
        labels = [str(x) for x in (data.get("status_labels") or [])]
        if not column_id or not labels:
            column_id, board_labels = await self._status_column(integration, str(board_id))
            labels = labels or board_labels

        label = pick_label(labels, str(remote_status))
        if label is None:
            raise self._fail(f"board {board_id} has no status labels")

        await self._graphql(
            integration,
            CHANGE_STATUS_MUTATION,
            {
                "board": str(board_id),
                "item": item_id,
                "column": str(column_id),
                "value": json.dumps({"label": label}),
            },
        )
        logger.info("Monday item %s -> %r (user=%s)", item_id, label, user_id)
