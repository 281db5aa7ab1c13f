"""
Tracker adapters.

Each adapter knows its tracker's status vocabulary and how to push a status
change. build_adapters() wires one per IntegrationSource.
"""

from __future__ import annotations

import httpx

from ...config import Settings
from ...tasks.task_models import IntegrationSource
from .base import ProviderAdapter
from .clickup import ClickUpAdapter
from .github import GitHubAdapter
from .jira import JiraAdapter
from .monday import MondayAdapter
from .ticktick import TickTickAdapter
from .todoist import TodoistAdapter
from .trello import TrelloAdapter

__all__ = ["ProviderAdapter", "build_adapters"]


def build_adapters(
        settings: Settings,
        client: httpx.AsyncClient | None = None,
) -> dict[IntegrationSource, ProviderAdapter]:
    adapters: list[ProviderAdapter] = [
        GitHubAdapter(client, api_url=settings.github_api_url),
        TrelloAdapter(client, api_key=settings.trello_api_key),
        TodoistAdapter(client),
        TickTickAdapter(client),
        MondayAdapter(client),
        ClickUpAdapter(client),
        JiraAdapter(client, api_url=settings.jira_api_url),
    ]
    return {a.source: a for a in adapters}
