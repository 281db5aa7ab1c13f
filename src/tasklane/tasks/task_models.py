# src/tasklane/tasks/task_models.py

from __future__ import annotations

import datetime as dt
import difflib
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    """Task lifecycle status. Each value is also a kanban lane (see board.columns)."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        # Rows imported from the web app spell it "in progress".
        if raw == "in progress":
            return cls.IN_PROGRESS
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class IntegrationSource(StrEnum):
    GITHUB = "github"
    TRELLO = "trello"
    TODOIST = "todoist"
    TICKTICK = "ticktick"
    MONDAY = "monday"
    CLICKUP = "clickup"
    JIRA = "jira"

    @classmethod
    def from_db(cls, raw: str | None) -> IntegrationSource | None:
        if not raw:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


@dataclass(slots=True)
class Task:
    id: int
    workspace_id: str
    name: str
    status: TaskStatus = TaskStatus.PENDING
    date: dt.datetime | None = None
    order: int = 0

    description: str = ""
    project_id: str | None = None
    milestone_id: int | None = None
    tags: list[str] = field(default_factory=list)
    priority: int | None = None

    integration_source: IntegrationSource | None = None
    external_id: str | None = None
    external_data: dict[str, Any] = field(default_factory=dict)
    host: str | None = None

    assignee: str | None = None
    creator: str | None = None

    completed_at: dt.datetime | None = None
    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def is_imported(self) -> bool:
        return self.integration_source is not None


def fuzzy_name_match(name: str, query: str, *, threshold: float = 0.6) -> bool:
    """
    Loose backlog search: substring match, or a close difflib match
    against the whole name or any single word of it.
    """
    q = (query or "").strip().lower()
    if not q:
        return True
    n = (name or "").lower()
    if q in n:
        return True
    candidates = [n, *n.split()]
    return any(difflib.SequenceMatcher(None, q, c).ratio() >= threshold for c in candidates)


@dataclass(slots=True, frozen=True)
class TaskFilter:
    """
    Filter for TaskStore.list and view queries.

    Every list is scoped to one workspace. `date_from` is inclusive and
    `date_to` exclusive; `backlog=True` selects only tasks without a date.
    """

    workspace_id: str
    statuses: frozenset[TaskStatus] | None = None
    project_id: str | None = None
    milestone_id: int | None = None
    integration_source: IntegrationSource | None = None
    date_from: dt.datetime | None = None
    date_to: dt.datetime | None = None
    backlog: bool = False
    tags: frozenset[str] | None = None
    priority: int | None = None
    search: str | None = None
    limit: int | None = None

    def matches(self, task: Task) -> bool:
        if task.workspace_id != self.workspace_id:
            return False
        if self.statuses is not None and task.status not in self.statuses:
            return False
        if self.project_id is not None and task.project_id != self.project_id:
            return False
        if self.milestone_id is not None and task.milestone_id != self.milestone_id:
            return False
        if self.integration_source is not None and task.integration_source != self.integration_source:
            return False
        if self.priority is not None and task.priority != self.priority:
            return False
        if self.backlog and task.date is not None:
            return False
        if self.date_from is not None or self.date_to is not None:
            if task.date is None:
                return False
            if self.date_from is not None and task.date < self.date_from:
                return False
            if self.date_to is not None and task.date >= self.date_to:
                return False
        if self.tags and not (set(task.tags) & self.tags):
            return False
        if self.search and not fuzzy_name_match(task.name, self.search):
            return False
        return True


def sort_key(task: Task) -> tuple[int, float, int, int]:
    """Store ordering: by date (backlog last), then order, then id."""
    if task.date is None:
        return (1, 0.0, task.order, task.id)
    return (0, task.date.timestamp(), task.order, task.id)
