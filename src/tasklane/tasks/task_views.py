# src/tasklane/tasks/task_views.py

"""
View queries keyed by filter.

Each visible view (a week of day columns, the backlog panel, a kanban board)
registers one query. After a bulk write the mutator hands over the old and new
state of every touched task; any query whose filter could have included either
state is refetched and its subscribers are called with the fresh rows.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from ..core.ports import TaskRepo
from .task_models import Task, TaskFilter

logger = logging.getLogger(__name__)

ViewListener = Callable[[list[Task]], None]


@dataclass(slots=True)
class _Query:
    flt: TaskFilter
    rows: list[Task] | None = None
    listeners: list[ViewListener] = field(default_factory=list)


class ViewQueries:
    def __init__(self, store: TaskRepo) -> None:
        self._store = store
        self._queries: dict[str, _Query] = {}

    def register(self, key: str, flt: TaskFilter) -> None:
        q = self._queries.get(key)
        if q is None:
            self._queries[key] = _Query(flt=flt)
        elif q.flt != flt:
            q.flt = flt
            q.rows = None

    def subscribe(self, key: str, listener: ViewListener) -> None:
        q = self._queries.get(key)
        if q is None:
            raise KeyError(f"unknown view query: {key}")
        q.listeners.append(listener)

    def cached(self, key: str) -> list[Task] | None:
        q = self._queries.get(key)
        return None if q is None or q.rows is None else list(q.rows)

    def keys(self) -> list[str]:
        return list(self._queries)

    async def fetch(self, key: str) -> list[Task]:
        q = self._queries.get(key)
        if q is None:
            raise KeyError(f"unknown view query: {key}")
        rows = await asyncio.to_thread(self._store.list, q.flt)
        q.rows = rows
        for listener in list(q.listeners):
            try:
                listener(list(rows))
            except Exception:
                logger.exception("view listener failed key=%s", key)
        return rows

    def affected_keys(self, before: Iterable[Task], after: Iterable[Task]) -> list[str]:
        states = [*before, *after]
        return [
            key
            for key, q in self._queries.items()
            if any(q.flt.matches(t) for t in states)
        ]

    async def invalidate(self, before: Iterable[Task], after: Iterable[Task]) -> list[str]:
        """Refetch every query matching an old or new task state; returns the refetched keys."""
        keys = self.affected_keys(before, after)
        for key in keys:
            try:
                await self.fetch(key)
            except Exception:
                logger.exception("refetch failed key=%s", key)
        if keys:
            logger.debug("Invalidated views: %s", ", ".join(keys))
        return keys
