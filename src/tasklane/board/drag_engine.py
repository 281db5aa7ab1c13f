# src/tasklane/board/drag_engine.py

from __future__ import annotations

"""
Drag/reorder engine.

Owns the ordered in-memory list of every visible container and turns moves
into bulk mutations in two phases:

1. speculative: the lists are patched synchronously, before any I/O;
2. settle: the write runs as an asyncio task. On success the speculative patch
   is replaced by the refetched rows; on failure the touched containers go
   back to their pre-drop snapshots, then to the refetched rows (part of the
   bulk write may have landed), and the error is reported.

While a container has a write in flight, refetches for it are parked instead
of applied, and later drops into it chain their write behind the pending one.
A chained drop whose predecessor failed is cancelled without writing.
"""

import asyncio
import datetime as dt
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from ..core.errors import DropCancelledError, ValidationError
from ..core.ports import Notifier
from ..core.state import ViewContext
from ..tasks.task_models import Task
from ..tasks.task_mutator import BulkTaskMutator
from ..tasks.task_views import ViewQueries
from .columns import (
    BACKLOG,
    DropEvent,
    Lane,
    Mutation,
    date_container_of,
    day_container,
    lane_container_of,
    resolve_drop,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _PendingDrop:
    seq: int
    task_id: int
    mutation: Mutation
    snapshots: dict[str, list[Task]]
    # Per container: the state before the oldest unsettled drop in this chain.
    base: dict[str, list[Task]] = field(default_factory=dict)
    waits_for: list[asyncio.Task] = field(default_factory=list)


def _reindexed(items: Iterable[Task]) -> list[Task]:
    return [t if t.order == i else replace(t, order=i) for i, t in enumerate(items)]


class DragReorderEngine:
    def __init__(
        self,
        mutator: BulkTaskMutator,
        context: ViewContext,
        *,
        notifier: Notifier | None = None,
        views: ViewQueries | None = None,
    ) -> None:
        self._mutator = mutator
        self._ctx = context
        self._notifier = notifier
        self._views = views
        self._lists: dict[str, list[Task]] = {}
        self._pending: dict[str, tuple[_PendingDrop, asyncio.Task]] = {}
        self._parked: dict[str, list[Task]] = {}
        self._seq = 0

    # ---- container state ----

    def items(self, container: str) -> list[Task]:
        return list(self._lists.get(container, []))

    def containers(self) -> list[str]:
        return list(self._lists)

    def is_pending(self, container: str) -> bool:
        return container in self._pending

    def load(self, container: str, tasks: Iterable[Task]) -> bool:
        """
        Replace a container's list with fresh rows.

        Returns False when the container has a write in flight; the rows are
        parked and applied once it settles.
        """
        rows = sorted(tasks, key=lambda t: (t.order, t.id))
        if container in self._pending:
            self._parked[container] = rows
            logger.debug("load parked for pending container=%s", container)
            return False
        self._lists[container] = rows
        return True

    def load_calendar(self, tasks: Iterable[Task], days: Iterable[dt.date]) -> None:
        """Split date-view rows into one container per day plus the backlog."""
        grouped: dict[str, list[Task]] = {day_container(d): [] for d in days}
        grouped[BACKLOG] = []
        for t in tasks:
            key = date_container_of(t, self._ctx.tz)
            if key in grouped:
                grouped[key].append(t)
        for key, rows in grouped.items():
            self.load(key, rows)

    def load_kanban(self, tasks: Iterable[Task]) -> None:
        grouped: dict[str, list[Task]] = {lane.value: [] for lane in Lane}
        for t in tasks:
            grouped[lane_container_of(t)].append(t)
        for key, rows in grouped.items():
            self.load(key, rows)

    # ---- moves ----

    def move(self, task_id: int, source: str, target: str, index: int) -> asyncio.Task | None:
        """
        Move a task and schedule its write.

        The lists are updated before this returns. Returns the asyncio task
        carrying the write (it raises if the write fails), or None when the
        drop needs no write. Must be called from a running event loop.
        """
        src = self._lists.get(source)
        if src is None:
            raise ValidationError(f"container {source!r} is not loaded")
        moved = next((t for t in src if t.id == task_id), None)
        if moved is None:
            raise ValidationError(f"task {task_id} is not in {source!r}")

        snapshots = {source: list(src)}
        remaining = [t for t in src if t.id != task_id]
        if target == source:
            dest = remaining
        else:
            snapshots[target] = list(self._lists.get(target, []))
            dest = list(snapshots[target])
        index = max(0, min(int(index), len(dest)))
        dest.insert(index, moved)

        event = DropEvent(
            source=source,
            target=target,
            task=moved,
            target_items=dest,
            source_items=remaining if target != source else (),
        )
        mutation = resolve_drop(event, self._ctx.tz)

        # Speculative patch: dense order in memory, plus the resolved fields.
        patched = {u.task_id: u.updates for u in mutation.updates} if mutation else {}
        self._lists[target] = [
            replace(t, **{k: v for k, v in patched.get(t.id, {}).items()}) for t in _reindexed(dest)
        ]
        if target != source:
            self._lists[source] = _reindexed(remaining)

        if mutation is None:
            logger.debug("Drop task=%s %s -> %s is a no-op", task_id, source, target)
            return None

        self._seq += 1
        op = _PendingDrop(seq=self._seq, task_id=task_id, mutation=mutation, snapshots=snapshots)
        ahead = {c: self._pending[c] for c in snapshots if c in self._pending}
        op.base = {c: ahead[c][0].base[c] if c in ahead else snap for c, snap in snapshots.items()}
        op.waits_for = list({runner for _, runner in ahead.values()})

        runner = asyncio.get_running_loop().create_task(self._settle(op))
        for container in snapshots:
            self._pending[container] = (op, runner)

        logger.info(
            "Drop task=%s %s -> %s[%d] writes=%d queued_behind=%d",
            task_id,
            source,
            target,
            index,
            len(mutation.updates),
            len(op.waits_for),
        )
        return runner

    async def _settle(self, op: _PendingDrop) -> list[Task]:
        try:
            if op.waits_for:
                await asyncio.wait(op.waits_for)
                # This drop was resolved against lists a failed drop had patched.
                if any(p.cancelled() or p.exception() is not None for p in op.waits_for):
                    raise DropCancelledError(
                        f"move of task {op.task_id} cancelled: an earlier move into the same column failed"
                    )
            written = await self._mutator.apply(op.mutation.updates)
        except Exception as e:
            logger.warning("Drop #%d write failed, reverting %s: %s", op.seq, list(op.snapshots), e)
            await self._recover(op, cancelled=isinstance(e, DropCancelledError))
            if self._notifier is not None:
                self._notifier.notify(f"Could not move task: {e}", level="error")
            raise
        finally:
            self._release(op)
        return written

    def _owns(self, op: _PendingDrop, container: str) -> bool:
        current = self._pending.get(container)
        return current is not None and current[0] is op

    async def _recover(self, op: _PendingDrop, *, cancelled: bool) -> None:
        """
        Put the containers this drop still owns back to what the store holds.

        The snapshot goes in first. Some writes of a bulk mutation may have
        landed, so a refetch replaces it on release: the mutator's view
        invalidation has usually parked one already, otherwise it is fetched
        here. Containers a later drop has taken over are left to that drop.
        """
        restore = op.base if cancelled else op.snapshots
        for container, snap in restore.items():
            if not self._owns(op, container):
                continue
            self._lists[container] = snap
            if container in self._parked or self._views is None or container not in self._views.keys():
                continue
            try:
                await self._views.fetch(container)
            except Exception:
                logger.exception("refetch after failed drop failed container=%s", container)

    def _release(self, op: _PendingDrop) -> None:
        for container in op.snapshots:
            if self._owns(op, container):
                del self._pending[container]
                parked = self._parked.pop(container, None)
                if parked is not None:
                    self._lists[container] = parked
