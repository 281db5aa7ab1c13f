# src/tasklane/core/errors.py

"""
Error taxonomy.

- ValidationError: malformed filter/update payload, raised before any write.
- PersistenceError / BulkMutationError: the store rejected a read or write.
- DropCancelledError: a queued drop was not written because the one ahead of it failed.
- RemoteIntegrationError: a third-party tracker call failed.
- PlanningServiceError: the planning call failed or returned an unusable plan.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class TasklaneError(Exception):
    """Base class for all errors raised by tasklane."""


class ValidationError(TasklaneError, ValueError):
    pass


class PersistenceError(TasklaneError):
    pass


class BulkMutationError(PersistenceError):
    """
    One or more per-task writes failed.

    Writes are independent, so `attempted` may contain ids that were written
    successfully. Callers should refetch rather than trust optimistic state.
    """

    def __init__(
        self,
        failed: dict[Any, BaseException],
        attempted: Iterable[Any],
    ) -> None:
        self.failed = dict(failed)
        self.attempted = list(attempted)
        ids = ", ".join(str(k) for k in self.failed)
        super().__init__(
            f"{len(self.failed)} of {len(self.attempted)} task updates failed: {ids}"
        )


class DropCancelledError(TasklaneError):
    pass


class RemoteIntegrationError(TasklaneError):
    def __init__(self, provider: str, message: str, *, status_code: int | None = None) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class PlanningServiceError(TasklaneError):
    pass
