# src/tasklane/integrations/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..tasks.task_models import IntegrationSource


class SyncPolicy(StrEnum):
    AUTO = "auto"
    PROMPT = "prompt"
    NEVER = "never"

    @classmethod
    def from_config(cls, raw: Any) -> SyncPolicy:
        """Absent or unknown values mean NEVER."""
        try:
            return cls(str(raw).strip().lower()) if raw else cls.NEVER
        except ValueError:
            return cls.NEVER


class IntegrationStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


@dataclass(slots=True)
class Integration:
    workspace_id: str
    type: IntegrationSource
    status: IntegrationStatus = IntegrationStatus.ACTIVE
    config: dict[str, Any] = field(default_factory=dict)
    access_token: str | None = None
    id: int | None = None

    @property
    def is_active(self) -> bool:
        return self.status == IntegrationStatus.ACTIVE

    @property
    def sync_policy(self) -> SyncPolicy:
        return SyncPolicy.from_config(self.config.get("syncStatus"))


@dataclass(slots=True, frozen=True)
class Transition:
    """A remote status move the user can pick (Jira transition, ClickUp status)."""

    id: str
    name: str
    category: str | None = None
