# src/tasklane/planning/models.py

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..core.dates import iso_utc


class PlannerState(StrEnum):
    IDLE = "idle"
    COMPUTING_CAPACITY = "computing-capacity"
    REQUESTING_PLAN = "requesting-plan"
    APPLYING = "applying"
    DONE = "done"
    ROLLED_BACK = "rolled-back"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class AvailableDate:
    date: dt.date
    weekday: str

    def to_json(self) -> dict[str, str]:
        return {"date": self.date.isoformat(), "weekday": self.weekday}


@dataclass(slots=True, frozen=True)
class PlanRequest:
    start_date: dt.datetime
    end_date: dt.datetime
    available_dates: tuple[AvailableDate, ...]
    workspace_id: str

    def to_json(self) -> dict[str, Any]:
        return {
            "startDate": iso_utc(self.start_date),
            "endDate": iso_utc(self.end_date),
            "availableDates": [d.to_json() for d in self.available_dates],
            "workspace_id": self.workspace_id,
        }


@dataclass(slots=True, frozen=True)
class PlanAssignment:
    id: int
    # A calendar day from the service, or the UTC instant of a local midnight once applied.
    date: dt.date | dt.datetime


@dataclass(slots=True)
class PlanResponse:
    """
    Assignments applied by one auto-plan run.

    Held in memory by the caller for the undo window only; never persisted.
    """

    assignments: list[PlanAssignment] = field(default_factory=list)
    created_at: dt.datetime | None = None

    @property
    def task_ids(self) -> list[int]:
        return [a.id for a in self.assignments]

    def __len__(self) -> int:
        return len(self.assignments)
