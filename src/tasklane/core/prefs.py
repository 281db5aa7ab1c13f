# src/tasklane/core/prefs.py

"""
Local UI preferences.

Per view key: last view mode ("list", "calendar", "kanban") and sort order.
Plus the backlog panel collapsed flag. Stored as one small JSON file that is
rewritten atomically; not part of the task data.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ValidationError

logger = logging.getLogger(__name__)

VIEW_MODES = ("list", "calendar", "kanban")
SORT_KEYS = ("order", "date", "priority", "name")


@dataclass(slots=True, frozen=True)
class ViewPreference:
    view_mode: str = "list"
    sort: str = "order"


class ViewPreferences:
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._views: dict[str, ViewPreference] = {}
        self._backlog_collapsed = False
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except Exception:
            logger.exception("Failed to load view preferences from %s", self._path)
            return
        if not isinstance(data, dict):
            return

        views = data.get("views")
        if isinstance(views, dict):
            for key, raw in views.items():
                if not isinstance(raw, dict):
                    continue
                mode = raw.get("view_mode")
                sort = raw.get("sort")
                self._views[str(key)] = ViewPreference(
                    view_mode=mode if mode in VIEW_MODES else "list",
                    sort=sort if sort in SORT_KEYS else "order",
                )
        self._backlog_collapsed = bool(data.get("backlog_collapsed", False))
        logger.info("Loaded view preferences: %d views from %s", len(self._views), self._path)

    def _save(self) -> None:
        data: dict[str, Any] = {
            "views": {
                k: {"view_mode": v.view_mode, "sort": v.sort} for k, v in self._views.items()
            },
            "backlog_collapsed": self._backlog_collapsed,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(OSError):
            os.chmod(self._path, 0o600)

    def get(self, key: str) -> ViewPreference:
        return self._views.get(key, ViewPreference())

    def set(self, key: str, *, view_mode: str | None = None, sort: str | None = None) -> ViewPreference:
        if view_mode is not None and view_mode not in VIEW_MODES:
            raise ValidationError(f"unknown view mode {view_mode!r}; expected one of {', '.join(VIEW_MODES)}")
        if sort is not None and sort not in SORT_KEYS:
            raise ValidationError(f"unknown sort {sort!r}; expected one of {', '.join(SORT_KEYS)}")
        cur = self.get(key)
        new = ViewPreference(
            view_mode=view_mode or cur.view_mode,
            sort=sort or cur.sort,
        )
        self._views[key] = new
        self._save()
        return new

    @property
    def backlog_collapsed(self) -> bool:
        return self._backlog_collapsed

    def set_backlog_collapsed(self, collapsed: bool) -> None:
        self._backlog_collapsed = bool(collapsed)
        self._save()
