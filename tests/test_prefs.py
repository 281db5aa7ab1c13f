# tests/test_prefs.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tasklane.core.errors import ValidationError
from tasklane.core.prefs import ViewPreference, ViewPreferences


def test_defaults_without_file(tmp_path: Path) -> None:
    prefs = ViewPreferences(tmp_path / "prefs.json")

    assert prefs.get("project:p1") == ViewPreference()
    assert prefs.backlog_collapsed is False
    assert not (tmp_path / "prefs.json").exists()


def test_set_persists_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    prefs = ViewPreferences(path)

    prefs.set("project:p1", view_mode="kanban")
    prefs.set("project:p1", sort="priority")
    prefs.set_backlog_collapsed(True)

    again = ViewPreferences(path)
    assert again.get("project:p1") == ViewPreference(view_mode="kanban", sort="priority")
    assert again.backlog_collapsed is True
    assert not path.with_suffix(".tmp").exists()


def test_rejects_unknown_values(tmp_path: Path) -> None:
    prefs = ViewPreferences(tmp_path / "prefs.json")

    with pytest.raises(ValidationError):
        prefs.set("days", view_mode="gantt")
    with pytest.raises(ValidationError):
        prefs.set("days", sort="random")
    assert prefs.get("days") == ViewPreference()


def test_broken_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    path.write_text("{not json", "utf-8")

    assert ViewPreferences(path).get("days") == ViewPreference()


def test_unknown_stored_values_are_normalised(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    path.write_text(json.dumps({"views": {"days": {"view_mode": "gantt", "sort": "date"}}}), "utf-8")

    assert ViewPreferences(path).get("days") == ViewPreference(view_mode="list", sort="date")
