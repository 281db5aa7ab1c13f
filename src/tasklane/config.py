# src/tasklane/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKLANE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Real environment variables win over .env values.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Viewer context ----
    workspace_id: str
    user_id: str
    timezone: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    prefs_path: Path

    # ---- Planner ----
    planner_day_threshold: int
    planner_service_url: str | None

    # ---- LLM planning (OpenAI-compatible) ----
    llm_api_key: str | None
    llm_base_url: str
    llm_models: list[str]

    # ---- Trackers ----
    trello_api_key: str | None
    github_api_url: str
    jira_api_url: str

    # ---- Background jobs ----
    overdue_interval_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasklane")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        workspace_id = _env(_k("WORKSPACE_ID"), "personal").strip() or "personal"
        user_id = _env(_k("USER_ID"), "me").strip() or "me"
        timezone = _first_env(_k("TIMEZONE"), "TZ", default="UTC") or "UTC"

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasklane"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        prefs_path = _env_path(_k("PREFS_PATH"), data_dir / "view_prefs.json")

        planner_day_threshold = max(1, _env_int(_k("PLANNER_DAY_THRESHOLD"), 2))
        planner_service_url = _first_env(_k("PLANNER_SERVICE_URL"), default=None)

        llm_api_key = _first_env(_k("LLM_API_KEY"), "OPENROUTER_API_KEY", default=None)
        llm_base_url = _env(_k("LLM_BASE_URL"), "https://openrouter.ai/api/v1")
        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "google/gemini-2.0-flash-001",
                "qwen/qwen-2.5-72b-instruct:free",
            ],
        )

        trello_api_key = _first_env(_k("TRELLO_API_KEY"), "TRELLO_API_KEY", default=None)
        github_api_url = _env(_k("GITHUB_API_URL"), "https://api.github.com")
        jira_api_url = _env(_k("JIRA_API_URL"), "https://api.atlassian.com")

        overdue_interval_seconds = _env_float(_k("OVERDUE_INTERVAL_SECONDS"), 3600.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            workspace_id=workspace_id,
            user_id=user_id,
            timezone=timezone,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            prefs_path=prefs_path,
            planner_day_threshold=planner_day_threshold,
            planner_service_url=planner_service_url,
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
            llm_models=llm_models,
            trello_api_key=trello_api_key,
            github_api_url=github_api_url,
            jira_api_url=jira_api_url,
            overdue_interval_seconds=overdue_interval_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
