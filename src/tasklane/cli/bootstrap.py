# src/tasklane/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/mutator/engine/planner/sync),
- picks the planning backend: HTTP endpoint, then LLM, then the offline greedy planner.
"""

from __future__ import annotations

import logging

import httpx

from ..board.drag_engine import DragReorderEngine
from ..config import Settings, get_settings
from ..core.dates import resolve_tz
from ..core.ports import Notifier, PlanningService, SyncPrompter
from ..core.prefs import ViewPreferences
from ..core.state import AppState, ViewContext
from ..integrations.providers import build_adapters
from ..integrations.status_sync import IntegrationStatusSync
from ..integrations.store import IntegrationStore
from ..llm.client import OpenAICompatClient
from ..planning.auto_planner import AutoPlanner
from ..planning.offline import GreedyPlanningService
from ..planning.service import HttpPlanningService, LLMPlanningService
from ..tasks.task_mutator import BulkTaskMutator
from ..tasks.task_store import TaskStore
from ..tasks.task_views import ViewQueries

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.prefs_path.parent.mkdir(parents=True, exist_ok=True)


def build_planning_service(
        settings: Settings,
        store: TaskStore,
        context: ViewContext,
        http: httpx.AsyncClient | None = None,
) -> PlanningService:
    if settings.planner_service_url:
        logger.info("Planner: HTTP service %s", settings.planner_service_url)
        return HttpPlanningService(settings.planner_service_url, client=http)

    if settings.llm_api_key:
        try:
            llm = OpenAICompatClient.from_settings(settings)
        except RuntimeError:
            logger.exception("LLM client init failed; using the offline planner")
        else:
            logger.info("Planner: LLM (%s)", ", ".join(settings.llm_models))
            return LLMPlanningService(store, llm)

    logger.info("Planner: offline greedy")
    return GreedyPlanningService(store, context.tz)


def create_initial_state(
        *,
        settings: Settings | None = None,
        notifier: Notifier | None = None,
        prompter: SyncPrompter | None = None,
        http: httpx.AsyncClient | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    context = ViewContext(
        workspace_id=settings.workspace_id,
        user_id=settings.user_id,
        tz=resolve_tz(settings.timezone),
    )

    task_store = TaskStore(settings.tasks_db_path)
    integrations = IntegrationStore(settings.tasks_db_path)
    views = ViewQueries(task_store)
    mutator = BulkTaskMutator(task_store, views, clock=context.now)

    engine = DragReorderEngine(mutator, context, notifier=notifier, views=views)
    planner = AutoPlanner(
        task_store,
        build_planning_service(settings, task_store, context, http),
        mutator,
        context,
        threshold=settings.planner_day_threshold,
    )
    status_sync = IntegrationStatusSync(
        mutator,
        integrations,
        build_adapters(settings, http),
        context,
        notifier=notifier,
        prompter=prompter,
    )

    return AppState(
        settings=settings,
        context=context,
        task_store=task_store,
        integrations=integrations,
        views=views,
        mutator=mutator,
        engine=engine,
        planner=planner,
        status_sync=status_sync,
        prefs=ViewPreferences(settings.prefs_path),
        http=http,
    )
