# src/tasklane/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the overdue rescheduler in the
background and runs the console REPL until /exit or EOF.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

import httpx

from ..config import Settings, get_settings
from ..integrations.providers.base import DEFAULT_TIMEOUT
from ..logging_setup import setup_logging
from ..tasks.task_scheduler import run_overdue_rescheduler
from .bootstrap import create_initial_state
from .console import ConsoleNotifier, ConsolePrompter, run_console_loop

logger = logging.getLogger(__name__)


async def _run(settings: Settings) -> None:
    notifier = ConsoleNotifier()
    async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as http:
        state = create_initial_state(
            settings=settings,
            notifier=notifier,
            prompter=ConsolePrompter(),
            http=http,
        )
        notifier.notices = state.notices

        overdue = asyncio.create_task(
            run_overdue_rescheduler(
                state.task_store,
                state.mutator,
                state.context,
                interval_seconds=settings.overdue_interval_seconds,
            )
        )
        try:
            await run_console_loop(state)
        finally:
            overdue.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await overdue


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(
        log_dir=settings.data_dir,
        console_level=console_level,
        file_name=f"{settings.app_name}.log",
    )

    logger.info("Starting %s (log file %s)...", settings.app_name, log_file)
    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
