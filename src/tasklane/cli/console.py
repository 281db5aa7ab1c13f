# src/tasklane/cli/console.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..core.state import AppState
from ..integrations.models import Transition
from ..tasks.task_models import Task
from .commands import CommandRegistry
from .commands import registry as command_registry

logger = logging.getLogger(__name__)

_LEVEL_TAG = {"info": "INFO", "success": "OK", "warning": "WARN", "error": "ERROR"}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleNotifier:
    """Toasts for the console: printed immediately and kept in AppState.notices."""

    def __init__(self, notices: list[str] | None = None, *, keep: int = 50) -> None:
        self.notices: list[str] = notices if notices is not None else []
        self._keep = keep

    def notify(self, message: str, *, level: str = "info") -> None:
        line = f"[{_LEVEL_TAG.get(level, level.upper())}] {message}"
        self.notices.append(line)
        del self.notices[: -self._keep]
        _print_ts(line)


class ConsolePrompter:
    """
    Remote-sync prompts read from stdin.

    input() runs in a worker thread so the event loop keeps settling writes.
    """

    async def _ask(self, prompt: str) -> str:
        try:
            return (await asyncio.to_thread(input, prompt)).strip()
        except EOFError:
            return ""

    async def confirm_sync(self, task: Task) -> bool:
        source = task.integration_source.value if task.integration_source else "remote"
        answer = await self._ask(f"Also update #{task.id} in {source}? [y/N] ")
        return answer.lower() in ("y", "yes")

    async def choose_transition(self, task: Task, transitions: list[Transition]) -> Transition | None:
        print(f"Move #{task.id} {task.name!r} in the tracker to:")
        for i, t in enumerate(transitions, start=1):
            print(f"  {i}. {t.name}")
        answer = await self._ask("Number (empty to skip): ")
        if not answer:
            return None
        try:
            idx = int(answer) - 1
        except ValueError:
            return None
        if 0 <= idx < len(transitions):
            return transitions[idx]
        return None


async def run_console_loop(state: AppState, registry: CommandRegistry = command_registry) -> None:
    logger.info("Console started (workspace=%s tz=%s).", state.context.workspace_id, state.context.tz)
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (e.g. planning)
        _print_ts(text)

    while True:
        try:
            line = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not line.startswith("/"):
            _print_ts("Commands start with '/'. Use /help.")
            continue

        try:
            reply = await registry.handle(state, line, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            print(reply, file=sys.stdout, flush=True)

    logger.info("Console finished.")
