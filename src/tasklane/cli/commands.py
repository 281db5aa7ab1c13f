# src/tasklane/cli/commands.py

from __future__ import annotations

import asyncio
import datetime as dt
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable

from ..board.columns import (
    BACKLOG,
    Lane,
    container_filter,
    date_container_of,
    day_container,
    lane_container_of,
    parse_container,
)
from ..core.dates import local_day, parse_day
from ..core.errors import BulkMutationError, DropCancelledError, TasklaneError, ValidationError
from ..core.prefs import SORT_KEYS, VIEW_MODES
from ..core.state import AppState
from ..integrations.models import Integration, IntegrationStatus
from ..tasks.task_models import IntegrationSource, Task, TaskFilter, TaskStatus
from ..tasks.task_scheduler import reschedule_overdue

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[
    [AppState, list[str], CommandEmitter | None],
    str | Awaitable[str],
]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /days, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            result = handler(state, args, emit)
            if inspect.isawaitable(result):
                result = await result
        except ValidationError as e:
            return f"Invalid: {e}"
        except TasklaneError as e:
            logger.info("/%s failed: %s", name, e)
            return f"Failed: {e}"
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting ----

_CHECK = {
    TaskStatus.PENDING: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.COMPLETED: "[x]",
}


def format_task(task: Task) -> str:
    extra = []
    if task.integration_source is not None:
        extra.append(task.integration_source.value)
    if task.priority is not None:
        extra.append(f"p{task.priority}")
    if task.tags:
        extra.append(" ".join(f"#{t}" for t in task.tags))
    tail = f" ({', '.join(extra)})" if extra else ""
    return f"  {_CHECK.get(task.status, '[?]')} #{task.id} {task.name}{tail}"


def _sorted(state: AppState, key: str, rows: Iterable[Task]) -> list[Task]:
    sort = state.prefs.get(key).sort
    rows = list(rows)
    if sort == "name":
        return sorted(rows, key=lambda t: (t.name.lower(), t.id))
    if sort == "priority":
        return sorted(rows, key=lambda t: (t.priority is None, t.priority or 0, t.order, t.id))
    if sort == "date":
        return sorted(rows, key=lambda t: (t.date is None, t.date or dt.datetime.min, t.order, t.id))
    return sorted(rows, key=lambda t: (t.order, t.id))


def _week_days(anchor: dt.date) -> list[dt.date]:
    monday = anchor - dt.timedelta(days=anchor.weekday())
    return [monday + dt.timedelta(days=i) for i in range(7)]


# ---- containers ----

async def open_container(state: AppState, token: str) -> list[Task]:
    """
    Register a container as a view query feeding the drag engine, then fetch it.

    After any bulk write touching the container the query is refetched and
    the engine list replaced (or parked while a drop is pending).
    """
    container = parse_container(token)
    key = container.token
    ctx = state.context
    state.views.register(key, container_filter(container, ctx.workspace_id, ctx.tz))
    if key not in state.open_views:
        state.views.subscribe(key, lambda rows, _k=key: state.engine.load(_k, rows))
        state.open_views.add(key)
    await state.views.fetch(key)
    return state.engine.items(key)


async def _get_task(state: AppState, raw: str) -> Task:
    try:
        task_id = int(raw.lstrip("#"))
    except ValueError:
        raise ValidationError(f"not a task id: {raw!r}") from None
    task = await asyncio.to_thread(state.task_store.get, task_id)
    if task is None or task.workspace_id != state.context.workspace_id:
        raise ValidationError(f"task {task_id} not found")
    return task


# ---- handlers ----

def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_days(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /days             -> this week, Monday to Sunday
    /days YYYY-MM-DD  -> the week holding that day
    """
    anchor = state.context.today()
    if args:
        parsed = parse_day(args[0])
        if parsed is None:
            return "Usage: /days [YYYY-MM-DD]"
        anchor = parsed

    lines = []
    for day in _week_days(anchor):
        key = day_container(day)
        rows = _sorted(state, "days", await open_container(state, key))
        mark = " (today)" if day == state.context.today() else ""
        lines.append(f"{day.strftime('%a')} {key}{mark}")
        lines.extend(format_task(t) for t in rows)
    return "\n".join(lines)


async def cmd_backlog(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /backlog            -> unscheduled tasks
    /backlog <text>     -> fuzzy search by name
    /backlog collapse | expand
    """
    if args and args[0].lower() in ("collapse", "expand"):
        state.prefs.set_backlog_collapsed(args[0].lower() == "collapse")
        return f"Backlog panel {'collapsed' if state.prefs.backlog_collapsed else 'expanded'}."

    if args:
        flt = TaskFilter(
            workspace_id=state.context.workspace_id,
            backlog=True,
            search=" ".join(args),
        )
        rows = await asyncio.to_thread(state.task_store.list, flt)
        if not rows:
            return f"No backlog task matches {' '.join(args)!r}."
        return "\n".join([f"Backlog matches ({len(rows)}):", *(format_task(t) for t in rows)])

    rows = _sorted(state, BACKLOG, await open_container(state, BACKLOG))
    if state.prefs.backlog_collapsed:
        return f"Backlog: {len(rows)} tasks (collapsed, /backlog expand to show)."
    if not rows:
        return "Backlog is empty."
    return "\n".join([f"Backlog ({len(rows)}):", *(format_task(t) for t in rows)])


async def cmd_kanban(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    lines = []
    for lane in Lane:
        rows = _sorted(state, "kanban", await open_container(state, lane.value))
        lines.append(f"{lane.value} ({len(rows)})")
        lines.extend(format_task(t) for t in rows)
    return "\n".join(lines)


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add <name>                -> new backlog task
    /add <name> @YYYY-MM-DD    -> new task on that day (@today works too)
    """
    words = list(args)
    day: dt.date | None = None
    if words and words[-1].startswith("@"):
        token = words.pop()[1:]
        day = state.context.today() if token == "today" else parse_day(token)
        if day is None:
            return "Usage: /add <name> [@YYYY-MM-DD]"
    name = " ".join(words).strip()
    if not name:
        return "Usage: /add <name> [@YYYY-MM-DD]"

    ctx = state.context
    container = parse_container(day_container(day) if day else BACKLOG)
    siblings = await asyncio.to_thread(
        state.task_store.list, container_filter(container, ctx.workspace_id, ctx.tz)
    )
    task = Task(
        id=0,
        workspace_id=ctx.workspace_id,
        name=name,
        date=ctx.day_start(day) if day else None,
        order=len(siblings),
        assignee=ctx.user_id,
        creator=ctx.user_id,
    )
    task_id = await asyncio.to_thread(state.task_store.insert, task)
    if container.token in state.open_views:
        await state.views.fetch(container.token)
    return f"Added #{task_id} to {container.token}."


async def cmd_move(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /move <id> <backlog|YYYY-MM-DD|todo|in-progress|done> [position]
    """
    if len(args) < 2:
        return "Usage: /move <id> <backlog|YYYY-MM-DD|todo|in-progress|done> [position]"
    task = await _get_task(state, args[0])
    token = args[1].lower()
    if token == "today":
        token = day_container(state.context.today())
    target = parse_container(token)

    if target.is_date_view:
        source = date_container_of(task, state.context.tz)
    else:
        source = lane_container_of(task)

    await open_container(state, source)
    target_items = await open_container(state, target.token)
    index = len(target_items)
    if len(args) > 2:
        try:
            index = max(0, int(args[2]) - 1)
        except ValueError:
            return "Position must be a number (1 = top)."

    runner = state.engine.move(task.id, source, target.token, index)
    if runner is None:
        return f"#{task.id} already in {target.token}; nothing to write."
    try:
        written = await runner
    except (BulkMutationError, DropCancelledError) as e:
        return f"Move failed, {target.token} reloaded: {e}"
    return f"Moved #{task.id} to {target.token} ({len(written)} tasks written)."


async def _toggle(state: AppState, args: list[str], completed: bool) -> str:
    if not args:
        return f"Usage: /{'done' if completed else 'undo-done'} <id>"
    task = await _get_task(state, args[0])
    result = await state.status_sync.toggle_completion(task, completed)
    verb = "completed" if completed else "reopened"
    return f"#{task.id} {verb} (remote: {result.outcome.value})."


async def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return await _toggle(state, args, True)


async def cmd_undo_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return await _toggle(state, args, False)


async def cmd_plan(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        emit("[PLAN] Checking capacity and requesting a plan...")
    try:
        plan = await state.planner.run()
    except BulkMutationError as e:
        kept = len(state.planner.last_plan or ())
        return f"Plan partially applied ({kept} scheduled, /rollback to undo): {e}"

    tz = state.context.tz
    lines = [f"Scheduled {len(plan)} tasks (/rollback to undo):"]
    for a in sorted(plan.assignments, key=lambda a: (a.date, a.id)):
        lines.append(f"  #{a.id} -> {local_day(a.date, tz).isoformat()}")
    return "\n".join(lines)


async def cmd_rollback(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not state.planner.can_rollback:
        return "Nothing to roll back."
    written = await state.planner.rollback()
    return f"Rolled back: {len(written)} tasks returned to the backlog."


def cmd_view(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /view <key>                        -> show saved mode/sort
    /view <key> mode <list|calendar|kanban>
    /view <key> sort <order|date|priority|name>
    """
    if not args:
        return (
            "Usage: /view <key> [mode <" + "|".join(VIEW_MODES) + ">] "
            "[sort <" + "|".join(SORT_KEYS) + ">]"
        )
    key = args[0]
    opts = dict(zip(args[1::2], args[2::2]))
    if opts:
        pref = state.prefs.set(key, view_mode=opts.get("mode"), sort=opts.get("sort"))
    else:
        pref = state.prefs.get(key)
    return f"View {key}: mode={pref.view_mode} sort={pref.sort}"


async def cmd_overdue(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    moved = await reschedule_overdue(state.task_store, state.mutator, state.context)
    return f"Moved {len(moved)} overdue in-progress tasks to today."


async def cmd_integration(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /integration                                   -> list
    /integration <type> <auto|prompt|never> [token] -> configure
    """
    ws = state.context.workspace_id
    if not args:
        items = await asyncio.to_thread(state.integrations.list_integrations, ws)
        if not items:
            return "No integrations configured."
        return "\n".join(
            f"  {i.type.value}: {i.status.value}, sync={i.sync_policy.value}" for i in items
        )

    source = IntegrationSource.from_db(args[0].lower())
    if source is None or len(args) < 2:
        return "Usage: /integration <" + "|".join(s.value for s in IntegrationSource) + "> <auto|prompt|never> [token]"
    policy = args[1].lower()
    if policy not in ("auto", "prompt", "never"):
        return "Sync policy must be auto, prompt or never."

    current = await asyncio.to_thread(state.integrations.get_integration, ws, source)
    config = dict(current.config) if current else {}
    config["syncStatus"] = policy
    integration = Integration(
        workspace_id=ws,
        type=source,
        status=IntegrationStatus.ACTIVE,
        config=config,
        access_token=args[2] if len(args) > 2 else None,
    )
    await asyncio.to_thread(state.integrations.upsert, integration)
    return f"{source.value}: sync={policy}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("days", cmd_days, help_text="Week view: /days [YYYY-MM-DD].")
registry.register("backlog", cmd_backlog, help_text="Backlog: /backlog [search] | collapse | expand.")
registry.register("kanban", cmd_kanban, help_text="Kanban lanes (todo / in-progress / done).")
registry.register("add", cmd_add, help_text="New task: /add <name> [@YYYY-MM-DD].")
registry.register(
    "move", cmd_move, help_text="Drag a task: /move <id> <backlog|day|lane> [position].", aliases=["mv"]
)
registry.register("done", cmd_done, help_text="Complete a task (syncs its tracker): /done <id>.")
registry.register("undo-done", cmd_undo_done, help_text="Reopen a task: /undo-done <id>.")
registry.register("plan", cmd_plan, help_text="Auto-plan the backlog over the next weeks.")
registry.register("rollback", cmd_rollback, help_text="Undo the last auto-plan.")
registry.register("view", cmd_view, help_text="View prefs: /view <key> [mode ..] [sort ..].")
registry.register("overdue", cmd_overdue, help_text="Move overdue in-progress tasks to today.")
registry.register(
    "integration", cmd_integration, help_text="Trackers: /integration [<type> <auto|prompt|never> [token]]."
)
