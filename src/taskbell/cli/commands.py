# src/taskbell/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import shlex
from collections.abc import Callable
from datetime import datetime
from typing import Any, cast

from ..config import ConfigurationError, missing_push_config
from ..core.state import AppState
from ..notify.dispatcher import TaskLookupError, run_sweep, send_test_notification
from ..notify.local_notifier import Permission
from ..notify.subscriptions import Principal, SubscriptionAccessError, save_subscription
from ..tasks import task_api
from ..tasks.task_models import Priority, Task, parse_timestamp

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

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

    def handle(
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

        try:
            parts = shlex.split(line[1:])
        except ValueError:
            parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_local(dt: datetime | None) -> str:
    if dt is None:
        return "-"
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def _split_options(args: list[str], names: set[str]) -> tuple[list[str], dict[str, str]]:
    """Split ["a", "--notify", "09:00", "b"] into (["a", "b"], {"notify": "09:00"})."""
    positional: list[str] = []
    options: dict[str, str] = {}
    i = 0
    while i < len(args):
        tok = args[i]
        if tok.startswith("--") and tok[2:] in names:
            if i + 1 >= len(args):
                raise ValueError(f"Missing value for {tok}")
            options[tok[2:]] = args[i + 1]
            i += 2
            continue
        positional.append(tok)
        i += 1
    return positional, options


def _parse_priority(raw: str) -> Priority:
    try:
        return Priority(raw.strip().upper())
    except ValueError:
        raise ValueError(f"Unknown priority: {raw} (use high/medium/low)") from None


def _task_line(i: int, task: Task) -> str:
    mark = "x" if task.is_completed else " "
    bell = f" notify {_fmt_local(task.notification_time)}" if task.notification_time else ""
    return (
        f"{i}. [{mark}] {task.id[:8]} {task.title} "
        f"({_fmt_local(task.start_date)} -> {_fmt_local(task.end_date)}, {task.priority.value.lower()}){bell}"
    )


def _resolve(state: AppState, args: list[str]) -> str | None:
    if not args:
        return None
    return task_api.resolve_task_id(state, args[0])


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    subs = state.subscriptions.list_by_user(state.user_id)
    missing = missing_push_config(settings)
    push = "configured" if not missing else f"NOT configured ({', '.join(missing)} missing)"
    return (
        "Status:\n"
        f"  User: {state.user_id}\n"
        f"  Tasks: {len(state.tasks)}\n"
        f"  Local notifications: {state.permission.value}\n"
        f"  Push subscriptions: {len(subs)}\n"
        f"  Server push: {push}"
    )


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks      -> open tasks
    /tasks all  -> include completed ones
    """
    show_all = bool(args) and args[0].lower() == "all"
    tasks = [t for t in state.tasks if show_all or not t.is_completed]
    if not tasks:
        return "No tasks." if show_all else "No open tasks."
    lines = ["Tasks:"]
    for i, t in enumerate(tasks, start=1):
        lines.append(_task_line(i, t))
    return "\n".join(lines)


_ADD_USAGE = (
    "Usage: /add <start> <end> <title...> "
    "[--notify <time>] [--priority high|medium|low] [--desc <text>] [--color <hex>]\n"
    "Times are ISO-8601, e.g. 2024-01-01T09:00 (local) or 2024-01-01T09:00:00Z."
)


def cmd_add(state: AppState, args: list[str]) -> str:
    try:
        positional, opts = _split_options(args, {"notify", "priority", "desc", "color"})
        if len(positional) < 3:
            return _ADD_USAGE
        start = parse_timestamp(positional[0])
        end = parse_timestamp(positional[1])
        title = " ".join(positional[2:]).strip()
        kwargs: dict[str, Any] = {}
        if "notify" in opts:
            kwargs["notification_time"] = parse_timestamp(opts["notify"])
        if "priority" in opts:
            kwargs["priority"] = _parse_priority(opts["priority"])
        if "desc" in opts:
            kwargs["description"] = opts["desc"]
        if "color" in opts:
            kwargs["category_color"] = opts["color"]
    except ValueError as e:
        return f"{e}\n{_ADD_USAGE}"

    task = task_api.create_task(state, title=title, start_date=start, end_date=end, **kwargs)
    return f"Task added: {task.id[:8]} {task.title}"


_EDIT_USAGE = (
    "Usage: /edit <id> [--title <text>] [--start <time>] [--end <time>] "
    "[--notify <time>|none] [--priority high|medium|low] [--desc <text>] [--color <hex>]"
)


def cmd_edit(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    if task_id is None:
        return f"Unknown or ambiguous task id.\n{_EDIT_USAGE}"
    try:
        _, opts = _split_options(
            args[1:], {"title", "start", "end", "notify", "priority", "desc", "color"}
        )
        updates: dict[str, Any] = {}
        if "title" in opts:
            updates["title"] = opts["title"]
        if "start" in opts:
            updates["start_date"] = parse_timestamp(opts["start"])
        if "end" in opts:
            updates["end_date"] = parse_timestamp(opts["end"])
        if "notify" in opts:
            raw = opts["notify"]
            updates["notification_time"] = None if raw.lower() == "none" else parse_timestamp(raw)
        if "priority" in opts:
            updates["priority"] = _parse_priority(opts["priority"])
        if "desc" in opts:
            updates["description"] = opts["desc"]
        if "color" in opts:
            updates["category_color"] = opts["color"]
    except ValueError as e:
        return f"{e}\n{_EDIT_USAGE}"

    if not updates:
        return _EDIT_USAGE
    task = task_api.update_task(state, task_id, **updates)
    if task is None:
        return "Task not found."
    return f"Task updated: {task.id[:8]} {task.title}"


def cmd_done(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    if task_id is None:
        return "Usage: /done <id> (unique id prefix from /tasks)."
    task = task_api.toggle_task_completion(state, task_id)
    if task is None:
        return "Task not found."
    return f"Task {task.id[:8]} is now {'completed' if task.is_completed else 'open'}."


def cmd_delete(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    if task_id is None:
        return "Usage: /delete <id> (unique id prefix from /tasks)."
    task_api.delete_task(state, task_id)
    return f"Task {task_id[:8]} deleted."


def cmd_notify(state: AppState, args: list[str]) -> str:
    """
    /notify      -> show local notification permission
    /notify on   -> allow local notifications
    /notify off  -> deny local notifications
    """
    if not args:
        return f"Local notifications: {state.permission.value}. Use /notify on or /notify off."

    arg = args[0].lower()
    if arg in ("on", "1", "true", "yes", "allow"):
        state.permission = Permission.GRANTED
        if state.on_tasks_changed is not None:
            state.on_tasks_changed()
        return "Local notifications allowed."
    if arg in ("off", "0", "false", "no", "deny"):
        state.permission = Permission.DENIED
        return "Local notifications blocked."
    return "Usage: /notify on or /notify off."


def cmd_subscribe(state: AppState, args: list[str]) -> str:
    """
    /subscribe <endpoint> <p256dh> <auth>
    /subscribe '<PushSubscription JSON>'
    """
    if len(args) == 1:
        try:
            info = json.loads(args[0])
        except json.JSONDecodeError:
            return "Invalid subscription JSON."
        if not isinstance(info, dict):
            return "Invalid subscription JSON."
    elif len(args) == 3:
        info = {"endpoint": args[0], "keys": {"p256dh": args[1], "auth": args[2]}}
    else:
        return "Usage: /subscribe <endpoint> <p256dh> <auth> | /subscribe '<subscription json>'"

    ok, message = save_subscription(state.subscriptions, state.user_id, info)
    if ok:
        return message
    return f"Failed to enable push notifications: {message}. Please try again."


def cmd_unsubscribe(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /unsubscribe <endpoint>"
    try:
        state.subscriptions.remove_endpoint(Principal.user(state.user_id), args[0])
    except SubscriptionAccessError as e:
        return f"Not allowed: {e}"
    return "Subscription removed."


def cmd_subs(state: AppState, args: list[str]) -> str:
    subs = state.subscriptions.list_by_user(state.user_id)
    if not subs:
        return "No push subscriptions."
    lines = ["Push subscriptions:"]
    for s in subs:
        lines.append(f"  #{s.id} {s.endpoint}")
    return "\n".join(lines)


def cmd_testpush(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        emit("[PUSH] Sending test notification...")
    try:
        ok, message = asyncio.run(
            send_test_notification(state.settings, state.subscriptions, state.user_id)
        )
    except ConfigurationError as e:
        return f"Push is not configured: {e}"
    return message if ok else f"Test push failed: {message}"


def cmd_sweep(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """Run one server sweep for the current minute (what the scheduler triggers)."""
    try:
        result = asyncio.run(run_sweep(state.settings, state.task_store, state.subscriptions))
    except ConfigurationError as e:
        return f"Server Configuration Error: {e}"
    except TaskLookupError as e:
        return f"Sweep failed: {e}"

    if result.processed == 0:
        return "No tasks to notify."
    return "Sweep result:\n" + json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show session, notification and push status.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks | /tasks all.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <start> <end> <title> [--notify <time>] ...")
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> --notify <time> ...")
registry.register("done", cmd_done, help_text="Toggle completion: /done <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("notify", cmd_notify, help_text="Local notifications: /notify on | /notify off.")
registry.register("subscribe", cmd_subscribe, help_text="Register a push endpoint for this user.")
registry.register("unsubscribe", cmd_unsubscribe, help_text="Revoke a push endpoint: /unsubscribe <endpoint>.")
registry.register("subs", cmd_subs, help_text="List this user's push endpoints.")
registry.register("testpush", cmd_testpush, help_text="Send a test push to all of this user's endpoints.")
registry.register("sweep", cmd_sweep, help_text="Run one notification sweep for the current minute.")
