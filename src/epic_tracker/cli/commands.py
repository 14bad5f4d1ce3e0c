# src/epic_tracker/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from ..core.state import AppState
from ..errors import TrackerError, ValidationError
from ..tasks.task_codec import TIME_FORMAT, format_time
from ..tasks.task_models import Item, ItemKind, TaskStatus

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /task, ...)."""

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

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Tracker errors are turned into a reply instead of propagating.
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
            return handler(state, args)
        except TrackerError as e:
            logger.info("Command /%s rejected (%s): %s", name, e.code, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----


def _split_options(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """
    Split ["a", "b", "--desc", "x", "y", "--for", "30"] into
    (["a", "b"], {"desc": "x y", "for": "30"}).
    """
    words: list[str] = []
    opts: dict[str, list[str]] = {}
    current: list[str] = words
    for arg in args:
        if arg.startswith("--") and len(arg) > 2:
            current = opts.setdefault(arg[2:].lower(), [])
        else:
            current.append(arg)
    return words, {k: " ".join(v) for k, v in opts.items()}


def _parse_id(raw: str) -> int:
    try:
        return int(raw.lstrip("#"))
    except ValueError:
        raise ValidationError(f"Not an id: {raw!r}") from None


def _parse_schedule(opts: dict[str, str]) -> tuple[datetime | None, timedelta | None]:
    start_time: datetime | None = None
    duration: timedelta | None = None
    if opts.get("at"):
        try:
            start_time = datetime.strptime(opts["at"], TIME_FORMAT)
        except ValueError:
            raise ValidationError(f"Start time must look like 2023-01-01T10:00:00, got {opts['at']!r}") from None
    if opts.get("for"):
        try:
            duration = timedelta(minutes=int(opts["for"]))
        except ValueError:
            raise ValidationError(f"Duration must be whole minutes, got {opts['for']!r}") from None
    return start_time, duration


def format_item(item: Item) -> str:
    line = f"#{item.id} [{item.kind.value}] {item.name} ({item.status.value})"
    if item.start_time is not None:
        line += f" {format_time(item.start_time)}"
        if item.end_time is not None:
            line += f" -> {format_time(item.end_time)}"
    if item.kind is ItemKind.SUBTASK:
        line += f" epic=#{item.epic_id}"
    if item.description:
        line += f" - {item.description}"
    return line


def _format_list(title: str, items: list[Item]) -> str:
    if not items:
        return f"{title}: (none)"
    return "\n".join([f"{title}:"] + [f"  {format_item(i)}" for i in items])


def _find(state: AppState, item_id: int) -> Item | None:
    store = state.store
    return (
        store.get_task_by_id(item_id)
        or store.get_epic_by_id(item_id)
        or store.get_subtask_by_id(item_id)
    )


def _peek(state: AppState, item_id: int) -> Item | None:
    """Like _find, but scans the get_all_* copies so history is left alone."""
    store = state.store
    for getter in (store.get_all_tasks, store.get_all_epics, store.get_all_subtasks):
        for item in getter():
            if item.id == item_id:
                return item
    return None


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_task(state: AppState, args: list[str]) -> str:
    """/task NAME [--desc TEXT] [--at 2023-01-01T10:00:00] [--for MINUTES]"""
    words, opts = _split_options(args)
    if not words:
        return "Usage: /task NAME [--desc TEXT] [--at START] [--for MINUTES]"
    start_time, duration = _parse_schedule(opts)
    task_id = state.store.add_task(
        Item.task(" ".join(words), opts.get("desc", ""), start_time=start_time, duration=duration)
    )
    return f"Task #{task_id} created."


def cmd_epic(state: AppState, args: list[str]) -> str:
    """/epic NAME [--desc TEXT]"""
    words, opts = _split_options(args)
    if not words:
        return "Usage: /epic NAME [--desc TEXT]"
    epic_id = state.store.add_epic(Item.epic(" ".join(words), opts.get("desc", "")))
    return f"Epic #{epic_id} created."


def cmd_subtask(state: AppState, args: list[str]) -> str:
    """/subtask EPIC_ID NAME [--desc TEXT] [--at START] [--for MINUTES]"""
    words, opts = _split_options(args)
    if len(words) < 2:
        return "Usage: /subtask EPIC_ID NAME [--desc TEXT] [--at START] [--for MINUTES]"
    epic_id = _parse_id(words[0])
    start_time, duration = _parse_schedule(opts)
    subtask_id = state.store.add_subtask(
        Item.subtask(
            " ".join(words[1:]),
            opts.get("desc", ""),
            epic_id=epic_id,
            start_time=start_time,
            duration=duration,
        )
    )
    return f"Subtask #{subtask_id} created in epic #{epic_id}."


def cmd_show(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /show ID"
    item_id = _parse_id(args[0])
    item = _find(state, item_id)
    if item is None:
        return f"No item #{item_id}."
    if item.kind is ItemKind.EPIC:
        subtasks = state.store.get_all_subtasks_by_epic_id(item_id)
        return format_item(item) + "\n" + _format_list("Subtasks", subtasks)
    return format_item(item)


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list            -> everything
    /list tasks      -> tasks only (also: epics, subtasks)
    """
    store = state.store
    sections = {
        "tasks": ("Tasks", store.get_all_tasks),
        "epics": ("Epics", store.get_all_epics),
        "subtasks": ("Subtasks", store.get_all_subtasks),
    }
    if args:
        key = args[0].lower()
        if key not in sections:
            return "Usage: /list [tasks|epics|subtasks]"
        title, getter = sections[key]
        return _format_list(title, getter())
    return "\n".join(_format_list(title, getter()) for title, getter in sections.values())


def cmd_status(state: AppState, args: list[str]) -> str:
    """/status ID NEW|IN_PROGRESS|DONE (tasks and subtasks only)."""
    if len(args) != 2:
        return "Usage: /status ID NEW|IN_PROGRESS|DONE"
    item_id = _parse_id(args[0])
    try:
        status = TaskStatus.parse(args[1].upper())
    except ValueError:
        return f"Unknown status {args[1]!r}. Use NEW, IN_PROGRESS or DONE."

    store = state.store
    item = _peek(state, item_id)
    if item is None:
        return f"No item #{item_id}."
    if item.kind is ItemKind.EPIC:
        return "Epic status is derived from its subtasks and cannot be set."
    item.status = status
    if item.kind is ItemKind.TASK:
        store.update_task(item)
        return f"Task #{item_id} is now {status.value}."
    store.update_subtask(item)
    epic = _peek(state, item.epic_id) if item.epic_id is not None else None
    epic_note = f" Epic #{epic.id} is {epic.status.value}." if epic is not None else ""
    return f"Subtask #{item_id} is now {status.value}.{epic_note}"


def cmd_delete(state: AppState, args: list[str]) -> str:
    """
    /delete ID
    /delete all tasks|epics|subtasks
    """
    store = state.store
    if len(args) == 2 and args[0].lower() == "all":
        bulk = {
            "tasks": store.delete_all_tasks,
            "epics": store.delete_all_epics,
            "subtasks": store.delete_all_subtasks,
        }
        target = args[1].lower()
        if target not in bulk:
            return "Usage: /delete all tasks|epics|subtasks"
        bulk[target]()
        return f"All {target} deleted."
    if len(args) != 1:
        return "Usage: /delete ID | /delete all tasks|epics|subtasks"

    item_id = _parse_id(args[0])
    item = _peek(state, item_id)
    if item is None:
        return f"No item #{item_id}."
    deleters = {
        ItemKind.TASK: store.delete_task,
        ItemKind.EPIC: store.delete_epic,
        ItemKind.SUBTASK: store.delete_subtask,
    }
    deleters[item.kind](item_id)
    return f"{item.kind.value.capitalize()} #{item_id} deleted."


def cmd_history(state: AppState, args: list[str]) -> str:
    return _format_list("Recently viewed (oldest first)", state.store.get_history())


def cmd_prioritized(state: AppState, args: list[str]) -> str:
    return _format_list("Scheduled (by start time)", state.store.get_prioritized_tasks())


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("task", cmd_task, help_text="Add a task: /task NAME [--desc D] [--at START] [--for MIN].")
registry.register("epic", cmd_epic, help_text="Add an epic: /epic NAME [--desc D].")
registry.register(
    "subtask",
    cmd_subtask,
    help_text="Add a subtask: /subtask EPIC_ID NAME [--desc D] [--at START] [--for MIN].",
    aliases=["sub"],
)
registry.register("show", cmd_show, help_text="Show one item (recorded in history): /show ID.")
registry.register("list", cmd_list, help_text="List items: /list [tasks|epics|subtasks].", aliases=["ls"])
registry.register("status", cmd_status, help_text="Set status: /status ID NEW|IN_PROGRESS|DONE.")
registry.register("delete", cmd_delete, help_text="Delete: /delete ID | /delete all tasks|epics|subtasks.", aliases=["rm"])
registry.register("history", cmd_history, help_text="Show recently viewed items.")
registry.register("prioritized", cmd_prioritized, help_text="Show scheduled items by start time.", aliases=["plan"])
