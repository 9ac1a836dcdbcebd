"""reminders-bridge: Apple Reminders from the command line.

Usage::

    reminders-bridge lists
    reminders-bridge create-list <listName>
    reminders-bridge items <listName>
    reminders-bridge incomplete <listName>
    reminders-bridge today
    reminders-bridge overdue
    reminders-bridge search <query>
    reminders-bridge add <listName> <title> [notes]
    reminders-bridge set-due <listName> <title> <"YYYY-MM-DD HH:mm">
    reminders-bridge set-notes <listName> <title> <notes>
    reminders-bridge complete <listName> <title>
    reminders-bridge delete <listName> <title> [--force]

Reminders are read and written through AppleScript.  Filtering (today,
overdue, search) happens in Python over one bulk fetch.
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from datetime import datetime

from .applescript import (
    HANDLERS,
    date_literal,
    parse_bool,
    parse_delimited_output,
    parse_iso,
    parse_lines,
    quote,
    run_script,
)
from .cli import Command, arg, make_parser, run_bridge
from .dates import day_bounds, format_datetime, parse_datetime
from .errors import NotFoundError, ScriptError, UsageError
from .models import Reminder

logger = logging.getLogger("apple_bridges.reminders_bridge")

APP = "Reminders"
PROG = "reminders-bridge"

_FIELDS = ["id", "name", "body", "due", "completed", "priority", "list", "created"]


# ---------------------------------------------------------------------------
# AppleScript access
# ---------------------------------------------------------------------------

def _check_status(status: str, list_name: str, title: str, *, incomplete_only: bool = True) -> None:
    if status == "LIST_NOT_FOUND":
        raise NotFoundError(f"List '{list_name}' not found.")
    if status == "NOT_FOUND":
        if incomplete_only:
            raise NotFoundError(f"Reminder '{title}' not found or already completed.")
        raise NotFoundError(f"Reminder '{title}' not found.")
    if status != "OK":
        raise ScriptError(f"Unexpected response from Reminders: {status!r}")


def list_names(timeout: float = 30.0) -> list[str]:
    script = HANDLERS + '''
    tell application "Reminders"
        set listNames to name of every list
    end tell
    return my joinLines(listNames)
    '''
    return sorted(parse_lines(run_script(script, app=APP, timeout=timeout)))


def create_list(list_name: str, timeout: float = 30.0) -> None:
    script = f'''
    tell application "Reminders"
        make new list with properties {{name:{quote(list_name)}}}
        return "OK"
    end tell
    '''
    status = run_script(script, app=APP, timeout=timeout)
    if status != "OK":
        raise ScriptError(f"Error creating list: {status}")
    logger.info("Created reminders list %r", list_name)


def fetch_reminders(
    list_name: str = "",
    incomplete_only: bool = False,
    timeout: float = 60.0,
) -> list[Reminder]:
    """Fetch reminders of one list (or every list when ``list_name`` is empty)."""
    clause = " whose completed is false" if incomplete_only else ""
    if list_name:
        source = f'''
        if not (exists list {quote(list_name)}) then return "LIST_NOT_FOUND"
        set targetLists to {{list {quote(list_name)}}}
        '''
    else:
        source = "set targetLists to every list"

    script = HANDLERS + f'''
    tell application "Reminders"
        {source}
        set outputLines to {{}}
        repeat with lst in targetLists
            set listName to my sanitise(name of lst)
            repeat with rem in (every reminder of lst{clause})
                set remId to my sanitise(id of rem)
                set remName to my sanitise(name of rem)
                set remBody to ""
                try
                    set remBody to my sanitise(body of rem)
                end try
                set remDue to ""
                try
                    set remDue to my isoDate(due date of rem)
                end try
                set remDone to "false"
                if completed of rem then set remDone to "true"
                set remPriority to (priority of rem) as text
                set remCreated to ""
                try
                    set remCreated to my isoDate(creation date of rem)
                end try
                set end of outputLines to remId & tab & remName & tab & remBody & tab & remDue & tab & remDone & tab & remPriority & tab & listName & tab & remCreated
            end repeat
        end repeat
        return my joinLines(outputLines)
    end tell
    '''
    raw = run_script(script, app=APP, timeout=timeout)
    if raw == "LIST_NOT_FOUND":
        raise NotFoundError(f"List '{list_name}' not found.")
    return [_to_reminder(record) for record in parse_delimited_output(raw, _FIELDS)]


def _to_reminder(record: dict[str, str]) -> Reminder:
    try:
        priority = int(record.get("priority") or 0)
    except ValueError:
        priority = 0
    return Reminder(
        id=record["id"],
        title=record["name"],
        list_name=record["list"],
        notes=record.get("body", ""),
        due=parse_iso(record.get("due")),
        completed=parse_bool(record.get("completed")),
        priority=priority,
        created=parse_iso(record.get("created")),
    )


def add_reminder(list_name: str, title: str, notes: str = "", timeout: float = 30.0) -> None:
    props = f"name:{quote(title)}"
    if notes:
        props += f", body:{quote(notes)}"
    script = f'''
    tell application "Reminders"
        if not (exists list {quote(list_name)}) then return "LIST_NOT_FOUND"
        make new reminder at list {quote(list_name)} with properties {{{props}}}
        return "OK"
    end tell
    '''
    _check_status(run_script(script, app=APP, timeout=timeout), list_name, title)
    logger.info("Added reminder %r to %r", title, list_name)


def _mutate(
    list_name: str,
    title: str,
    action: str,
    *,
    prelude: str = "",
    incomplete_only: bool = True,
    timeout: float = 60.0,
) -> None:
    """Find the first reminder titled ``title`` in ``list_name`` and run ``action`` on ``matchedRem``."""
    clause = " and completed is false" if incomplete_only else ""
    script = f'''
    {prelude}
    tell application "Reminders"
        if not (exists list {quote(list_name)}) then return "LIST_NOT_FOUND"
        set matches to (every reminder of list {quote(list_name)} whose name is {quote(title)}{clause})
        if (count of matches) is 0 then return "NOT_FOUND"
        set matchedRem to item 1 of matches
        {action}
        return "OK"
    end tell
    '''
    status = run_script(script, app=APP, timeout=timeout)
    _check_status(status, list_name, title, incomplete_only=incomplete_only)


def set_due(list_name: str, title: str, due: datetime, timeout: float = 60.0) -> None:
    _mutate(
        list_name,
        title,
        "set due date of matchedRem to dueDate",
        prelude=date_literal("dueDate", due),
        timeout=timeout,
    )


def set_notes(list_name: str, title: str, notes: str, timeout: float = 60.0) -> None:
    _mutate(list_name, title, f"set body of matchedRem to {quote(notes)}", timeout=timeout)


def complete(list_name: str, title: str, timeout: float = 60.0) -> None:
    _mutate(list_name, title, "set completed of matchedRem to true", timeout=timeout)


def delete(list_name: str, title: str, force: bool, timeout: float = 60.0) -> None:
    """Delete the reminder, or only check that it exists when ``force`` is false."""
    _mutate(
        list_name,
        title,
        "delete matchedRem" if force else "",
        incomplete_only=False,
        timeout=timeout,
    )


# ---------------------------------------------------------------------------
# Filtering and formatting
# ---------------------------------------------------------------------------

def due_today(reminders: list[Reminder], now: datetime) -> list[Reminder]:
    start, end = day_bounds(now.date())
    matches = [r for r in reminders if not r.completed and r.due and start <= r.due < end]
    return sorted(matches, key=lambda r: r.due or datetime.max)


def overdue(reminders: list[Reminder], now: datetime) -> list[Reminder]:
    matches = [r for r in reminders if not r.completed and r.due and r.due < now]
    return sorted(matches, key=lambda r: r.due or datetime.min)


def search(reminders: list[Reminder], query: str) -> list[Reminder]:
    q = query.lower()
    matches = [r for r in reminders if q in r.title.lower() or q in r.notes.lower()]
    return _by_creation(matches)


def _by_creation(reminders: list[Reminder]) -> list[Reminder]:
    return sorted(reminders, key=lambda r: r.created or datetime.min)


def _priority_marker(priority: int) -> str:
    # Reminders uses 1-4 for high, 5 for medium, 6-9 for low, 0 for none
    if 1 <= priority <= 4:
        return " !!"
    if priority == 5:
        return " !"
    return ""


def format_reminder(reminder: Reminder) -> str:
    status = "[x]" if reminder.completed else "[ ]"
    due = f" (due: {format_datetime(reminder.due)})" if reminder.due else ""
    line = (
        f"{status} {reminder.title or '(no title)'}"
        f"{_priority_marker(reminder.priority)}{due} [{reminder.list_name}]"
    )
    if reminder.notes:
        line += f"\n     Notes: {reminder.notes}"
    return line


def _format_all(reminders: list[Reminder]) -> str:
    return "\n".join(format_reminder(r) for r in reminders)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _cmd_lists(ns: argparse.Namespace) -> str:
    return "\n".join(list_names(timeout=ns.settings.osascript_timeout_seconds))


def _cmd_create_list(ns: argparse.Namespace) -> str:
    create_list(ns.args[0], timeout=ns.settings.osascript_timeout_seconds)
    return f"Created list: {ns.args[0]}"


def _list_items(ns: argparse.Namespace, incomplete_only: bool) -> str:
    list_name = ns.args[0]
    reminders = fetch_reminders(
        list_name, incomplete_only=incomplete_only, timeout=ns.settings.fetch_timeout_seconds
    )
    if not reminders:
        return f"No {'incomplete ' if incomplete_only else ''}reminders in '{list_name}'."
    return _format_all(_by_creation(reminders))


def _cmd_items(ns: argparse.Namespace) -> str:
    return _list_items(ns, incomplete_only=False)


def _cmd_incomplete(ns: argparse.Namespace) -> str:
    return _list_items(ns, incomplete_only=True)


def _cmd_today(ns: argparse.Namespace) -> str:
    reminders = fetch_reminders(incomplete_only=True, timeout=ns.settings.fetch_timeout_seconds)
    due = due_today(reminders, datetime.now())
    if not due:
        return "No reminders due today."
    return f"{len(due)} reminder(s) due today:\n{_format_all(due)}"


def _cmd_overdue(ns: argparse.Namespace) -> str:
    reminders = fetch_reminders(incomplete_only=True, timeout=ns.settings.fetch_timeout_seconds)
    late = overdue(reminders, datetime.now())
    if not late:
        return "No overdue reminders."
    return f"{len(late)} overdue reminder(s):\n{_format_all(late)}"


def _cmd_search(ns: argparse.Namespace) -> str:
    query = ns.args[0]
    matches = search(fetch_reminders(timeout=ns.settings.fetch_timeout_seconds), query)
    if not matches:
        return f"No reminders found for '{query}'."
    return f"{len(matches)} result(s) for '{query}':\n{_format_all(matches)}"


def _cmd_add(ns: argparse.Namespace) -> str:
    list_name, title = ns.args[0], ns.args[1]
    add_reminder(list_name, title, arg(ns, 2), timeout=ns.settings.osascript_timeout_seconds)
    return f"Added: {title}"


def _cmd_set_due(ns: argparse.Namespace) -> str:
    list_name, title, raw_due = ns.args[0], ns.args[1], ns.args[2]
    due = parse_datetime(raw_due)
    if due is None:
        raise UsageError("Invalid date format. Use: YYYY-MM-DD HH:mm")
    set_due(list_name, title, due, timeout=ns.settings.fetch_timeout_seconds)
    return f"Updated due date: {title} → {format_datetime(due)}"


def _cmd_set_notes(ns: argparse.Namespace) -> str:
    list_name, title, notes = ns.args[0], ns.args[1], ns.args[2]
    set_notes(list_name, title, notes, timeout=ns.settings.fetch_timeout_seconds)
    return f"Updated notes: {title}"


def _cmd_complete(ns: argparse.Namespace) -> str:
    list_name, title = ns.args[0], ns.args[1]
    complete(list_name, title, timeout=ns.settings.fetch_timeout_seconds)
    return f"Completed: {title}"


def _cmd_delete(ns: argparse.Namespace) -> str:
    list_name, title = ns.args[0], ns.args[1]
    delete(list_name, title, force=ns.force, timeout=ns.settings.fetch_timeout_seconds)
    if not ns.force:
        return f"Would delete: {title} (list: {list_name})\nRe-run with --force to actually delete."
    return f"Deleted: {title}"


COMMANDS: dict[str, Command] = {
    "lists": Command(_cmd_lists),
    "create-list": Command(_cmd_create_list, "<listName>", 1),
    "items": Command(_cmd_items, "<listName>", 1),
    "incomplete": Command(_cmd_incomplete, "<listName>", 1),
    "today": Command(_cmd_today),
    "overdue": Command(_cmd_overdue),
    "search": Command(_cmd_search, "<query>", 1),
    "add": Command(_cmd_add, "<listName> <title> [notes]", 2),
    "set-due": Command(_cmd_set_due, '<listName> <title> <"YYYY-MM-DD HH:mm">', 3),
    "set-notes": Command(_cmd_set_notes, "<listName> <title> <notes>", 3),
    "complete": Command(_cmd_complete, "<listName> <title>", 2),
    "delete": Command(_cmd_delete, "<listName> <title> [--force]", 2),
}


def build_parser() -> argparse.ArgumentParser:
    parser = make_parser(PROG, "Access Apple Reminders")
    parser.add_argument("--force", action="store_true", help="Actually delete (default is a dry-run)")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    raise SystemExit(run_bridge(build_parser(), COMMANDS, argv, access_app=APP))


if __name__ == "__main__":
    main()
