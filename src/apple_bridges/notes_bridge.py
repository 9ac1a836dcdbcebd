"""notes-bridge: Apple Notes from the command line.

Usage::

    notes-bridge accounts
    notes-bridge folders [account]
    notes-bridge list [folder] [account]
    notes-bridge search <query>
    notes-bridge read <title> [account]
    notes-bridge add <folder> <title> <body> [account]
    notes-bridge append <title> <text> [account]
    notes-bridge delete <title> [account] [--force]

Notes stores bodies as HTML.  ``read`` strips the markup, ``add`` and
``append`` escape the text and turn line breaks into ``<br>``.
"""

from __future__ import annotations

import argparse
import html as _html_mod
import logging
import re
from collections.abc import Sequence

from .applescript import HANDLERS, parse_delimited_output, parse_iso, parse_lines, quote, run_script
from .cli import Command, arg, make_parser, run_bridge
from .errors import NotFoundError, ScriptError
from .models import NoteSummary

logger = logging.getLogger("apple_bridges.notes_bridge")

APP = "Notes"
PROG = "notes-bridge"

_BLOCK_END = re.compile(r"</p>|<br\s*/?>|</div>|</li>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_ENTITIES = [
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&amp;", "&"),
]


def strip_html(body: str) -> str:
    """Render a Notes HTML body as plain text."""
    text = _BLOCK_END.sub("\n", body)
    text = _TAG.sub("", text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def to_html(text: str) -> str:
    return _html_mod.escape(text, quote=False).replace("\r\n", "\n").replace("\n", "<br>")


# ---------------------------------------------------------------------------
# AppleScript access
# ---------------------------------------------------------------------------

# Sets matchNote to the first note called noteTitle in account accountName
# (any account when accountName is empty).
_FIND_NOTE = '''
    set matchNote to missing value
    repeat with acc in accounts
        if accountName is "" or name of acc is accountName then
            repeat with f in folders of acc
                set found to (notes of f whose name is noteTitle)
                if (count of found) > 0 then
                    set matchNote to item 1 of found
                    exit repeat
                end if
            end repeat
        end if
        if matchNote is not missing value then exit repeat
    end repeat
    if matchNote is missing value then return "NOTE_NOT_FOUND"
'''


def _note_script(title: str, account: str, action: str) -> str:
    return f'''
    set noteTitle to {quote(title)}
    set accountName to {quote(account)}
    tell application "Notes"
        {_FIND_NOTE}
        {action}
    end tell
    '''


def _raise_for_status(status: str, title: str) -> None:
    if status == "NOTE_NOT_FOUND":
        raise NotFoundError(f"Note '{title}' not found.")


def list_accounts(timeout: float = 30.0) -> list[str]:
    script = HANDLERS + '''
    tell application "Notes"
        set outputLines to {}
        repeat with acc in accounts
            set end of outputLines to my sanitise(name of acc)
        end repeat
        return my joinLines(outputLines)
    end tell
    '''
    return parse_lines(run_script(script, app=APP, timeout=timeout))


def list_folders(account: str, timeout: float = 30.0) -> list[str]:
    script = HANDLERS + f'''
    tell application "Notes"
        if not (exists account {quote(account)}) then return ""
        set outputLines to {{}}
        repeat with f in folders of account {quote(account)}
            set end of outputLines to my sanitise(name of f)
        end repeat
        return my joinLines(outputLines)
    end tell
    '''
    return parse_lines(run_script(script, app=APP, timeout=timeout))


def list_notes(folder: str, account: str, timeout: float = 60.0) -> list[NoteSummary]:
    script = HANDLERS + f'''
    tell application "Notes"
        if not (exists account {quote(account)}) then return "NOT_FOUND"
        if not (exists folder {quote(folder)} of account {quote(account)}) then return "NOT_FOUND"
        set outputLines to {{}}
        repeat with n in notes of folder {quote(folder)} of account {quote(account)}
            set end of outputLines to my sanitise(name of n) & tab & my isoDate(modification date of n)
        end repeat
        return my joinLines(outputLines)
    end tell
    '''
    raw = run_script(script, app=APP, timeout=timeout)
    if raw == "NOT_FOUND":
        raise NotFoundError(f"Folder '{folder}' not found in account '{account}'.")
    return [
        NoteSummary(name=record["name"], folder=folder, account=account, modified=parse_iso(record["modified"]))
        for record in parse_delimited_output(raw, ["name", "modified"])
    ]


def search_notes(query: str, timeout: float = 60.0) -> list[NoteSummary]:
    """Notes whose title or plain-text body contains ``query``, across all accounts."""
    script = HANDLERS + f'''
    set needle to {quote(query)}
    tell application "Notes"
        set outputLines to {{}}
        repeat with acc in accounts
            repeat with f in folders of acc
                repeat with n in notes of f
                    if (name of n contains needle) or (plaintext of n contains needle) then
                        set end of outputLines to my sanitise(name of n) & tab & my sanitise(name of f) & tab & my sanitise(name of acc)
                    end if
                end repeat
            end repeat
        end repeat
        return my joinLines(outputLines)
    end tell
    '''
    raw = run_script(script, app=APP, timeout=timeout)
    return [
        NoteSummary(name=record["name"], folder=record["folder"], account=record["account"])
        for record in parse_delimited_output(raw, ["name", "folder", "account"])
    ]


def read_note(title: str, account: str = "", timeout: float = 30.0) -> str:
    raw = run_script(_note_script(title, account, "return body of matchNote"), app=APP, timeout=timeout)
    _raise_for_status(raw, title)
    return strip_html(raw)


def add_note(folder: str, title: str, body: str, account: str, timeout: float = 30.0) -> None:
    html_body = f"<div><h1>{to_html(title)}</h1></div><div>{to_html(body)}</div>"
    script = f'''
    tell application "Notes"
        if not (exists account {quote(account)}) then return "NOT_FOUND"
        if not (exists folder {quote(folder)} of account {quote(account)}) then return "NOT_FOUND"
        make new note at folder {quote(folder)} of account {quote(account)} with properties {{name:{quote(title)}, body:{quote(html_body)}}}
        return "OK"
    end tell
    '''
    status = run_script(script, app=APP, timeout=timeout)
    if status == "NOT_FOUND":
        raise NotFoundError(f"Folder '{folder}' not found in account '{account}'.")
    if status != "OK":
        raise ScriptError("Failed to create note.")
    logger.info("Created note %r in %s/%s", title, account, folder)


def append_to_note(title: str, text: str, account: str = "", timeout: float = 30.0) -> None:
    action = f'set body of matchNote to (body of matchNote) & "<br>" & {quote(to_html(text))}\n        return "OK"'
    status = run_script(_note_script(title, account, action), app=APP, timeout=timeout)
    _raise_for_status(status, title)
    if status != "OK":
        raise ScriptError("Failed to append to note.")
    logger.info("Appended %d chars to note %r", len(text), title)


def delete_note(title: str, account: str = "", timeout: float = 30.0) -> None:
    status = run_script(_note_script(title, account, 'delete matchNote\n        return "OK"'), app=APP, timeout=timeout)
    _raise_for_status(status, title)
    if status != "OK":
        raise ScriptError("Failed to delete note.")
    logger.info("Deleted note %r", title)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _cmd_accounts(ns: argparse.Namespace) -> str:
    accounts = list_accounts(timeout=ns.settings.osascript_timeout_seconds)
    return "\n".join(accounts) if accounts else "No accounts found."


def _cmd_folders(ns: argparse.Namespace) -> str:
    account = arg(ns, 0, ns.settings.notes_default_account)
    folders = list_folders(account, timeout=ns.settings.osascript_timeout_seconds)
    if not folders:
        raise NotFoundError(f"No folders found in account '{account}'.")
    return "\n".join(folders)


def _cmd_list(ns: argparse.Namespace) -> str:
    folder = arg(ns, 0, ns.settings.notes_default_folder)
    account = arg(ns, 1, ns.settings.notes_default_account)
    notes = list_notes(folder, account, timeout=ns.settings.fetch_timeout_seconds)
    if not notes:
        return f"No notes in '{folder}'."
    return "\n".join(
        f"{note.name}  [{note.modified:%Y-%m-%d}]" if note.modified else note.name for note in notes
    )


def _cmd_search(ns: argparse.Namespace) -> str:
    query = ns.args[0]
    matches = search_notes(query, timeout=ns.settings.fetch_timeout_seconds)
    if not matches:
        return f"No notes matching '{query}'."
    lines = [f"Found {len(matches)} note(s):"]
    lines.extend(f"  {note.name}  [{note.folder} / {note.account}]" for note in matches)
    return "\n".join(lines)


def _cmd_read(ns: argparse.Namespace) -> str:
    return read_note(ns.args[0], arg(ns, 1), timeout=ns.settings.osascript_timeout_seconds)


def _cmd_add(ns: argparse.Namespace) -> str:
    folder, title, body = ns.args[0], ns.args[1], ns.args[2]
    account = arg(ns, 3, ns.settings.notes_default_account)
    add_note(folder, title, body, account, timeout=ns.settings.osascript_timeout_seconds)
    return f"Created note: {title}"


def _cmd_append(ns: argparse.Namespace) -> str:
    title, text = ns.args[0], ns.args[1]
    append_to_note(title, text, arg(ns, 2), timeout=ns.settings.osascript_timeout_seconds)
    return f"Appended to note: {title}"


def _cmd_delete(ns: argparse.Namespace) -> str:
    title = ns.args[0]
    if not ns.force:
        return f"Dry-run: would delete '{title}'. Use --force to actually delete."
    delete_note(title, arg(ns, 1), timeout=ns.settings.osascript_timeout_seconds)
    return f"Deleted note: {title}"


COMMANDS: dict[str, Command] = {
    "accounts": Command(_cmd_accounts),
    "folders": Command(_cmd_folders, "[account]"),
    "list": Command(_cmd_list, "[folder] [account]"),
    "search": Command(_cmd_search, "<query>", 1),
    "read": Command(_cmd_read, "<title> [account]", 1),
    "add": Command(_cmd_add, "<folder> <title> <body> [account]", 3),
    "append": Command(_cmd_append, "<title> <text> [account]", 2),
    "delete": Command(_cmd_delete, "<title> [account] [--force]", 1),
}


def build_parser() -> argparse.ArgumentParser:
    parser = make_parser(PROG, "Access Apple Notes")
    parser.add_argument("--force", action="store_true", help="Actually delete (default is a dry-run)")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    raise SystemExit(run_bridge(build_parser(), COMMANDS, argv))


if __name__ == "__main__":
    main()
