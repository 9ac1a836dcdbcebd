"""mail-bridge: Apple Mail from the command line.

Usage::

    mail-bridge accounts
    mail-bridge mailboxes [account]
    mail-bridge list [mailbox] [account] [count]
    mail-bridge unread [mailbox] [account]
    mail-bridge search <query> [account]
    mail-bridge read <index> [mailbox] [account] [--mark-read]
    mail-bridge send <to> <subject> <body> [--from <account-or-address>]
    mail-bridge delete <index> [mailbox] [account] [--force]

Messages are addressed by position: index 1 is the newest message of the
mailbox.  Without an account the first configured account is used.
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence

from .applescript import (
    HANDLERS,
    parse_bool,
    parse_delimited_output,
    parse_iso,
    parse_lines,
    quote,
    run_script,
)
from .cli import Command, arg, int_arg, make_parser, required_int, run_bridge
from .dates import format_datetime
from .errors import NotFoundError, ScriptError
from .models import MailMessage

logger = logging.getLogger("apple_bridges.mail_bridge")

APP = "Mail"
PROG = "mail-bridge"

_FIELDS = ["index", "subject", "sender", "received", "read"]


def account_clause(account: str = "") -> str:
    return f"account {quote(account)}" if account else "item 1 of accounts"


def _raise_for_status(status: str, index: int, mailbox: str) -> None:
    if status == "INDEX_OUT_OF_RANGE":
        raise NotFoundError(f"Message index {index} is out of range.")
    if status == "MAILBOX_NOT_FOUND":
        raise NotFoundError(f"Mailbox '{mailbox}' not found.")


# ---------------------------------------------------------------------------
# AppleScript access
# ---------------------------------------------------------------------------

def list_accounts(timeout: float = 30.0) -> list[str]:
    script = HANDLERS + '''
    tell application "Mail"
        set outputLines to {}
        repeat with acc in accounts
            set end of outputLines to my sanitise(name of acc)
        end repeat
        return my joinLines(outputLines)
    end tell
    '''
    return parse_lines(run_script(script, app=APP, timeout=timeout))


def list_mailboxes(account: str = "", timeout: float = 30.0) -> list[str]:
    script = HANDLERS + f'''
    tell application "Mail"
        set outputLines to {{}}
        repeat with mb in mailboxes of {account_clause(account)}
            set end of outputLines to my sanitise(name of mb)
        end repeat
        return my joinLines(outputLines)
    end tell
    '''
    return parse_lines(run_script(script, app=APP, timeout=timeout))


def _message_loop(mailbox: str, account: str, condition: str, limit: int = 0) -> str:
    """AppleScript that walks ``mailbox`` newest first and emits matching records.

    ``condition`` is an AppleScript boolean expression over ``m``; ``limit``
    caps the number of records (0 means no cap).
    """
    return HANDLERS + f'''
    tell application "Mail"
        set acc to {account_clause(account)}
        if not (exists mailbox {quote(mailbox)} of acc) then return "MAILBOX_NOT_FOUND"
        set msgs to messages of mailbox {quote(mailbox)} of acc
        set msgCount to count of msgs
        set outputLines to {{}}
        repeat with i from msgCount to 1 by -1
            set m to item i of msgs
            if {condition} then
                set end of outputLines to ((msgCount - i + 1) as text) & tab & my sanitise(subject of m) & tab & my sanitise(sender of m) & tab & my isoDate(date received of m) & tab & (read status of m as text)
                if {limit} > 0 and (count of outputLines) is {limit} then exit repeat
            end if
        end repeat
        return my joinLines(outputLines)
    end tell
    '''


def _fetch(script: str, mailbox: str, timeout: float) -> list[MailMessage]:
    raw = run_script(script, app=APP, timeout=timeout)
    _raise_for_status(raw, 0, mailbox)
    return [
        MailMessage(
            index=int(record["index"]),
            subject=record["subject"],
            sender=record["sender"],
            received=parse_iso(record["received"]),
            read=parse_bool(record["read"]),
        )
        for record in parse_delimited_output(raw, _FIELDS)
    ]


def list_messages(mailbox: str, account: str = "", count: int = 20, timeout: float = 60.0) -> list[MailMessage]:
    return _fetch(_message_loop(mailbox, account, "true", max(count, 1)), mailbox, timeout)


def unread_messages(mailbox: str, account: str = "", timeout: float = 60.0) -> list[MailMessage]:
    return _fetch(_message_loop(mailbox, account, "read status of m is false"), mailbox, timeout)


def search_messages(query: str, mailbox: str, account: str = "", timeout: float = 60.0) -> list[MailMessage]:
    needle = quote(query)
    condition = f"(subject of m contains {needle}) or (sender of m contains {needle})"
    return _fetch(_message_loop(mailbox, account, condition), mailbox, timeout)


def _by_index(index: int, mailbox: str, account: str, action: str) -> str:
    return HANDLERS + f'''
    tell application "Mail"
        set acc to {account_clause(account)}
        if not (exists mailbox {quote(mailbox)} of acc) then return "MAILBOX_NOT_FOUND"
        set msgs to messages of mailbox {quote(mailbox)} of acc
        set msgCount to count of msgs
        set reverseIdx to msgCount - {index - 1}
        if reverseIdx < 1 or reverseIdx > msgCount then return "INDEX_OUT_OF_RANGE"
        set m to item reverseIdx of msgs
        {action}
    end tell
    '''


def read_message(index: int, mailbox: str, account: str = "", mark_read: bool = False, timeout: float = 30.0) -> MailMessage:
    """Fetch message ``index`` with its content; optionally flag it as read."""
    action = "\n".join(
        [
            "set header to my sanitise(subject of m) & tab & my sanitise(sender of m) & tab & my isoDate(date received of m) & tab & (read status of m as text)",
            "set msgContent to content of m",
            "if msgContent is missing value then set msgContent to \"\"",
            "set read status of m to true" if mark_read else "",
            "return header & linefeed & msgContent",
        ]
    )
    raw = run_script(_by_index(index, mailbox, account, action), app=APP, timeout=timeout)
    _raise_for_status(raw, index, mailbox)
    header, _, content = raw.partition("\n")
    records = parse_delimited_output(header, _FIELDS[1:])
    if not records:
        raise ScriptError("Error reading message.")
    record = records[0]
    if mark_read:
        logger.info("Marked message #%d in %r as read", index, mailbox)
    return MailMessage(
        index=index,
        subject=record["subject"],
        sender=record["sender"],
        received=parse_iso(record["received"]),
        read=parse_bool(record["read"]) or mark_read,
        content=content.strip(),
    )


def _sender_clause(sender: str) -> str:
    if not sender:
        return ""
    if "@" in sender:
        return f"set sender of newMsg to {quote(sender)}"
    return (
        f"if not (exists account {quote(sender)}) then return \"ACCOUNT_NOT_FOUND\"\n"
        f"        set sender of newMsg to item 1 of (email addresses of account {quote(sender)})"
    )


def send_message(recipient: str, subject: str, body: str, sender: str = "", timeout: float = 30.0) -> None:
    script = f'''
    tell application "Mail"
        set newMsg to make new outgoing message with properties {{subject:{quote(subject)}, content:{quote(body)}, visible:false}}
        {_sender_clause(sender)}
        tell newMsg
            make new to recipient at end of to recipients with properties {{address:{quote(recipient)}}}
        end tell
        send newMsg
        return "OK"
    end tell
    '''
    status = run_script(script, app=APP, timeout=timeout)
    if status == "ACCOUNT_NOT_FOUND":
        raise NotFoundError(f"Account '{sender}' not found.")
    if status != "OK":
        raise ScriptError("Failed to send message.")
    logger.info("Sent message %r to %s", subject, recipient)


def delete_message(index: int, mailbox: str, account: str = "", timeout: float = 30.0) -> None:
    status = run_script(_by_index(index, mailbox, account, 'delete m\n        return "OK"'), app=APP, timeout=timeout)
    _raise_for_status(status, index, mailbox)
    if status != "OK":
        raise ScriptError("Failed to delete message.")
    logger.info("Moved message #%d in %r to Trash", index, mailbox)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def _month_day(message: MailMessage) -> str:
    if message.received is None:
        return ""
    return f" ({message.received.month}/{message.received.day})"


def format_summary(message: MailMessage, numbered: bool = False) -> str:
    unread = "" if message.read else " [UNREAD]"
    prefix = f"{message.index}. " if numbered else ""
    return f"{prefix}{message.subject}{unread} — {message.sender}{_month_day(message)}"


def format_message(message: MailMessage) -> str:
    received = format_datetime(message.received) if message.received else ""
    return "\n".join(
        [
            f"From: {message.sender}",
            f"Date: {received}",
            f"Subject: {message.subject}",
            "---",
            message.content,
        ]
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _cmd_accounts(ns: argparse.Namespace) -> str:
    accounts = list_accounts(timeout=ns.settings.osascript_timeout_seconds)
    return "\n".join(accounts) if accounts else "No accounts found."


def _cmd_mailboxes(ns: argparse.Namespace) -> str:
    account = arg(ns, 0)
    mailboxes = list_mailboxes(account, timeout=ns.settings.osascript_timeout_seconds)
    if not mailboxes:
        raise NotFoundError(f"No mailboxes found{f' for {account!r}' if account else ''}")
    return "\n".join(mailboxes)


def _cmd_list(ns: argparse.Namespace) -> str:
    mailbox = arg(ns, 0, ns.settings.mail_default_mailbox)
    count = int_arg(ns, 2, ns.settings.mail_list_count)
    messages = list_messages(mailbox, arg(ns, 1), count, timeout=ns.settings.fetch_timeout_seconds)
    if not messages:
        return f"No messages in '{mailbox}'."
    return "\n".join(format_summary(m, numbered=True) for m in messages)


def _cmd_unread(ns: argparse.Namespace) -> str:
    mailbox = arg(ns, 0, ns.settings.mail_default_mailbox)
    messages = unread_messages(mailbox, arg(ns, 1), timeout=ns.settings.fetch_timeout_seconds)
    if not messages:
        return f"No unread messages in '{mailbox}'."
    lines = [f"Unread in '{mailbox}' ({len(messages)}):"]
    lines.extend(f"  {format_summary(m, numbered=True)}" for m in messages)
    return "\n".join(lines)


def _cmd_search(ns: argparse.Namespace) -> str:
    query = ns.args[0]
    messages = search_messages(
        query, ns.settings.mail_default_mailbox, arg(ns, 1), timeout=ns.settings.fetch_timeout_seconds
    )
    if not messages:
        return f"No messages matching '{query}'."
    lines = [f"Found {len(messages)} message(s):"]
    lines.extend(f"  {format_summary(m, numbered=True)}" for m in messages)
    return "\n".join(lines)


def _cmd_read(ns: argparse.Namespace) -> str:
    index = required_int(ns, 0)
    mailbox = arg(ns, 1, ns.settings.mail_default_mailbox)
    message = read_message(
        index, mailbox, arg(ns, 2), mark_read=ns.mark_read, timeout=ns.settings.osascript_timeout_seconds
    )
    return format_message(message)


def _cmd_send(ns: argparse.Namespace) -> str:
    recipient, subject, body = ns.args[0], ns.args[1], ns.args[2]
    send_message(recipient, subject, body, sender=ns.sender or "", timeout=ns.settings.osascript_timeout_seconds)
    return f"Message sent to {recipient}."


def _cmd_delete(ns: argparse.Namespace) -> str:
    index = required_int(ns, 0)
    mailbox = arg(ns, 1, ns.settings.mail_default_mailbox)
    if not ns.force:
        return f"Dry-run: would move message #{index} in '{mailbox}' to Trash. Use --force to actually delete."
    delete_message(index, mailbox, arg(ns, 2), timeout=ns.settings.osascript_timeout_seconds)
    return f"Moved message #{index} to Trash."


COMMANDS: dict[str, Command] = {
    "accounts": Command(_cmd_accounts),
    "mailboxes": Command(_cmd_mailboxes, "[account]"),
    "list": Command(_cmd_list, "[mailbox] [account] [count]"),
    "unread": Command(_cmd_unread, "[mailbox] [account]"),
    "search": Command(_cmd_search, "<query> [account]", 1),
    "read": Command(_cmd_read, "<index> [mailbox] [account] [--mark-read]", 1),
    "send": Command(_cmd_send, "<to> <subject> <body> [--from <account-or-address>]", 3),
    "delete": Command(_cmd_delete, "<index> [mailbox] [account] [--force]", 1),
}


def build_parser() -> argparse.ArgumentParser:
    parser = make_parser(PROG, "Access Apple Mail")
    parser.add_argument("--force", action="store_true", help="Actually move the message to Trash")
    parser.add_argument("--mark-read", action="store_true", help="Mark the message as read after reading it")
    parser.add_argument("--from", dest="sender", default=None, help="Sending account name or address")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    raise SystemExit(run_bridge(build_parser(), COMMANDS, argv))


if __name__ == "__main__":
    main()
