"""contacts-bridge: Apple Contacts from the command line.

Usage::

    contacts-bridge search <query>
    contacts-bridge show <name>
    contacts-bridge add <firstName> <lastName> [phone] [email]
    contacts-bridge update <name> <field> <value>
    contacts-bridge delete <name> [--force]
    contacts-bridge birthdays-today
    contacts-bridge birthdays-upcoming <days>

The whole address book is fetched in one AppleScript call and matched in
Python, so a query can hit names, organizations, emails and phone numbers.
"""

from __future__ import annotations

import argparse
import logging
import re
from collections.abc import Iterable, Sequence
from datetime import date

from .applescript import (
    HANDLERS,
    date_literal,
    parse_delimited_output,
    parse_iso,
    quote,
    run_script,
)
from .cli import Command, arg, make_parser, required_int, run_bridge
from .dates import parse_date
from .errors import AmbiguousMatchError, NotFoundError, ScriptError, UsageError
from .models import Contact, LabeledValue

logger = logging.getLogger("apple_bridges.contacts_bridge")

APP = "Contacts"
PROG = "contacts-bridge"

# Contacts stores birthdays entered without a year in 1604
NO_YEAR = 1604

_FIELDS = ["id", "first", "last", "org", "phones", "emails", "note", "birthday", "addresses"]
_ITEM_SEP = "\x1e"
_PART_SEP = "\x1f"
_LABEL = re.compile(r"^_\$!<(?P<label>.*)>!\$_$")

UPDATE_FIELDS = ("phone", "email", "note", "organization", "first", "last", "birthday")
_FIELD_ALIASES = {"org": "organization", "notes": "note", "first-name": "first", "last-name": "last"}


# ---------------------------------------------------------------------------
# AppleScript access
# ---------------------------------------------------------------------------

def fetch_contacts(timeout: float = 60.0) -> list[Contact]:
    script = HANDLERS + '''
    tell application "Contacts"
        set itemSep to character id 30
        set partSep to character id 31
        set outputLines to {}
        repeat with per in every person
            set phoneParts to {}
            repeat with ph in phones of per
                set end of phoneParts to my sanitise(label of ph) & partSep & my sanitise(value of ph)
            end repeat
            set emailParts to {}
            repeat with em in emails of per
                set end of emailParts to my sanitise(label of em) & partSep & my sanitise(value of em)
            end repeat
            set addressParts to {}
            repeat with ad in addresses of per
                set end of addressParts to my sanitise(street of ad) & partSep & my sanitise(zip of ad) & partSep & my sanitise(city of ad) & partSep & my sanitise(country of ad)
            end repeat
            set pBirthday to ""
            try
                set pBirthday to my isoDate(birth date of per)
            end try
            set end of outputLines to my sanitise(id of per) & tab & my sanitise(first name of per) & tab & my sanitise(last name of per) & tab & my sanitise(organization of per) & tab & my joinWith(phoneParts, itemSep) & tab & my joinWith(emailParts, itemSep) & tab & my sanitise(note of per) & tab & pBirthday & tab & my joinWith(addressParts, itemSep)
        end repeat
        return my joinLines(outputLines)
    end tell
    '''
    raw = run_script(script, app=APP, timeout=timeout)
    return [_to_contact(record) for record in parse_delimited_output(raw, _FIELDS)]


def _clean_label(label: str) -> str:
    match = _LABEL.match(label)
    return match.group("label") if match else label


def _labeled_values(raw: str) -> list[LabeledValue]:
    values = []
    for item in filter(None, raw.split(_ITEM_SEP)):
        label, _, value = item.partition(_PART_SEP)
        values.append(LabeledValue(label=_clean_label(label), value=value))
    return values


def _to_contact(record: dict[str, str]) -> Contact:
    birthday = parse_iso(record["birthday"])
    addresses = []
    for item in filter(None, record["addresses"].split(_ITEM_SEP)):
        parts = [part for part in item.split(_PART_SEP) if part]
        if parts:
            addresses.append(", ".join(parts))
    return Contact(
        id=record["id"],
        first_name=record["first"],
        last_name=record["last"],
        organization=record["org"],
        phones=_labeled_values(record["phones"]),
        emails=_labeled_values(record["emails"]),
        note=record["note"],
        birthday=birthday.date() if birthday else None,
        birthday_has_year=bool(birthday) and birthday.year != NO_YEAR,
        addresses=addresses,
    )


def add_contact(first: str, last: str, phone: str = "", email: str = "", timeout: float = 30.0) -> None:
    extra = []
    if phone:
        extra.append(f'make new phone at end of phones of newPerson with properties {{label:"mobile", value:{quote(phone)}}}')
    if email:
        extra.append(f'make new email at end of emails of newPerson with properties {{label:"work", value:{quote(email)}}}')
    lines = "\n        ".join(extra)
    script = f'''
    tell application "Contacts"
        set newPerson to make new person with properties {{first name:{quote(first)}, last name:{quote(last)}}}
        {lines}
        save
        return "OK"
    end tell
    '''
    status = run_script(script, app=APP, timeout=timeout)
    if status != "OK":
        raise ScriptError(f"Error saving contact: {status}")
    logger.info("Added contact %r %r", first, last)


def _update_by_id(contact_id: str, action: str, prelude: str = "", timeout: float = 30.0) -> None:
    script = f'''
    {prelude}
    tell application "Contacts"
        set matches to (every person whose id is {quote(contact_id)})
        if (count of matches) is 0 then return "NOT_FOUND"
        set per to item 1 of matches
        {action}
        save
        return "OK"
    end tell
    '''
    status = run_script(script, app=APP, timeout=timeout)
    if status == "NOT_FOUND":
        raise NotFoundError(f"Contact {contact_id} no longer exists.")
    if status != "OK":
        raise ScriptError(f"Error saving contact: {status}")


def normalise_field(field: str) -> str:
    name = field.strip().lower()
    name = _FIELD_ALIASES.get(name, name)
    if name not in UPDATE_FIELDS:
        raise UsageError(f"Unknown field '{field}'. Use one of: {', '.join(UPDATE_FIELDS)}")
    return name


def update_contact(contact: Contact, field: str, value: str, timeout: float = 30.0) -> None:
    field = normalise_field(field)
    prelude = ""
    if field == "phone":
        action = f'make new phone at end of phones of per with properties {{label:"mobile", value:{quote(value)}}}'
    elif field == "email":
        action = f'make new email at end of emails of per with properties {{label:"work", value:{quote(value)}}}'
    elif field == "note":
        action = f"set note of per to {quote(value)}"
    elif field == "organization":
        action = f"set organization of per to {quote(value)}"
    elif field == "first":
        action = f"set first name of per to {quote(value)}"
    elif field == "last":
        action = f"set last name of per to {quote(value)}"
    else:
        birthday = parse_date(value)
        if birthday is None:
            raise UsageError("Invalid birthday. Use: YYYY-MM-DD")
        prelude = date_literal("newBirthday", birthday)
        action = "set birth date of per to newBirthday"
    _update_by_id(contact.id, action, prelude, timeout=timeout)
    logger.info("Updated %s of contact %r", field, contact.display_name)


def delete_contact(contact: Contact, timeout: float = 30.0) -> None:
    _update_by_id(contact.id, "delete per", timeout=timeout)
    logger.info("Deleted contact %r", contact.display_name)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def _digits(text: str) -> str:
    return re.sub(r"\D", "", text)


def matches_name(contact: Contact, query: str) -> bool:
    """Every query token must appear in the name or organization."""
    haystack = f"{contact.full_name} {contact.organization}".lower()
    tokens = query.lower().split()
    return bool(tokens) and all(token in haystack for token in tokens)


def matches_query(contact: Contact, query: str) -> bool:
    if matches_name(contact, query):
        return True
    q = query.strip().lower()
    if q and any(q in email.value.lower() for email in contact.emails):
        return True
    digits = _digits(query)
    return len(digits) >= 3 and any(digits in _digits(phone.value) for phone in contact.phones)


def search_contacts(contacts: Iterable[Contact], query: str) -> list[Contact]:
    return [c for c in contacts if matches_query(c, query)]


def find_by_name(contacts: Iterable[Contact], name: str) -> list[Contact]:
    return [c for c in contacts if matches_name(c, name)]


def single_match(contacts: Iterable[Contact], name: str) -> Contact:
    """Resolve ``name`` to exactly one contact.

    An exact (case-insensitive) full-name match wins over partial matches.
    """
    candidates = find_by_name(contacts, name)
    if not candidates:
        raise NotFoundError(f"No contact found for '{name}'")
    exact = [c for c in candidates if c.full_name.lower() == name.strip().lower()]
    if len(exact) == 1:
        return exact[0]
    if len(candidates) > 1:
        names = ", ".join(c.display_name for c in candidates[:5])
        raise AmbiguousMatchError(f"{len(candidates)} contacts match '{name}': {names}. Be more specific.")
    return candidates[0]


# ---------------------------------------------------------------------------
# Birthdays
# ---------------------------------------------------------------------------

def birthday_in_year(birthday: date, year: int) -> date:
    try:
        return birthday.replace(year=year)
    except ValueError:
        # Feb 29 in a non-leap year
        return date(year, 2, 28)


def next_birthday(birthday: date, today: date) -> date:
    occurrence = birthday_in_year(birthday, today.year)
    if occurrence < today:
        occurrence = birthday_in_year(birthday, today.year + 1)
    return occurrence


def upcoming_birthdays(contacts: Iterable[Contact], today: date, days: int) -> list[tuple[date, Contact]]:
    """Contacts whose next birthday falls in ``[today, today + days]``."""
    hits = []
    for contact in contacts:
        if contact.birthday is None:
            continue
        occurrence = next_birthday(contact.birthday, today)
        if (occurrence - today).days <= days:
            hits.append((occurrence, contact))
    return sorted(hits, key=lambda hit: (hit[0], hit[1].display_name))


def age_on(contact: Contact, occurrence: date) -> int | None:
    if contact.birthday is None or not contact.birthday_has_year:
        return None
    return occurrence.year - contact.birthday.year


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def _labeled(item: LabeledValue) -> str:
    return f"{item.value}  [{item.label}]" if item.label else item.value


def format_contact(contact: Contact, detailed: bool = False) -> str:
    org = f" ({contact.organization})" if contact.organization and contact.full_name else ""
    lines = [f"{contact.display_name}{org}"]
    lines.extend(f"  📞 {_labeled(phone)}" for phone in contact.phones)
    lines.extend(f"  ✉️  {_labeled(email)}" for email in contact.emails)
    if detailed:
        if contact.note:
            lines.append(f"  📝 {contact.note}")
        if contact.birthday:
            year = f" {contact.birthday.year}" if contact.birthday_has_year else ""
            lines.append(f"  🎂 {contact.birthday.day}.{contact.birthday.month}.{year}")
        lines.extend(f"  🏠 {address}" for address in contact.addresses)
    return "\n".join(lines)


def _turns(contact: Contact, occurrence: date) -> str:
    age = age_on(contact, occurrence)
    return f"turns {age}" if age is not None else ""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _contacts(ns: argparse.Namespace) -> list[Contact]:
    return fetch_contacts(timeout=ns.settings.fetch_timeout_seconds)


def _cmd_search(ns: argparse.Namespace) -> str:
    query = ns.args[0]
    matches = search_contacts(_contacts(ns), query)
    if not matches:
        return f"No contacts found for '{query}'"
    blocks = "\n\n".join(format_contact(c) for c in matches)
    return f"{len(matches)} result(s) for '{query}':\n{'-' * 40}\n{blocks}"


def _cmd_show(ns: argparse.Namespace) -> str:
    name = ns.args[0]
    matches = find_by_name(_contacts(ns), name)
    if not matches:
        raise NotFoundError(f"No contact found for '{name}'")
    return "\n\n".join(format_contact(c, detailed=True) for c in matches)


def _cmd_add(ns: argparse.Namespace) -> str:
    first, last = ns.args[0], ns.args[1]
    add_contact(first, last, arg(ns, 2), arg(ns, 3), timeout=ns.settings.osascript_timeout_seconds)
    return f"Added contact: {f'{first} {last}'.strip()}"


def _cmd_update(ns: argparse.Namespace) -> str:
    name, field, value = ns.args[0], ns.args[1], ns.args[2]
    field = normalise_field(field)
    contact = single_match(_contacts(ns), name)
    update_contact(contact, field, value, timeout=ns.settings.osascript_timeout_seconds)
    return f"Updated {field} of {contact.display_name}: {value}"


def _cmd_delete(ns: argparse.Namespace) -> str:
    contact = single_match(_contacts(ns), ns.args[0])
    if not ns.force:
        return f"Would delete contact: {contact.display_name}\nRe-run with --force to actually delete."
    delete_contact(contact, timeout=ns.settings.osascript_timeout_seconds)
    return f"Deleted contact: {contact.display_name}"


def _cmd_birthdays_today(ns: argparse.Namespace) -> str:
    today = date.today()
    hits = upcoming_birthdays(_contacts(ns), today, 0)
    if not hits:
        return "No birthdays today."
    lines = ["Birthdays today:"]
    for occurrence, contact in hits:
        turns = _turns(contact, occurrence)
        lines.append(f"  🎂 {contact.display_name}{f' ({turns})' if turns else ''}")
    return "\n".join(lines)


def _cmd_birthdays_upcoming(ns: argparse.Namespace) -> str:
    days = required_int(ns, 0, minimum=0)
    today = date.today()
    hits = upcoming_birthdays(_contacts(ns), today, days)
    if not hits:
        return f"No birthdays in the next {days} days."
    lines = [f"Birthdays in the next {days} days:"]
    for occurrence, contact in hits:
        delta = (occurrence - today).days
        when = {0: "today", 1: "tomorrow"}.get(delta, f"in {delta} days")
        details = ", ".join(part for part in (_turns(contact, occurrence), when) if part)
        lines.append(f"  {occurrence:%a %d.%m.}  {contact.display_name} ({details})")
    return "\n".join(lines)


COMMANDS: dict[str, Command] = {
    "search": Command(_cmd_search, "<query>", 1),
    "show": Command(_cmd_show, "<name>", 1),
    "add": Command(_cmd_add, "<firstName> <lastName> [phone] [email]", 2),
    "update": Command(_cmd_update, f"<name> <{'|'.join(UPDATE_FIELDS)}> <value>", 3),
    "delete": Command(_cmd_delete, "<name> [--force]", 1),
    "birthdays-today": Command(_cmd_birthdays_today),
    "birthdays-upcoming": Command(_cmd_birthdays_upcoming, "<days>", 1),
}


def build_parser() -> argparse.ArgumentParser:
    parser = make_parser(PROG, "Access Apple Contacts")
    parser.add_argument("--force", action="store_true", help="Actually delete (default is a dry-run)")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    raise SystemExit(run_bridge(build_parser(), COMMANDS, argv, access_app=APP))


if __name__ == "__main__":
    main()
