"""calendar-bridge: Apple Calendar from the command line.

Usage::

    calendar-bridge calendars
    calendar-bridge today | tomorrow | week
    calendar-bridge events <YYYY-MM-DD>
    calendar-bridge search <query> [daysAhead]
    calendar-bridge free-slots <YYYY-MM-DD> [HH:mm] [HH:mm]
    calendar-bridge add <calendar> <title> <"YYYY-MM-DD HH:mm"> <"YYYY-MM-DD HH:mm">
    calendar-bridge add-all-day <calendar> <title> <YYYY-MM-DD>
    calendar-bridge delete <calendar> <title> [YYYY-MM-DD] [--force]
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta

from .applescript import (
    HANDLERS,
    date_literal,
    parse_bool,
    parse_delimited_output,
    parse_iso,
    quote,
    run_script,
)
from .cli import Command, arg, int_arg, make_parser, run_bridge
from .dates import (
    day_bounds,
    format_day_heading,
    format_duration,
    format_short,
    parse_clock,
    parse_date,
    parse_datetime,
    start_of_day,
)
from .errors import BridgeError, NotFoundError, ScriptError, UsageError
from .models import CalendarEvent, CalendarInfo, TimeSlot

logger = logging.getLogger("apple_bridges.calendar_bridge")

APP = "Calendar"
PROG = "calendar-bridge"

_EVENT_FIELDS = ["uid", "summary", "start", "end", "allday", "location", "notes", "calendar"]


# ---------------------------------------------------------------------------
# AppleScript access
# ---------------------------------------------------------------------------

def _raise_for_status(status: str, calendar: str) -> None:
    if status == "CALENDAR_NOT_FOUND":
        raise NotFoundError(f"Calendar '{calendar}' not found.")
    if status == "READ_ONLY":
        raise BridgeError(f"Calendar '{calendar}' is read-only.")


def list_calendars(timeout: float = 30.0) -> list[CalendarInfo]:
    script = HANDLERS + '''
    tell application "Calendar"
        set outputLines to {}
        repeat with cal in every calendar
            set calWritable to "true"
            try
                if not (writable of cal) then set calWritable to "false"
            end try
            set end of outputLines to my sanitise(name of cal) & tab & calWritable
        end repeat
    end tell
    return my joinLines(outputLines)
    '''
    records = parse_delimited_output(run_script(script, app=APP, timeout=timeout), ["name", "writable"])
    calendars = [CalendarInfo(name=r["name"], writable=parse_bool(r["writable"])) for r in records]
    return sorted(calendars, key=lambda c: c.name)


def fetch_events(
    start: datetime,
    end: datetime,
    calendar: str = "",
    timeout: float = 60.0,
) -> list[CalendarEvent]:
    """Return events overlapping ``[start, end)``, sorted by start."""
    if calendar:
        source = f'''
        if not (exists calendar {quote(calendar)}) then return "CALENDAR_NOT_FOUND"
        set targetCals to {{calendar {quote(calendar)}}}
        '''
    else:
        source = "set targetCals to every calendar"

    script = HANDLERS + f'''
    {date_literal("rangeStart", start)}
    {date_literal("rangeEnd", end)}
    tell application "Calendar"
        {source}
        set outputLines to {{}}
        repeat with cal in targetCals
            set calName to my sanitise(name of cal)
            repeat with evt in (every event of cal whose start date < rangeEnd and end date > rangeStart)
                set evtId to my sanitise(uid of evt)
                set evtTitle to my sanitise(summary of evt)
                set evtStart to my isoDate(start date of evt)
                set evtEnd to my isoDate(end date of evt)
                set evtAllDay to "false"
                if allday event of evt then set evtAllDay to "true"
                set evtLocation to ""
                try
                    set evtLocation to my sanitise(location of evt)
                end try
                set evtNotes to ""
                try
                    set rawNotes to description of evt
                    if rawNotes is not missing value then
                        set rawNotes to rawNotes as text
                        if length of rawNotes > 400 then set rawNotes to text 1 thru 400 of rawNotes
                        set evtNotes to my sanitise(rawNotes)
                    end if
                end try
                set end of outputLines to evtId & tab & evtTitle & tab & evtStart & tab & evtEnd & tab & evtAllDay & tab & evtLocation & tab & evtNotes & tab & calName
            end repeat
        end repeat
        return my joinLines(outputLines)
    end tell
    '''
    raw = run_script(script, app=APP, timeout=timeout)
    _raise_for_status(raw, calendar)
    events = []
    for record in parse_delimited_output(raw, _EVENT_FIELDS):
        event_start = parse_iso(record["start"])
        event_end = parse_iso(record["end"])
        if event_start is None or event_end is None:
            logger.debug("Skipping event without dates: %r", record)
            continue
        events.append(
            CalendarEvent(
                uid=record["uid"],
                title=record["summary"],
                start=event_start,
                end=event_end,
                calendar=record["calendar"],
                all_day=parse_bool(record["allday"]),
                location=record["location"],
                notes=record["notes"],
            )
        )
    return sorted(events, key=lambda e: (e.start, e.title))


def _make_event(calendar: str, properties: str, prelude: str, timeout: float) -> None:
    script = f'''
    {prelude}
    tell application "Calendar"
        if not (exists calendar {quote(calendar)}) then return "CALENDAR_NOT_FOUND"
        set targetCal to calendar {quote(calendar)}
        try
            if not (writable of targetCal) then return "READ_ONLY"
        end try
        make new event at end of events of targetCal with properties {{{properties}}}
        return "OK"
    end tell
    '''
    status = run_script(script, app=APP, timeout=timeout)
    _raise_for_status(status, calendar)
    if status != "OK":
        raise ScriptError(f"Error saving event: {status}")


def add_event(calendar: str, title: str, start: datetime, end: datetime, timeout: float = 30.0) -> None:
    if end <= start:
        raise UsageError("End must be after start.")
    prelude = date_literal("startDate", start) + "\n" + date_literal("endDate", end)
    _make_event(
        calendar,
        f"summary:{quote(title)}, start date:startDate, end date:endDate",
        prelude,
        timeout,
    )
    logger.info("Added event %r to %r", title, calendar)


def add_all_day_event(calendar: str, title: str, day: date, timeout: float = 30.0) -> None:
    start, end = day_bounds(day)
    prelude = date_literal("startDate", start) + "\n" + date_literal("endDate", end)
    _make_event(
        calendar,
        f"summary:{quote(title)}, start date:startDate, end date:endDate, allday event:true",
        prelude,
        timeout,
    )
    logger.info("Added all-day event %r to %r", title, calendar)


def delete_event(
    calendar: str,
    title: str,
    day: date | None = None,
    force: bool = False,
    timeout: float = 60.0,
) -> tuple[datetime | None, int]:
    """Find (and with ``force`` delete) the first event titled ``title``.

    Returns the start of the matched event and the number of matches.
    """
    prelude = ""
    day_clause = ""
    if day is not None:
        day_start, day_end = day_bounds(day)
        prelude = date_literal("dayStart", day_start) + "\n" + date_literal("dayEnd", day_end)
        day_clause = " and start date >= dayStart and start date < dayEnd"
    action = ""
    if force:
        action = '''
        try
            if not (writable of targetCal) then return "READ_ONLY"
        end try
        delete evt
        '''

    script = HANDLERS + f'''
    {prelude}
    tell application "Calendar"
        if not (exists calendar {quote(calendar)}) then return "CALENDAR_NOT_FOUND"
        set targetCal to calendar {quote(calendar)}
        set matches to (every event of targetCal whose summary is {quote(title)}{day_clause})
        set matchCount to count of matches
        if matchCount is 0 then return "NOT_FOUND"
        set evt to item 1 of matches
        set evtStart to my isoDate(start date of evt)
        {action}
        return "OK" & tab & evtStart & tab & (matchCount as text)
    end tell
    '''
    raw = run_script(script, app=APP, timeout=timeout)
    _raise_for_status(raw, calendar)
    if raw == "NOT_FOUND":
        raise NotFoundError(f"Event '{title}' not found in '{calendar}'.")
    status, _, rest = raw.partition("\t")
    if status != "OK":
        raise ScriptError(f"Unexpected response from Calendar: {raw!r}")
    start_text, _, count_text = rest.partition("\t")
    count = int(count_text) if count_text.isdigit() else 1
    if count > 1:
        logger.warning("%d events titled %r in %r; using the first", count, title, calendar)
    if force:
        logger.info("Deleted event %r from %r", title, calendar)
    return parse_iso(start_text), count


# ---------------------------------------------------------------------------
# Free/busy
# ---------------------------------------------------------------------------

def free_slots(
    events: Iterable[CalendarEvent],
    window_start: datetime,
    window_end: datetime,
    min_minutes: int = 0,
) -> list[TimeSlot]:
    """Subtract the busy time of ``events`` from ``[window_start, window_end)``.

    All-day and zero-length events do not block time.  Busy intervals are
    clipped to the window; overlapping or touching intervals merge because
    the cursor only moves forward.
    """
    busy = sorted(
        (max(e.start, window_start), min(e.end, window_end))
        for e in events
        if not e.all_day and e.end > e.start and e.end > window_start and e.start < window_end
    )
    minimum = timedelta(minutes=min_minutes)
    slots: list[TimeSlot] = []
    cursor = window_start
    for busy_start, busy_end in busy:
        if busy_start > cursor:
            slots.append(TimeSlot(cursor, busy_start))
        cursor = max(cursor, busy_end)
    if cursor < window_end:
        slots.append(TimeSlot(cursor, window_end))
    return [slot for slot in slots if slot.duration >= minimum]


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def _time_range(event: CalendarEvent) -> str:
    if event.all_day:
        return "All day"
    return f"{event.start:%H:%M} – {event.end:%H:%M}"


def format_event(event: CalendarEvent) -> str:
    location = f" @ {event.location}" if event.location else ""
    return f"  [{_time_range(event)}] {event.title or '(no title)'}{location}  ({event.calendar})"


def _events_on(events: list[CalendarEvent], day: date) -> list[CalendarEvent]:
    start, end = day_bounds(day)
    return [e for e in events if e.start < end and (e.end > start or e.start == start)]


def format_day(day: date, events: list[CalendarEvent]) -> str:
    lines = [f"Events for {format_day_heading(day)}:"]
    if not events:
        lines.append("  (no events)")
    lines.extend(format_event(e) for e in events)
    return "\n".join(lines)


def format_search_hit(event: CalendarEvent) -> str:
    when = f"{event.start:%a %d.%m.} (all day)" if event.all_day else format_short(event.start)
    location = f" @ {event.location}" if event.location else ""
    return f"  {when}  {event.title or '(no title)'}{location}  ({event.calendar})"


def search_events(events: Iterable[CalendarEvent], query: str) -> list[CalendarEvent]:
    q = query.lower()
    return [
        e for e in events
        if q in e.title.lower() or q in e.location.lower() or q in e.notes.lower()
    ]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _cmd_calendars(ns: argparse.Namespace) -> str:
    calendars = list_calendars(timeout=ns.settings.osascript_timeout_seconds)
    return "\n".join(f"{c.name}{'' if c.writable else ' (read-only)'}" for c in calendars)


def _show_day(ns: argparse.Namespace, day: date) -> str:
    start, end = day_bounds(day)
    events = fetch_events(start, end, timeout=ns.settings.fetch_timeout_seconds)
    return format_day(day, events)


def _cmd_today(ns: argparse.Namespace) -> str:
    return _show_day(ns, date.today())


def _cmd_tomorrow(ns: argparse.Namespace) -> str:
    return _show_day(ns, date.today() + timedelta(days=1))


def _cmd_events(ns: argparse.Namespace) -> str:
    day = parse_date(ns.args[0])
    if day is None:
        raise UsageError(ns.usage)
    return _show_day(ns, day)


def _cmd_week(ns: argparse.Namespace) -> str:
    days = ns.settings.calendar_week_days
    first = date.today()
    events = fetch_events(
        start_of_day(first),
        start_of_day(first + timedelta(days=days)),
        timeout=ns.settings.fetch_timeout_seconds,
    )
    sections = []
    for offset in range(days):
        day = first + timedelta(days=offset)
        todays = _events_on(events, day)
        if todays:
            sections.append(format_day(day, todays))
    if not sections:
        return f"No events in the next {days} days."
    return "\n\n".join(sections)


def _cmd_search(ns: argparse.Namespace) -> str:
    query = ns.args[0]
    settings = ns.settings
    days_ahead = int_arg(ns, 1, settings.calendar_search_days_ahead)
    today = date.today()
    events = fetch_events(
        start_of_day(today - timedelta(days=settings.calendar_search_days_back)),
        start_of_day(today + timedelta(days=days_ahead)),
        timeout=settings.fetch_timeout_seconds,
    )
    matches = search_events(events, query)
    if not matches:
        return f"No events found for '{query}'."
    return f"{len(matches)} event(s) matching '{query}':\n" + "\n".join(format_search_hit(e) for e in matches)


def _cmd_free_slots(ns: argparse.Namespace) -> str:
    settings = ns.settings
    day = parse_date(ns.args[0])
    day_start = parse_clock(arg(ns, 1)) if arg(ns, 1) else settings.calendar_work_day_start
    day_end = parse_clock(arg(ns, 2)) if arg(ns, 2) else settings.calendar_work_day_end
    if day is None or day_start is None or day_end is None:
        raise UsageError(ns.usage)
    window_start = datetime.combine(day, day_start)
    window_end = datetime.combine(day, day_end)
    if window_end <= window_start:
        raise UsageError("Working window end must be after its start.")

    events = fetch_events(window_start, window_end, timeout=settings.fetch_timeout_seconds)
    slots = free_slots(events, window_start, window_end, settings.calendar_min_slot_minutes)
    lines = [f"Free slots on {format_day_heading(day)} ({window_start:%H:%M} – {window_end:%H:%M}):"]
    if not slots:
        lines.append("  (no free slots)")
    lines.extend(
        f"  {slot.start:%H:%M} – {slot.end:%H:%M}  ({format_duration(slot.duration)})" for slot in slots
    )
    return "\n".join(lines)


def _cmd_add(ns: argparse.Namespace) -> str:
    calendar, title = ns.args[0], ns.args[1]
    start = parse_datetime(ns.args[2])
    end = parse_datetime(ns.args[3])
    if start is None or end is None:
        raise UsageError(ns.usage)
    add_event(calendar, title, start, end, timeout=ns.settings.osascript_timeout_seconds)
    return f"Added: {title} ({format_short(start)} – {end:%H:%M})"


def _cmd_add_all_day(ns: argparse.Namespace) -> str:
    calendar, title = ns.args[0], ns.args[1]
    day = parse_date(ns.args[2])
    if day is None:
        raise UsageError(ns.usage)
    add_all_day_event(calendar, title, day, timeout=ns.settings.osascript_timeout_seconds)
    return f"Added all-day: {title} ({day:%Y-%m-%d})"


def _cmd_delete(ns: argparse.Namespace) -> str:
    calendar, title = ns.args[0], ns.args[1]
    day = None
    if arg(ns, 2):
        day = parse_date(ns.args[2])
        if day is None:
            raise UsageError(ns.usage)
    start, count = delete_event(
        calendar, title, day, force=ns.force, timeout=ns.settings.fetch_timeout_seconds
    )
    when = format_short(start) if start else "unknown time"
    extra = f" [{count} matches, first one]" if count > 1 else ""
    if not ns.force:
        return (
            f"Would delete: {title} ({when}, {calendar}){extra}\n"
            "Re-run with --force to actually delete."
        )
    return f"Deleted: {title} ({when}){extra}"


COMMANDS: dict[str, Command] = {
    "calendars": Command(_cmd_calendars),
    "today": Command(_cmd_today),
    "tomorrow": Command(_cmd_tomorrow),
    "week": Command(_cmd_week),
    "events": Command(_cmd_events, "<YYYY-MM-DD>", 1),
    "search": Command(_cmd_search, "<query> [daysAhead]", 1),
    "free-slots": Command(_cmd_free_slots, "<YYYY-MM-DD> [HH:mm] [HH:mm]", 1),
    "add": Command(_cmd_add, '<calendar> <title> <"YYYY-MM-DD HH:mm"> <"YYYY-MM-DD HH:mm">', 4),
    "add-all-day": Command(_cmd_add_all_day, "<calendar> <title> <YYYY-MM-DD>", 3),
    "delete": Command(_cmd_delete, "<calendar> <title> [YYYY-MM-DD] [--force]", 2),
}


def build_parser() -> argparse.ArgumentParser:
    parser = make_parser(PROG, "Access Apple Calendar")
    parser.add_argument("--force", action="store_true", help="Actually delete (default is a dry-run)")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    raise SystemExit(run_bridge(build_parser(), COMMANDS, argv, access_app=APP))


if __name__ == "__main__":
    main()
