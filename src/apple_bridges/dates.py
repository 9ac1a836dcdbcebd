"""Date parsing and formatting shared by the Reminders and Calendar bridges."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

DATETIME_FORMAT = "%Y-%m-%d %H:%M"
DATE_FORMAT = "%Y-%m-%d"


def parse_datetime(value: str) -> datetime | None:
    """Parse ``YYYY-MM-DD HH:mm``; returns ``None`` when the text does not match."""
    try:
        return datetime.strptime(value.strip(), DATETIME_FORMAT)
    except ValueError:
        return None


def parse_date(value: str) -> date | None:
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        return None


def parse_clock(value: str) -> time | None:
    """Parse ``HH:mm``."""
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except ValueError:
        return None


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return ``[midnight, next midnight)`` for ``day``."""
    start = start_of_day(day)
    return start, start + timedelta(days=1)


def format_datetime(value: datetime) -> str:
    return value.strftime(DATETIME_FORMAT)


def format_short(value: datetime) -> str:
    """``Fri 16.10. 09:00``"""
    return value.strftime("%a %d.%m. %H:%M")


def format_day_heading(day: date) -> str:
    """``Friday, 16 October 2026``"""
    return day.strftime("%A, %d %B %Y")


def format_duration(delta: timedelta) -> str:
    """``45m``, ``2h`` or ``1h 30m``."""
    minutes = int(delta.total_seconds() // 60)
    hours, minutes = divmod(minutes, 60)
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"
