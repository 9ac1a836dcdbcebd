from datetime import date, datetime, time, timedelta

from apple_bridges.dates import (
    day_bounds,
    format_day_heading,
    format_duration,
    format_short,
    parse_clock,
    parse_date,
    parse_datetime,
)


def test_parse_datetime():
    assert parse_datetime("2026-10-16 09:05") == datetime(2026, 10, 16, 9, 5)
    assert parse_datetime(" 2026-10-16 09:05 ") == datetime(2026, 10, 16, 9, 5)
    assert parse_datetime("2026-10-16") is None
    assert parse_datetime("16.10.2026 09:05") is None


def test_parse_date_and_clock():
    assert parse_date("2026-02-28") == date(2026, 2, 28)
    assert parse_date("2026-02-30") is None
    assert parse_clock("07:30") == time(7, 30)
    assert parse_clock("25:00") is None


def test_day_bounds():
    start, end = day_bounds(date(2026, 12, 31))
    assert start == datetime(2026, 12, 31)
    assert end == datetime(2027, 1, 1)


def test_formatting():
    assert format_short(datetime(2026, 10, 16, 9, 0)) == "Fri 16.10. 09:00"
    assert format_day_heading(date(2026, 10, 16)) == "Friday, 16 October 2026"


def test_format_duration():
    assert format_duration(timedelta(minutes=45)) == "45m"
    assert format_duration(timedelta(hours=2)) == "2h"
    assert format_duration(timedelta(minutes=90)) == "1h 30m"
