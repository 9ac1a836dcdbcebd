"""Tests for reminders_bridge.py: osascript is faked by the ``osascript`` fixture."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import patch

import pytest

from apple_bridges import reminders_bridge as rb
from apple_bridges.errors import NotFoundError
from apple_bridges.models import Reminder
from conftest import run_main


def _row(
    id="x-1",
    name="Buy milk",
    body="",
    due="",
    completed="false",
    priority="0",
    list_name="Groceries",
    created="2026-10-01T08:00:00",
):
    return "\t".join([id, name, body, due, completed, priority, list_name, created])


NOW = datetime(2026, 10, 16, 12, 0)


def _reminder(title, due=None, completed=False, **kwargs):
    return Reminder(id=title, title=title, list_name="Inbox", due=due, completed=completed, **kwargs)


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------

class TestFetchReminders:
    def test_parses_records(self, osascript):
        osascript.reply(
            "\n".join(
                [
                    _row(due="2026-10-16T17:30:00", priority="1", body="2 litres"),
                    _row(id="x-2", name="Bread", completed="true"),
                ]
            )
        )
        reminders = rb.fetch_reminders("Groceries")

        assert [r.title for r in reminders] == ["Buy milk", "Bread"]
        first = reminders[0]
        assert first.due == datetime(2026, 10, 16, 17, 30)
        assert first.priority == 1
        assert first.notes == "2 litres"
        assert first.list_name == "Groceries"
        assert reminders[1].completed is True
        assert 'exists list "Groceries"' in osascript.last_script

    def test_all_lists_when_no_name(self, osascript):
        osascript.reply("")
        assert rb.fetch_reminders() == []
        assert "set targetLists to every list" in osascript.last_script

    def test_incomplete_filter_in_script(self, osascript):
        rb.fetch_reminders("Groceries", incomplete_only=True)
        assert "whose completed is false" in osascript.last_script

    def test_missing_list(self, osascript):
        osascript.reply("LIST_NOT_FOUND")
        with pytest.raises(NotFoundError, match="List 'Nope' not found."):
            rb.fetch_reminders("Nope")


# ---------------------------------------------------------------------------
# Filtering and formatting
# ---------------------------------------------------------------------------

class TestFilters:
    def test_due_today_excludes_completed_and_other_days(self):
        reminders = [
            _reminder("late today", due=datetime(2026, 10, 16, 20, 0)),
            _reminder("early today", due=datetime(2026, 10, 16, 7, 0)),
            _reminder("done", due=datetime(2026, 10, 16, 9, 0), completed=True),
            _reminder("tomorrow", due=datetime(2026, 10, 17, 0, 0)),
            _reminder("no due"),
        ]
        assert [r.title for r in rb.due_today(reminders, NOW)] == ["early today", "late today"]

    def test_overdue(self):
        reminders = [
            _reminder("this morning", due=datetime(2026, 10, 16, 9, 0)),
            _reminder("last week", due=datetime(2026, 10, 9, 9, 0)),
            _reminder("tonight", due=datetime(2026, 10, 16, 20, 0)),
            _reminder("done", due=datetime(2026, 10, 1, 9, 0), completed=True),
        ]
        assert [r.title for r in rb.overdue(reminders, NOW)] == ["last week", "this morning"]

    def test_search_matches_title_and_notes_case_insensitively(self):
        reminders = [
            _reminder("Call DENTIST", created=datetime(2026, 10, 2)),
            _reminder("Groceries", notes="ask the dentist about floss", created=datetime(2026, 10, 1)),
            _reminder("Gym"),
        ]
        assert [r.title for r in rb.search(reminders, "dentist")] == ["Groceries", "Call DENTIST"]


class TestFormatReminder:
    def test_open_with_due_and_priority(self):
        r = _reminder("Pay rent", due=datetime(2026, 11, 1, 9, 0), priority=1)
        assert rb.format_reminder(r) == "[ ] Pay rent !! (due: 2026-11-01 09:00) [Inbox]"

    def test_completed_medium_priority(self):
        r = _reminder("Water plants", completed=True, priority=5)
        assert rb.format_reminder(r) == "[x] Water plants ! [Inbox]"

    def test_low_priority_has_no_marker(self):
        assert rb.format_reminder(_reminder("Someday", priority=9)) == "[ ] Someday [Inbox]"

    def test_notes_on_second_line(self):
        r = _reminder("Call mom", notes="about Sunday")
        assert rb.format_reminder(r) == "[ ] Call mom [Inbox]\n     Notes: about Sunday"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

class TestCommands:
    def test_lists(self, osascript, capsys):
        osascript.reply("Work\nGroceries")
        assert run_main(rb.main, ["lists"]) == 0
        assert capsys.readouterr().out == "Groceries\nWork\n"

    def test_items_empty_list(self, osascript, capsys):
        osascript.reply("")
        assert run_main(rb.main, ["items", "Groceries"]) == 0
        assert "No reminders in 'Groceries'." in capsys.readouterr().out

    def test_items_missing_arg(self, osascript, capsys):
        assert run_main(rb.main, ["items"]) == 1
        assert "Usage: reminders-bridge items <listName>" in capsys.readouterr().err
        assert osascript.scripts == []

    def test_unknown_list_exits_1(self, osascript, capsys):
        osascript.reply("LIST_NOT_FOUND")
        assert run_main(rb.main, ["incomplete", "Nope"]) == 1
        assert "List 'Nope' not found." in capsys.readouterr().err

    def test_search_no_results(self, osascript, capsys):
        osascript.reply(_row())
        assert run_main(rb.main, ["search", "xyzzy"]) == 0
        assert "No reminders found for 'xyzzy'." in capsys.readouterr().out

    def test_search_results(self, osascript, capsys):
        osascript.reply(_row(name="Buy oat milk"))
        assert run_main(rb.main, ["search", "milk"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("1 result(s) for 'milk':\n")
        assert "[ ] Buy oat milk [Groceries]" in out

    def test_add(self, osascript, capsys):
        osascript.reply("OK")
        assert run_main(rb.main, ["add", "Groceries", 'Say "cheese"', "notes here"]) == 0
        assert capsys.readouterr().out == 'Added: Say "cheese"\n'
        assert 'name:"Say \\"cheese\\"", body:"notes here"' in osascript.last_script

    def test_set_due(self, osascript, capsys):
        osascript.reply("OK")
        assert run_main(rb.main, ["set-due", "Groceries", "Buy milk", "2026-10-20 18:00"]) == 0
        assert capsys.readouterr().out == "Updated due date: Buy milk → 2026-10-20 18:00\n"
        script = osascript.last_script
        assert "set month of dueDate to 10" in script
        assert "set due date of matchedRem to dueDate" in script

    def test_set_due_rejects_bad_date(self, osascript, capsys):
        assert run_main(rb.main, ["set-due", "Groceries", "Buy milk", "tomorrow"]) == 1
        assert "Invalid date format. Use: YYYY-MM-DD HH:mm" in capsys.readouterr().err
        assert osascript.scripts == []

    def test_complete_not_found(self, osascript, capsys):
        osascript.reply("NOT_FOUND")
        assert run_main(rb.main, ["complete", "Groceries", "Caviar"]) == 1
        assert "Reminder 'Caviar' not found or already completed." in capsys.readouterr().err

    def test_delete_is_dry_run_by_default(self, osascript, capsys):
        osascript.reply("OK")
        assert run_main(rb.main, ["delete", "Groceries", "Buy milk"]) == 0
        out = capsys.readouterr().out
        assert out == "Would delete: Buy milk (list: Groceries)\nRe-run with --force to actually delete.\n"
        assert "delete matchedRem" not in osascript.last_script

    def test_delete_dry_run_still_reports_missing(self, osascript, capsys):
        osascript.reply("NOT_FOUND")
        assert run_main(rb.main, ["delete", "Groceries", "Caviar"]) == 1
        assert "Reminder 'Caviar' not found." in capsys.readouterr().err

    def test_delete_force(self, osascript, capsys):
        osascript.reply("OK")
        assert run_main(rb.main, ["delete", "Groceries", "Buy milk", "--force"]) == 0
        assert capsys.readouterr().out == "Deleted: Buy milk\n"
        assert "delete matchedRem" in osascript.last_script

    def test_permission_denied(self, osascript, capsys):
        osascript.access_denied = True
        assert run_main(rb.main, ["lists"]) == 1
        assert "No access to Reminders" in capsys.readouterr().err

    def test_add_title_starting_with_dash(self, osascript, capsys):
        osascript.reply("OK")
        assert run_main(rb.main, ["add", "Inbox", "-urgent"]) == 0
        assert capsys.readouterr().out == "Added: -urgent\n"
        assert 'name:"-urgent"' in osascript.last_script

    def test_create_list(self, osascript, capsys):
        osascript.reply("OK")
        assert run_main(rb.main, ["create-list", "Errands"]) == 0
        assert capsys.readouterr().out == "Created list: Errands\n"
        assert 'make new list with properties {name:"Errands"}' in osascript.last_script

    def test_set_notes(self, osascript, capsys):
        osascript.reply("OK")
        assert run_main(rb.main, ["set-notes", "Groceries", "Buy milk", "2 litres"]) == 0
        assert capsys.readouterr().out == "Updated notes: Buy milk\n"
        script = osascript.last_script
        assert 'whose name is "Buy milk" and completed is false' in script
        assert 'set body of matchedRem to "2 litres"' in script


DUE_ROWS = "\n".join(
    [
        _row(id="r1", name="Buy milk", due="2026-10-16T17:30:00"),
        _row(id="r2", name="Call mom", due="2026-10-16T08:00:00", list_name="Inbox"),
        _row(id="r3", name="Pay rent", due="2026-10-15T09:00:00", list_name="Inbox"),
        _row(id="r4", name="Book flights", due="2026-10-17T10:00:00"),
        _row(id="r5", name="Someday"),
    ]
)


class TestDueCommands:
    @pytest.fixture(autouse=True)
    def _frozen_now(self):
        with patch("apple_bridges.reminders_bridge.datetime") as mock_dt:
            mock_dt.now.return_value = NOW
            mock_dt.min = datetime.min
            mock_dt.max = datetime.max
            mock_dt.side_effect = lambda *a, **kw: datetime(*a, **kw)
            yield mock_dt

    def test_today(self, osascript, capsys):
        osascript.reply(DUE_ROWS)
        assert run_main(rb.main, ["today"]) == 0
        assert capsys.readouterr().out == (
            "2 reminder(s) due today:\n"
            "[ ] Call mom (due: 2026-10-16 08:00) [Inbox]\n"
            "[ ] Buy milk (due: 2026-10-16 17:30) [Groceries]\n"
        )
        script = osascript.last_script
        assert "set targetLists to every list" in script
        assert "whose completed is false" in script

    def test_today_none(self, osascript, capsys):
        osascript.reply(_row(due="2026-10-17T10:00:00"))
        assert run_main(rb.main, ["today"]) == 0
        assert capsys.readouterr().out == "No reminders due today.\n"

    def test_overdue(self, osascript, capsys):
        osascript.reply(DUE_ROWS)
        assert run_main(rb.main, ["overdue"]) == 0
        assert capsys.readouterr().out == (
            "2 overdue reminder(s):\n"
            "[ ] Pay rent (due: 2026-10-15 09:00) [Inbox]\n"
            "[ ] Call mom (due: 2026-10-16 08:00) [Inbox]\n"
        )

    def test_overdue_none(self, osascript, capsys):
        osascript.reply("")
        assert run_main(rb.main, ["overdue"]) == 0
        assert capsys.readouterr().out == "No overdue reminders.\n"
