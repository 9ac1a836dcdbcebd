"""Smoke tests against the real apps.

These talk to Reminders, Calendar, Contacts, Notes, Mail and tmux on the
current Mac and may trigger the Automation consent dialogs on first run.
Run with ``APPLE_BRIDGES_LIVE=1 pytest -m live``.
"""

from __future__ import annotations

import os
import sys

import pytest

from apple_bridges import (
    calendar_bridge,
    contacts_bridge,
    mail_bridge,
    notes_bridge,
    reminders_bridge,
    tmux_bridge,
)
from conftest import run_main

pytestmark = [
    pytest.mark.live,
    pytest.mark.skipif(
        sys.platform != "darwin" or os.environ.get("APPLE_BRIDGES_LIVE") != "1",
        reason="live tests need macOS and APPLE_BRIDGES_LIVE=1",
    ),
]

NONSENSE = "xyzzy_nonexistent_42"


@pytest.mark.parametrize(
    "main, argv",
    [
        (reminders_bridge.main, ["lists"]),
        (reminders_bridge.main, ["today"]),
        (reminders_bridge.main, ["overdue"]),
        (reminders_bridge.main, ["search", NONSENSE]),
        (calendar_bridge.main, ["calendars"]),
        (calendar_bridge.main, ["today"]),
        (calendar_bridge.main, ["week"]),
        (contacts_bridge.main, ["search", NONSENSE]),
        (contacts_bridge.main, ["birthdays-today"]),
        (notes_bridge.main, ["accounts"]),
        (notes_bridge.main, ["delete", NONSENSE]),
        (mail_bridge.main, ["accounts"]),
        (mail_bridge.main, ["delete", "1"]),
        (tmux_bridge.main, ["sessions"]),
    ],
)
def test_read_only_commands_succeed(main, argv):
    assert run_main(main, argv) == 0


@pytest.mark.parametrize(
    "main, argv",
    [
        (reminders_bridge.main, ["items"]),
        (reminders_bridge.main, ["add"]),
        (reminders_bridge.main, ["xyzzy"]),
        (calendar_bridge.main, ["events"]),
        (calendar_bridge.main, ["free-slots", "not-a-date"]),
        (contacts_bridge.main, ["show", NONSENSE]),
        (notes_bridge.main, ["read", NONSENSE]),
        (mail_bridge.main, ["read", "999999"]),
        (tmux_bridge.main, ["read", "no-such-session:99.99"]),
    ],
)
def test_bad_input_exits_1(main, argv):
    assert run_main(main, argv) == 1
