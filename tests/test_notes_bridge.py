"""Tests for notes_bridge.py: osascript is faked by the ``osascript`` fixture."""

from __future__ import annotations

import pytest

from apple_bridges import notes_bridge as nb
from apple_bridges.errors import NotFoundError
from conftest import run_main


class TestStripHtml:
    def test_block_elements_become_newlines(self):
        html = "<div><h1>Shopping</h1></div><div>milk<br>eggs<BR/>bread</div><ul><li>one</li><li>two</li></ul>"
        assert nb.strip_html(html) == "Shopping\nmilk\neggs\nbread\none\ntwo"

    def test_entities_decoded(self):
        assert nb.strip_html("<p>Fish &amp; chips &lt;3 &quot;yum&quot; it&#39;s&nbsp;good</p>") == (
            "Fish & chips <3 \"yum\" it's good"
        )

    def test_escaped_entity_is_decoded_once(self):
        assert nb.strip_html("&amp;lt;") == "&lt;"

    def test_collapses_blank_runs(self):
        assert nb.strip_html("a<br><br><br><br>b") == "a\n\nb"

    def test_trims(self):
        assert nb.strip_html("  <div> hi </div>\n\n") == "hi"


def test_to_html_escapes_and_breaks_lines():
    assert nb.to_html("a < b & c\nnext") == "a &lt; b &amp; c<br>next"


class TestScripts:
    def test_list_notes(self, osascript):
        osascript.reply("Groceries\t2026-10-15T08:00:00\nIdeas\t2026-09-01T12:30:00")
        notes = nb.list_notes("Notes", "iCloud")
        assert [n.name for n in notes] == ["Groceries", "Ideas"]
        assert notes[0].modified.day == 15
        assert 'folder "Notes" of account "iCloud"' in osascript.last_script

    def test_list_notes_missing_folder(self, osascript):
        osascript.reply("NOT_FOUND")
        with pytest.raises(NotFoundError, match="Folder 'Nope' not found in account 'iCloud'."):
            nb.list_notes("Nope", "iCloud")

    def test_read_searches_all_accounts_by_default(self, osascript):
        osascript.reply("<div>Hello<br>World</div>")
        assert nb.read_note("Greeting") == "Hello\nWorld"
        script = osascript.last_script
        assert 'set accountName to ""' in script
        assert 'set noteTitle to "Greeting"' in script

    def test_read_missing(self, osascript):
        osascript.reply("NOTE_NOT_FOUND")
        with pytest.raises(NotFoundError, match="Note 'Ghost' not found."):
            nb.read_note("Ghost")

    def test_append_sends_html(self, osascript):
        osascript.reply("OK")
        nb.append_to_note("Log", "line 1\nline <2>")
        assert '& "<br>" & "line 1<br>line &lt;2&gt;"' in osascript.last_script


class TestCommands:
    def test_accounts(self, osascript, capsys):
        osascript.reply("iCloud\nOn My Mac")
        assert run_main(nb.main, ["accounts"]) == 0
        assert capsys.readouterr().out == "iCloud\nOn My Mac\n"

    def test_folders_default_account(self, osascript, capsys):
        osascript.reply("Notes\nRecipes")
        assert run_main(nb.main, ["folders"]) == 0
        assert capsys.readouterr().out == "Notes\nRecipes\n"
        assert 'account "iCloud"' in osascript.last_script

    def test_folders_empty_exits_1(self, osascript, capsys):
        osascript.reply("")
        assert run_main(nb.main, ["folders", "Gmail"]) == 1
        assert "No folders found in account 'Gmail'." in capsys.readouterr().err

    def test_folders_default_account_from_env(self, osascript, monkeypatch):
        monkeypatch.setenv("APPLE_BRIDGES_NOTES_DEFAULT_ACCOUNT", "On My Mac")
        osascript.reply("Notes")
        assert run_main(nb.main, ["folders"]) == 0
        assert 'account "On My Mac"' in osascript.last_script

    def test_list(self, osascript, capsys):
        osascript.reply("Groceries\t2026-10-15T08:00:00")
        assert run_main(nb.main, ["list"]) == 0
        assert capsys.readouterr().out == "Groceries  [2026-10-15]\n"

    def test_list_empty(self, osascript, capsys):
        osascript.reply("")
        assert run_main(nb.main, ["list", "Archive"]) == 0
        assert capsys.readouterr().out == "No notes in 'Archive'.\n"

    def test_search(self, osascript, capsys):
        osascript.reply("Groceries\tNotes\tiCloud")
        assert run_main(nb.main, ["search", "milk"]) == 0
        assert capsys.readouterr().out == "Found 1 note(s):\n  Groceries  [Notes / iCloud]\n"

    def test_search_no_match(self, osascript, capsys):
        osascript.reply("")
        assert run_main(nb.main, ["search", "xyzzy"]) == 0
        assert capsys.readouterr().out == "No notes matching 'xyzzy'.\n"

    def test_add(self, osascript, capsys):
        osascript.reply("OK")
        assert run_main(nb.main, ["add", "Notes", "Todo", "one\ntwo"]) == 0
        assert capsys.readouterr().out == "Created note: Todo\n"
        assert "one<br>two" in osascript.last_script

    def test_add_missing_args(self, osascript, capsys):
        assert run_main(nb.main, ["add", "Notes", "Todo"]) == 1
        assert "Usage: notes-bridge add <folder> <title> <body> [account]" in capsys.readouterr().err

    def test_append_not_found(self, osascript, capsys):
        osascript.reply("NOTE_NOT_FOUND")
        assert run_main(nb.main, ["append", "Ghost", "boo"]) == 1
        assert "Note 'Ghost' not found." in capsys.readouterr().err

    def test_delete_dry_run_touches_nothing(self, osascript, capsys):
        assert run_main(nb.main, ["delete", "Todo"]) == 0
        assert capsys.readouterr().out == "Dry-run: would delete 'Todo'. Use --force to actually delete.\n"
        assert osascript.scripts == []

    def test_delete_force_with_account(self, osascript, capsys):
        osascript.reply("OK")
        assert run_main(nb.main, ["delete", "Todo", "--force", "iCloud"]) == 0
        assert capsys.readouterr().out == "Deleted note: Todo\n"
        script = osascript.last_script
        assert 'set accountName to "iCloud"' in script
        assert "delete matchNote" in script

    def test_add_body_starting_with_dash(self, osascript, capsys):
        osascript.reply("OK")
        assert run_main(nb.main, ["add", "Notes", "Todo", "-milk"]) == 0
        assert capsys.readouterr().out == "Created note: Todo\n"
        assert "<div>-milk</div>" in osascript.last_script
