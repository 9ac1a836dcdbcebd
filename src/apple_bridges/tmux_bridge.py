"""tmux-bridge: read tmux sessions, windows and pane contents.

Usage::

    tmux-bridge sessions
    tmux-bridge windows [session]
    tmux-bridge panes [session]
    tmux-bridge read <session:window.pane> [lines]
    tmux-bridge snapshot [session] [lines]

Read-only: nothing here sends keys to or modifies a pane.
"""

from __future__ import annotations

import argparse
import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from .applescript import parse_delimited_output, parse_lines
from .cli import Command, arg, int_arg, make_parser, run_bridge
from .dates import format_datetime
from .errors import NotFoundError, ScriptError
from .models import TmuxPane

logger = logging.getLogger("apple_bridges.tmux_bridge")

PROG = "tmux-bridge"

SESSION_FORMAT = "#S  windows:#{session_windows}  created:#{t:session_created}  #{?session_attached,(attached),}"
WINDOW_FORMAT = (
    "#{window_index}: #{window_name}  [#{window_width}x#{window_height}]  "
    "#{window_panes} pane(s)#{?window_active, (active),}"
)
PANE_FORMAT = (
    "#{session_name}:#{window_index}.#{pane_index}  [#{pane_width}x#{pane_height}]  "
    "#{pane_current_command}  #{pane_current_path}"
)
SNAPSHOT_FORMAT = "#{session_name}:#{window_index}.#{pane_index}\t#{window_name}\t#{pane_current_command}\t#{pane_current_path}"

RULE = "─" * 37


@dataclass(slots=True)
class TmuxResult:
    output: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Tmux:
    """Thin wrapper around the ``tmux`` executable."""

    def __init__(self, command: str = "tmux", timeout: float = 30.0):
        self.command = command
        self.timeout = timeout

    def run(self, *args: str) -> TmuxResult:
        try:
            result = subprocess.run(
                [self.command, *args],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            logger.warning("tmux %s timed out after %.1fs", args[0] if args else "", self.timeout)
            raise ScriptError(f"tmux timed out after {self.timeout:.0f}s.") from exc
        except FileNotFoundError as exc:
            raise ScriptError(f"{self.command} not found. Is tmux installed?") from exc
        if result.returncode != 0:
            logger.debug("tmux %s failed (rc=%s): %s", " ".join(args), result.returncode, result.stderr.strip())
        return TmuxResult(output=(result.stdout or "").strip("\n"), returncode=result.returncode)

    def lines(self, *args: str) -> list[str]:
        """Non-empty output lines; a failing tmux call (e.g. no server) yields none."""
        result = self.run(*args)
        return parse_lines(result.output) if result.ok else []

    def sessions(self) -> list[str]:
        return self.lines("list-sessions", "-F", SESSION_FORMAT)

    def windows(self, session: str = "") -> list[str]:
        target = ["-t", session] if session else []
        return self.lines("list-windows", *target, "-F", WINDOW_FORMAT)

    def panes(self, session: str = "", fmt: str = PANE_FORMAT) -> list[str]:
        scope = ["-s", "-t", session] if session else ["-a"]
        return self.lines("list-panes", *scope, "-F", fmt)

    def pane_details(self, session: str = "") -> list[TmuxPane]:
        records = parse_delimited_output(
            "\n".join(self.panes(session, SNAPSHOT_FORMAT)),
            ["target", "window_name", "command", "path"],
        )
        return [TmuxPane(**record) for record in records]

    def capture(self, target: str, lines: int) -> str | None:
        """Scrollback of ``target`` (last ``lines`` lines); ``None`` if the pane does not exist."""
        result = self.run("capture-pane", "-t", target, "-p", "-S", f"-{lines}")
        if not result.ok:
            return None
        return result.output.rstrip()


def _tmux(ns: argparse.Namespace) -> Tmux:
    return Tmux(ns.settings.tmux_command, timeout=ns.settings.tmux_timeout_seconds)


def snapshot_args(ns: argparse.Namespace, default_lines: int) -> tuple[str, int]:
    """``snapshot [session] [lines]``: a lone numeric argument is the line count."""
    first = arg(ns, 0)
    if first.isdigit():
        return "", int(first)
    return first, int_arg(ns, 1, default_lines)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _cmd_sessions(ns: argparse.Namespace) -> str:
    sessions = _tmux(ns).sessions()
    if not sessions:
        return "No tmux sessions running."
    return "\n".join([f"Sessions ({len(sessions)}):", *(f"  {line}" for line in sessions)])


def _cmd_windows(ns: argparse.Namespace) -> str:
    session = arg(ns, 0)
    windows = _tmux(ns).windows(session)
    if not windows:
        raise NotFoundError(f"No windows found{f' in session {session!r}' if session else ''}")
    label = f"session '{session}'" if session else "current session"
    return "\n".join([f"Windows in {label}:", *(f"  {line}" for line in windows)])


def _cmd_panes(ns: argparse.Namespace) -> str:
    session = arg(ns, 0)
    panes = _tmux(ns).panes(session)
    if not panes:
        raise NotFoundError(f"No panes found{f' in session {session!r}' if session else ''}")
    label = f"Panes in '{session}'" if session else "Panes"
    return "\n".join([f"{label} ({len(panes)}):", *(f"  {line}" for line in panes)])


def _cmd_read(ns: argparse.Namespace) -> str:
    target = ns.args[0]
    content = _tmux(ns).capture(target, int_arg(ns, 1, ns.settings.tmux_read_lines))
    if content is None:
        raise NotFoundError(f"Pane '{target}' not found. Use 'tmux-bridge panes' to list available targets.")
    return content or "(empty)"


def _cmd_snapshot(ns: argparse.Namespace) -> str:
    session, lines = snapshot_args(ns, ns.settings.tmux_snapshot_lines)
    tmux = _tmux(ns)
    panes = tmux.pane_details(session)
    if not panes:
        raise NotFoundError(f"No panes found{f' in {session!r}' if session else ''}")

    label = f"session '{session}'" if session else "all sessions"
    out = [f"=== tmux snapshot: {label} ===", f"Captured: {format_datetime(datetime.now())}", ""]
    for pane in panes:
        out.extend(
            [
                RULE,
                f"Pane: {pane.target}  [{pane.window_name}] {pane.command} @ {pane.path}",
                RULE,
                tmux.capture(pane.target, lines) or "(empty)",
                "",
            ]
        )
    return "\n".join(out).rstrip("\n")


COMMANDS: dict[str, Command] = {
    "sessions": Command(_cmd_sessions),
    "windows": Command(_cmd_windows, "[session]"),
    "panes": Command(_cmd_panes, "[session]"),
    "read": Command(_cmd_read, "<target> [lines]", 1),
    "snapshot": Command(_cmd_snapshot, "[session] [lines]"),
}


def build_parser() -> argparse.ArgumentParser:
    return make_parser(PROG, "Read tmux sessions and panes")


def main(argv: Sequence[str] | None = None) -> None:
    raise SystemExit(run_bridge(build_parser(), COMMANDS, argv))


if __name__ == "__main__":
    main()
