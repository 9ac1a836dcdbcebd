"""Running AppleScript through osascript and moving data across the boundary.

Records come back as one line per record with fields separated by a tab.
Text fields go through the ``sanitise`` handler so embedded tabs and line
breaks cannot split a record; dates go through ``isoDate`` so Python never
has to parse a locale-dependent date string.
"""

from __future__ import annotations

import logging
import re
import subprocess
from datetime import date, datetime

from .errors import PermissionDeniedError, ScriptError

logger = logging.getLogger("apple_bridges.applescript")

DEFAULT_TIMEOUT = 30.0

# -1743 is errAEEventNotPermitted, returned when Automation access is denied
_NOT_PERMITTED = re.compile(r"\(-1743\)|Not authori[sz]ed to send Apple events")
_OSASCRIPT_ERROR = re.compile(r"execution error: (?P<message>.*?)(?: \(-?\d+\))?$")

SANITISE_HANDLER = """
on sanitise(txt)
    if txt is missing value then return ""
    set txt to txt as text
    set AppleScript's text item delimiters to tab
    set parts to text items of txt
    set AppleScript's text item delimiters to " "
    set txt to parts as text
    set AppleScript's text item delimiters to linefeed
    set parts to text items of txt
    set AppleScript's text item delimiters to " "
    set txt to parts as text
    set AppleScript's text item delimiters to return
    set parts to text items of txt
    set AppleScript's text item delimiters to " "
    set txt to parts as text
    set AppleScript's text item delimiters to ""
    return txt
end sanitise
"""

ISO_DATE_HANDLER = """
on pad2(n)
    return text -2 thru -1 of ("0" & (n as integer as text))
end pad2

on isoDate(d)
    if d is missing value then return ""
    set t to time of d
    set ymd to (year of d as integer as text) & "-" & my pad2(month of d as integer) & "-" & my pad2(day of d)
    return ymd & "T" & my pad2(t div 3600) & ":" & my pad2((t mod 3600) div 60) & ":" & my pad2(t mod 60)
end isoDate
"""

JOIN_HANDLERS = """
on joinWith(lineList, separator)
    set AppleScript's text item delimiters to separator
    set joined to lineList as text
    set AppleScript's text item delimiters to ""
    return joined
end joinWith

on joinLines(lineList)
    return my joinWith(lineList, linefeed)
end joinLines
"""

HANDLERS = SANITISE_HANDLER + ISO_DATE_HANDLER + JOIN_HANDLERS


def escape(text: str) -> str:
    """Escape text for use inside an AppleScript string literal."""
    return (
        text
        .replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
        .replace("\r", "\\n")
    )


def quote(text: str) -> str:
    return f'"{escape(text)}"'


def date_literal(var: str, value: date | datetime) -> str:
    """Return AppleScript lines that set ``var`` to ``value``.

    The date is assembled from its components instead of a ``date "..."``
    literal, which would be parsed with the user's locale.  The day is reset
    to 1 first so changing the month never overflows (Jan 31 -> Feb).
    """
    seconds = 0
    if isinstance(value, datetime):
        seconds = value.hour * 3600 + value.minute * 60 + value.second
    return "\n".join(
        [
            f"set {var} to current date",
            f"set day of {var} to 1",
            f"set year of {var} to {value.year}",
            f"set month of {var} to {value.month}",
            f"set day of {var} to {value.day}",
            f"set time of {var} to {seconds}",
        ]
    )


def _error_message(stderr: str) -> str:
    match = _OSASCRIPT_ERROR.search(stderr)
    if match:
        return match.group("message").strip()
    return stderr or "unknown error"


def run_script(script: str, app: str = "", timeout: float = DEFAULT_TIMEOUT) -> str:
    """Run ``script`` with ``osascript -e`` and return its stdout.

    Raises :class:`PermissionDeniedError` when macOS blocks the Apple Events
    and :class:`ScriptError` for any other failure.
    """
    try:
        result = subprocess.run(
            ["osascript", "-e", script],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        logger.warning("AppleScript timed out after %.1fs", timeout)
        raise ScriptError(f"AppleScript timed out after {timeout:.0f}s.") from exc
    except FileNotFoundError as exc:
        logger.warning("osascript not found; the bridges require macOS")
        raise ScriptError("osascript not found. This bridge requires macOS.") from exc

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        logger.warning("AppleScript failed (rc=%s): %s", result.returncode, stderr)
        if app and _NOT_PERMITTED.search(stderr):
            raise PermissionDeniedError(app)
        raise ScriptError(f"AppleScript error: {_error_message(stderr)}")
    return (result.stdout or "").strip("\r\n")


def ensure_access(app: str, timeout: float = DEFAULT_TIMEOUT) -> None:
    """Send one harmless Apple Event so macOS asks for permission up front.

    osascript blocks until the user answers the consent dialog; a refusal
    surfaces as :class:`PermissionDeniedError`.
    """
    run_script(f'tell application "{escape(app)}" to get name', app=app, timeout=timeout)


def parse_lines(raw: str | None) -> list[str]:
    """Split newline-joined output, dropping blank lines."""
    if not raw:
        return []
    return [line.strip() for line in raw.splitlines() if line.strip()]


def parse_delimited_output(raw: str | None, field_names: list[str]) -> list[dict[str, str]]:
    """Parse tab-delimited AppleScript output into a list of dicts.

    Each line is one record; fields are separated by a single tab.
    Lines with the wrong number of fields are skipped.
    """
    if not raw:
        return []
    records: list[dict[str, str]] = []
    expected = len(field_names)
    for line in raw.splitlines():
        parts = line.split("\t")
        if len(parts) != expected:
            if line.strip():
                logger.debug("Skipping malformed record (%d fields): %r", len(parts), line)
            continue
        records.append(dict(zip(field_names, parts)))
    return records


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ``isoDate`` value; empty or malformed values yield ``None``."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        logger.debug("Unparseable date from AppleScript: %r", value)
        return None


def parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() == "true"
