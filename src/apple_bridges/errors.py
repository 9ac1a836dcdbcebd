"""Exception hierarchy shared by every bridge.

Every user-visible failure is a :class:`BridgeError`.  The CLI runner in
:mod:`apple_bridges.cli` is the only place that catches them: it prints the
message on stderr and exits with ``exit_code``.  Platform exceptions
(``subprocess.TimeoutExpired``, ``FileNotFoundError``) are re-raised as
:class:`ScriptError` with the cause chained.
"""

from __future__ import annotations

SUCCESS = 0
FAILURE = 1
KEYBOARD_INTERRUPT = 130


class BridgeError(Exception):
    """Base class for all bridge failures."""

    exit_code: int = FAILURE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UsageError(BridgeError):
    """Missing or malformed command-line arguments."""


class NotFoundError(BridgeError):
    """The named list, event, contact, note, message or pane does not exist."""


class AmbiguousMatchError(BridgeError):
    """A mutating command matched more than one record."""


class PermissionDeniedError(BridgeError):
    """macOS refused the Apple Events needed to talk to an app."""

    def __init__(self, app: str) -> None:
        super().__init__(
            f"No access to {app}. Please grant permission in "
            "System Settings > Privacy & Security > Automation."
        )
        self.app = app


class ScriptError(BridgeError):
    """osascript or tmux failed, timed out, or is not installed."""
