"""Shared command-line plumbing for the bridges.

Every bridge is ``<bridge> <command> [args...] [flags]``.  A bridge module
builds a parser with :func:`make_parser`, adds its flags, describes its
commands in a ``dict[str, Command]`` and hands both to :func:`run_bridge`,
which is the single error boundary: :class:`BridgeError` becomes a message on
stderr plus a non-zero exit code, anything a handler returns goes to stdout.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from pydantic import ValidationError

from .applescript import ensure_access
from .config import BridgeSettings
from .errors import FAILURE, KEYBOARD_INTERRUPT, SUCCESS, BridgeError, UsageError

logger = logging.getLogger("apple_bridges.cli")

Handler = Callable[[argparse.Namespace], "str | None"]


@dataclass(frozen=True, slots=True)
class Command:
    handler: Handler
    usage: str = ""
    min_args: int = 0


class BridgeArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports bad flags as :class:`UsageError` (exit 1).

    Only the flags a bridge declares are treated as flags.  Every other token,
    including text such as ``-urgent`` or a bare ``--``, stays a positional
    argument in its original order.
    """

    def __init__(self, *args, **kwargs) -> None:
        # option string -> whether it consumes a value
        self._flag_arity: dict[str, bool] = {}
        super().__init__(*args, **kwargs)

    def add_argument(self, *args, **kwargs) -> argparse.Action:
        action = super().add_argument(*args, **kwargs)
        for option in action.option_strings:
            self._flag_arity[option] = action.nargs != 0
        return action

    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(f"{self.prog}: {message}")

    def split_flags(self, argv: Sequence[str]) -> tuple[list[str], list[str]]:
        """Separate declared flags (with their values) from positionals."""
        flags: list[str] = []
        positionals: list[str] = []
        tokens = iter(argv)
        for token in tokens:
            name = token.split("=", 1)[0]
            takes_value = self._flag_arity.get(name)
            if takes_value is None:
                positionals.append(token)
            elif takes_value and "=" not in token:
                value = next(tokens, None)
                if value is None:
                    self.error(f"argument {name}: expected one argument")
                flags.append(f"{name}={value}")
            else:
                flags.append(token)
        return flags, positionals

    def parse_bridge_args(self, argv: Sequence[str]) -> argparse.Namespace:
        flags, positionals = self.split_flags(argv)
        ns = self.parse_args(flags)
        ns.command = positionals[0] if positionals else None
        ns.args = positionals[1:]
        return ns


def make_parser(prog: str, description: str = "") -> BridgeArgumentParser:
    parser = BridgeArgumentParser(prog=prog, description=description)
    parser.add_argument("command", nargs="?", help="Command to run")
    parser.add_argument("args", nargs="*", help="Positional arguments for the command")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def usage_text(prog: str, commands: Mapping[str, Command]) -> str:
    lines = ["Usage:"]
    lines.extend(f"  {prog} {name} {command.usage}".rstrip() for name, command in commands.items())
    return "\n".join(lines)


def arg(ns: argparse.Namespace, index: int, default: str = "") -> str:
    """Return positional ``index`` (after the command) or ``default``."""
    return ns.args[index] if len(ns.args) > index else default


def int_arg(ns: argparse.Namespace, index: int, default: int) -> int:
    """Return positional ``index`` as an int; absent or non-numeric gives ``default``."""
    value = arg(ns, index)
    try:
        return int(value)
    except ValueError:
        return default


def required_int(ns: argparse.Namespace, index: int, minimum: int = 1) -> int:
    try:
        value = int(arg(ns, index))
    except ValueError:
        raise UsageError(ns.usage) from None
    if value < minimum:
        raise UsageError(ns.usage)
    return value


def run_bridge(
    parser: BridgeArgumentParser,
    commands: Mapping[str, Command],
    argv: Sequence[str] | None = None,
    *,
    access_app: str = "",
    settings: BridgeSettings | None = None,
) -> int:
    """Parse ``argv``, dispatch to the matching command and return an exit code."""
    try:
        settings = settings or BridgeSettings()
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return FAILURE
    configure_logging(settings.log_level)

    try:
        ns = parser.parse_bridge_args(list(sys.argv[1:] if argv is None else argv))
    except UsageError as exc:
        print(exc.message, file=sys.stderr)
        return exc.exit_code

    if ns.command is None:
        print(usage_text(parser.prog, commands))
        return SUCCESS

    command = commands.get(ns.command)
    if command is None:
        print(f"Unknown command: {ns.command}", file=sys.stderr)
        return FAILURE

    ns.settings = settings
    ns.usage = f"Usage: {parser.prog} {ns.command} {command.usage}".rstrip()
    if len(ns.args) < command.min_args:
        print(ns.usage, file=sys.stderr)
        return FAILURE

    try:
        if access_app:
            ensure_access(access_app, timeout=settings.osascript_timeout_seconds)
        output = command.handler(ns)
    except BridgeError as exc:
        logger.debug("%s %s failed: %s", parser.prog, ns.command, exc.message)
        print(exc.message, file=sys.stderr)
        return exc.exit_code
    except KeyboardInterrupt:
        return KEYBOARD_INTERRUPT

    if output:
        print(output)
    return SUCCESS
