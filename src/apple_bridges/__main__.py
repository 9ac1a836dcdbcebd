from __future__ import annotations

import importlib.metadata
import sys
from collections.abc import Callable, Sequence

from . import calendar_bridge, contacts_bridge, mail_bridge, notes_bridge, reminders_bridge, tmux_bridge
from .errors import FAILURE, SUCCESS

BRIDGES: dict[str, Callable[[Sequence[str] | None], None]] = {
    "reminders": reminders_bridge.main,
    "calendar": calendar_bridge.main,
    "contacts": contacts_bridge.main,
    "notes": notes_bridge.main,
    "mail": mail_bridge.main,
    "tmux": tmux_bridge.main,
}


def _get_version() -> str:
    """Get the version from package metadata."""
    try:
        return importlib.metadata.version("apple-bridges")
    except importlib.metadata.PackageNotFoundError:
        return "0.3.0 (dev)"


def _usage() -> str:
    lines = ["Usage: apple-bridges <bridge> <command> [args...]", "", "Bridges:"]
    lines.extend(f"  {name}" for name in BRIDGES)
    lines.append("")
    lines.append("Run 'apple-bridges <bridge>' for the commands of one bridge.")
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> None:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or args[0] in ("-h", "--help"):
        print(_usage())
        raise SystemExit(SUCCESS)

    if args[0] in ("version", "--version", "-V"):
        print(f"apple-bridges {_get_version()}")
        raise SystemExit(SUCCESS)

    bridge = BRIDGES.get(args[0])
    if bridge is None:
        print(f"Unknown bridge: {args[0]}", file=sys.stderr)
        print(_usage(), file=sys.stderr)
        raise SystemExit(FAILURE)
    bridge(args[1:])


if __name__ == "__main__":
    main()
