"""Shared test fixtures for the bridge tests."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def _ok_result(stdout: str = "") -> MagicMock:
    """Build a mock subprocess.CompletedProcess with returncode=0."""
    r = MagicMock()
    r.returncode = 0
    r.stdout = stdout
    r.stderr = ""
    return r


def _err_result(stderr: str = "boom", returncode: int = 1) -> MagicMock:
    """Build a mock subprocess.CompletedProcess with a non-zero returncode."""
    r = MagicMock()
    r.returncode = returncode
    r.stdout = ""
    r.stderr = stderr
    return r


@dataclass
class FakeOsascript:
    """Stands in for ``subprocess.run`` and answers queued results in order.

    Permission probes (``tell application "X" to get name``) are answered
    automatically and are not recorded, so tests only see the real scripts.
    """

    results: list[Any] = field(default_factory=list)
    scripts: list[str] = field(default_factory=list)
    commands: list[list[str]] = field(default_factory=list)
    access_denied: bool = False

    def reply(self, *stdouts: str) -> None:
        self.results.extend(_ok_result(s) for s in stdouts)

    def fail(self, stderr: str = "boom") -> None:
        self.results.append(_err_result(stderr))

    def __call__(self, cmd: list[str], **kwargs: Any) -> Any:
        script = cmd[-1]
        if cmd[0] == "osascript" and script.rstrip().endswith("to get name"):
            if self.access_denied:
                return _err_result("execution error: Not authorized to send Apple events to App. (-1743)")
            return _ok_result("App")
        self.commands.append(list(cmd))
        self.scripts.append(script)
        if not self.results:
            return _ok_result("")
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result

    @property
    def last_script(self) -> str:
        return self.scripts[-1]


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Keep the developer's environment and ``.env`` out of BridgeSettings."""
    for key in list(os.environ):
        if key.upper().startswith("APPLE_BRIDGES_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def osascript():
    fake = FakeOsascript()
    with patch("subprocess.run", side_effect=fake):
        yield fake


def run_main(main, argv: list[str]) -> int:
    """Call a bridge ``main`` and return its exit code."""
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    return excinfo.value.code
