"""
Mock installer — test double for tool installation.

Tracks which tools are "present" so it can also serve as the
resolver's presence probe. By default every install succeeds and
makes the tool present.
"""

from __future__ import annotations

import threading

from stepwise.adapters.base import InstallOutcome, Installer
from stepwise.core.services.tool_install.detection.platform import Platform


class MockInstaller(Installer):
    """In-memory installer for testing.

    Args:
        present: Tools that already exist before any install.
        installs_silently: When False, a successful install does not make
            the tool present (simulates a broken package).
    """

    def __init__(
        self,
        present: set[str] | None = None,
        installs_silently: bool = True,
    ):
        self._lock = threading.Lock()
        self.present: set[str] = set(present or ())
        self._installs_silently = installs_silently
        self._failures: dict[str, str] = {}
        self._call_log: list[tuple[str, Platform]] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def call_log(self) -> list[tuple[str, Platform]]:
        """All (tool, platform) pairs this mock was asked to install."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls_for(self, tool: str) -> int:
        return sum(1 for t, _ in self._call_log if t == tool)

    def set_failure(self, tool: str, reason: str = "Mock failure") -> None:
        """Configure installs of ``tool`` to fail."""
        self._failures[tool] = reason

    def which(self, cli: str) -> str | None:
        """Presence probe compatible with ``shutil.which``."""
        with self._lock:
            return f"/mock/bin/{cli}" if cli in self.present else None

    def install(self, tool: str, platform: Platform) -> InstallOutcome:
        with self._lock:
            self._call_log.append((tool, platform))
            if tool in self._failures:
                return InstallOutcome.failure(self._failures[tool])
            if self._installs_silently:
                self.present.add(tool)
        return InstallOutcome.success(f"[mock] installed {tool}")

    def reset(self) -> None:
        """Clear call log and configured failures."""
        with self._lock:
            self._call_log.clear()
            self._failures.clear()
