"""
Installer base — the contract between the tool resolver and whatever
actually installs software.

The resolver only talks to installers through this protocol, never
directly to package managers. Installers NEVER raise: every failure,
including "not supported here", comes back as an InstallOutcome.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from stepwise.core.services.tool_install.detection.platform import Platform


class InstallOutcome(BaseModel):
    """Result of one installation attempt."""

    ok: bool
    reason: str = ""
    command: list[str] | None = None
    elapsed_ms: int = 0

    @classmethod
    def success(cls, reason: str = "", **kwargs) -> InstallOutcome:
        return cls(ok=True, reason=reason, **kwargs)

    @classmethod
    def failure(cls, reason: str, **kwargs) -> InstallOutcome:
        return cls(ok=False, reason=reason, **kwargs)


class Installer(ABC):
    """Abstract base class for installers.

    To create a new installer:
        1. Subclass Installer
        2. Implement name and install
        3. Pass it to ToolResolver
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The installer identifier (e.g., 'package-manager', 'mock')."""

    @abstractmethod
    def install(self, tool: str, platform: Platform) -> InstallOutcome:
        """Install ``tool`` on ``platform``.

        MUST never raise exceptions. Unsupported combinations return
        a failed outcome with the reason.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
