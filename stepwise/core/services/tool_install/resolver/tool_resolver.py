"""
L2 Resolver — Tool availability resolution.

Answers "can this step's tool be used?" once per tool per session.

Flow:
    probe → (missing) install → probe again → READY / INSTALLED / UNAVAILABLE

Outcomes are cached, UNAVAILABLE included, so a session never tries
to install the same tool twice. Concurrent ``ensure`` calls for one
tool serialize on a per-tool lock; calls for different tools do not
block each other.
"""

from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel

from stepwise.core.models.config import ToolRecipe
from stepwise.core.services.tool_install.detection.platform import Platform
from stepwise.core.services.tool_install.resolver.method_selection import (
    cli_name,
    lookup_recipe,
    supports_platform,
)

if TYPE_CHECKING:
    from stepwise.adapters.base import Installer

logger = logging.getLogger(__name__)


class ToolStatus(StrEnum):
    READY = "ready"
    INSTALLED = "installed"
    UNAVAILABLE = "unavailable"


class ToolCheck(BaseModel):
    """Cached outcome of one ``ensure`` call."""

    tool: str
    status: ToolStatus
    path: str | None = None
    reason: str = ""

    @property
    def usable(self) -> bool:
        return self.status != ToolStatus.UNAVAILABLE


class ToolResolver:
    """Per-session tool availability cache.

    Args:
        installer: Installer collaborator (None = never install).
        platform: Host platform.
        recipes: Extra recipes from config.
        probe: Presence check, ``shutil.which``-compatible.
    """

    def __init__(
        self,
        installer: Installer | None,
        platform: Platform,
        recipes: Mapping[str, ToolRecipe] | None = None,
        probe: Callable[[str], str | None] = shutil.which,
    ):
        self._installer = installer
        self._platform = platform
        self._recipes = dict(recipes or {})
        self._probe = probe
        self._cache: dict[str, ToolCheck] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @property
    def platform(self) -> Platform:
        return self._platform

    def _lock_for(self, tool: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(tool, threading.Lock())

    def cached(self, tool: str) -> ToolCheck | None:
        with self._guard:
            return self._cache.get(tool)

    def snapshot(self) -> dict[str, ToolCheck]:
        with self._guard:
            return dict(self._cache)

    def ensure(self, tool: str) -> ToolCheck:
        """Make sure ``tool`` is usable, installing it if allowed.

        Returns:
            ToolCheck. Never raises for tool-level problems.
        """
        with self._lock_for(tool):
            hit = self.cached(tool)
            if hit is not None:
                return hit
            check = self._resolve(tool)
            with self._guard:
                self._cache[tool] = check
            return check

    def _resolve(self, tool: str) -> ToolCheck:
        recipe = lookup_recipe(tool, self._recipes)
        cli = cli_name(tool, recipe)

        path = self._probe(cli)
        if path:
            logger.debug("✓ %s found at %s", tool, path)
            return ToolCheck(tool=tool, status=ToolStatus.READY, path=path)

        if not supports_platform(recipe, self._platform):
            reason = f"{tool} is not supported on {self._platform.label}"
            logger.warning("⊘ %s", reason)
            return ToolCheck(tool=tool, status=ToolStatus.UNAVAILABLE, reason=reason)

        if self._installer is None:
            reason = f"{cli} not found and automatic installation is disabled"
            logger.warning("✗ %s", reason)
            return ToolCheck(tool=tool, status=ToolStatus.UNAVAILABLE, reason=reason)

        logger.info("Tool %s missing; installing with %s", tool, self._installer.name)
        try:
            outcome = self._installer.install(tool, self._platform)
        except Exception as e:
            logger.exception("Installer %s raised for %s", self._installer.name, tool)
            return ToolCheck(
                tool=tool, status=ToolStatus.UNAVAILABLE, reason=f"installer error: {e}",
            )
        if not outcome.ok:
            reason = outcome.reason or "installation failed"
            logger.warning("✗ %s unavailable: %s", tool, reason)
            return ToolCheck(tool=tool, status=ToolStatus.UNAVAILABLE, reason=reason)

        path = self._probe(cli)
        if not path:
            reason = f"installed {tool} but {cli} is still not on PATH"
            logger.warning("✗ %s", reason)
            return ToolCheck(tool=tool, status=ToolStatus.UNAVAILABLE, reason=reason)

        logger.info("✓ %s installed at %s", tool, path)
        return ToolCheck(
            tool=tool, status=ToolStatus.INSTALLED, path=path, reason=outcome.reason,
        )
