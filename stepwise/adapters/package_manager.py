"""
Package-manager installer — installs tools with the host's native
package manager (apt-get, dnf, pacman, brew, winget).

Runs install commands through the install subprocess runner; uses
non-interactive sudo for system package managers when the process is
not already elevated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from stepwise.adapters.base import InstallOutcome, Installer
from stepwise.core.models.config import ToolRecipe
from stepwise.core.services.tool_install.detection.platform import Platform, is_elevated
from stepwise.core.services.tool_install.execution.subprocess_runner import run_subprocess
from stepwise.core.services.tool_install.resolver.method_selection import (
    build_install_cmd,
    lookup_recipe,
    needs_sudo,
    package_for,
    supports_platform,
)

logger = logging.getLogger(__name__)


class PackageManagerInstaller(Installer):
    """Install tools through the platform's package manager.

    Args:
        recipes: Extra recipes (from config) merged over the built-ins.
        use_sudo: Allow ``sudo -n`` when not elevated.
        elevated: Override privilege detection (None = detect).
        runner: Subprocess runner (injectable for tests).
    """

    def __init__(
        self,
        recipes: Mapping[str, ToolRecipe] | None = None,
        use_sudo: bool = True,
        elevated: bool | None = None,
        runner: Callable[..., dict[str, Any]] = run_subprocess,
    ):
        self._recipes = dict(recipes or {})
        self._use_sudo = use_sudo
        self._elevated = is_elevated() if elevated is None else elevated
        self._runner = runner

    @property
    def name(self) -> str:
        return "package-manager"

    def install(self, tool: str, platform: Platform) -> InstallOutcome:
        recipe = lookup_recipe(tool, self._recipes)

        if not supports_platform(recipe, platform):
            return InstallOutcome.failure(f"{tool} is not available on {platform.label}")

        pm = platform.package_manager
        if pm is None:
            return InstallOutcome.failure(
                f"automatic installation not supported on {platform.label}"
            )

        package = package_for(recipe, pm)
        if not package:
            return InstallOutcome.failure(f"no {pm} package known for {tool}")

        cmd = build_install_cmd(package, pm)
        if cmd is None:
            return InstallOutcome.failure(f"no install command for package manager '{pm}'")

        sudo = needs_sudo(pm) and not self._elevated
        if sudo and not self._use_sudo:
            return InstallOutcome.failure(
                f"installing {tool} with {pm} needs root and sudo is disabled",
                command=cmd,
            )

        logger.info("Installing %s via %s (%s)", tool, pm, package)
        result = self._runner(cmd, sudo=sudo)
        if result.get("ok"):
            logger.info("✓ installed %s", tool)
            return InstallOutcome.success(
                f"installed {package} via {pm}",
                command=cmd,
                elapsed_ms=result.get("elapsed_ms", 0),
            )

        reason = result.get("error", "install failed")
        stderr_lines = (result.get("stderr") or "").strip().splitlines()
        if stderr_lines:
            reason = f"{reason}: {stderr_lines[-1]}"
        logger.warning("✗ install %s failed: %s", tool, reason)
        return InstallOutcome.failure(
            reason, command=cmd, elapsed_ms=result.get("elapsed_ms", 0),
        )
