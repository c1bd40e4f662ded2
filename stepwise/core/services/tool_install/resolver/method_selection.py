"""
L2 Resolver — Install method selection.

Pure functions that turn a recipe and a platform into the command
line that installs a tool. No subprocess calls here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from stepwise.core.models.config import ToolRecipe
from stepwise.core.services.tool_install.data.recipes import TOOL_RECIPES
from stepwise.core.services.tool_install.detection.platform import Platform

logger = logging.getLogger(__name__)


def lookup_recipe(
    tool: str,
    extra: Mapping[str, ToolRecipe] | None = None,
) -> ToolRecipe:
    """Find the recipe for ``tool``.

    Configured recipes take precedence over the built-in registry.
    Unknown tools get a bare recipe: probe for ``tool`` itself and try
    installing a package of the same name.
    """
    if extra and tool in extra:
        return extra[tool]
    data = TOOL_RECIPES.get(tool)
    if data is None:
        return ToolRecipe(label=tool, cli=tool, packages={"_default": tool})
    recipe = ToolRecipe.model_validate(data)
    if not recipe.cli:
        recipe = recipe.model_copy(update={"cli": tool})
    return recipe


def cli_name(tool: str, recipe: ToolRecipe) -> str:
    return recipe.cli or tool


def supports_platform(recipe: ToolRecipe, platform: Platform) -> bool:
    """Whether ``recipe`` can exist on ``platform`` at all."""
    if platform == Platform.UNSUPPORTED:
        return False
    if not recipe.platforms:
        return True
    return platform.family in recipe.platforms or platform.value in recipe.platforms


def package_for(recipe: ToolRecipe, pm: str) -> str | None:
    """Package that provides the tool under ``pm`` (None = not packaged)."""
    return recipe.packages.get(pm) or recipe.packages.get("_default")


def build_install_cmd(package: str, pm: str) -> list[str] | None:
    """Build a package-install command.

    Args:
        package: Package name (or winget ID).
        pm: Package manager ID.

    Returns:
        Command list suitable for subprocess, or None for an unknown manager.
    """
    if pm == "apt":
        return ["apt-get", "install", "-y", package]
    if pm == "dnf":
        return ["dnf", "install", "-y", package]
    if pm == "pacman":
        return ["pacman", "-S", "--noconfirm", package]
    if pm == "brew":
        return ["brew", "install", package]
    if pm == "winget":
        return [
            "winget", "install", "--silent",
            "--accept-package-agreements", "--accept-source-agreements",
            package,
        ]
    logger.error("No install command for package manager: %s", pm)
    return None


def needs_sudo(pm: str) -> bool:
    """Whether ``pm`` installs system-wide and needs root."""
    return pm in ("apt", "dnf", "pacman")
