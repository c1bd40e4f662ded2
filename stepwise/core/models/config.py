"""
EngineConfig — runtime settings, loaded from stepwise.yml.

Every field has a default, so an absent config file is a valid
configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ToolRecipe(BaseModel):
    """How to find and install one tool.

    ``packages`` maps a package manager name (apt, dnf, pacman, brew,
    winget) to the package that provides the tool. ``_default`` is used
    when the current manager has no entry. ``platforms`` restricts the
    tool to the listed platform families (empty = everywhere).
    """

    label: str = ""
    cli: str = ""                                   # binary probed with which()
    packages: dict[str, str] = Field(default_factory=dict)
    platforms: list[str] = Field(default_factory=list)


class EngineConfig(BaseModel):
    """Engine settings."""

    # ── Execution ────────────────────────────────────────────────
    default_timeout: float = Field(default=120.0, gt=0)
    max_output_bytes: int = Field(default=65536, gt=0)
    max_workers: int = Field(default=8, ge=1)

    # ── Tool installation ────────────────────────────────────────
    auto_install: bool = True
    use_sudo: bool = True
    tools: dict[str, ToolRecipe] = Field(default_factory=dict)

    # ── Persistence ──────────────────────────────────────────────
    sessions_dir: str = ".state/sessions"
