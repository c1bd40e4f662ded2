"""
Config check use case — validate stepwise.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from stepwise.core.config.loader import ConfigError, LoadedConfig, load_config
from stepwise.core.services.tool_install.detection.platform import detect_platform


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    loaded: LoadedConfig | None = None
    platform: str = ""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.loaded.path) if self.loaded and self.loaded.path else None,
            "sessions_dir": str(self.loaded.sessions_dir) if self.loaded else None,
            "platform": self.platform,
            "config": self.loaded.config.model_dump(mode="json") if self.loaded else None,
            "errors": self.errors,
            "warnings": self.warnings,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate configuration and report issues.

    Args:
        config_path: Optional explicit path to stepwise.yml.
    """
    result = ConfigCheckResult()

    try:
        loaded = load_config(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    result.loaded = loaded
    platform = detect_platform()
    result.platform = platform.value

    if loaded.path is None:
        result.warnings.append("No stepwise.yml found; using defaults.")

    config = loaded.config
    if config.auto_install and platform.package_manager is None:
        result.warnings.append(
            f"auto_install is on but {platform.label} has no supported package manager."
        )
    for name, recipe in config.tools.items():
        if not recipe.packages:
            result.warnings.append(f"Tool '{name}' has no packages; it can never be installed.")

    result.valid = True
    return result
