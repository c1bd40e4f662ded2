"""
Configuration loader — reads stepwise.yml into EngineConfig.

Reads YAML, validates against the Pydantic schema, and returns a typed
config. A missing file is not an error: every setting has a default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from stepwise.core.models.config import EngineConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "stepwise.yml"


class ConfigError(Exception):
    """Raised when the configuration file is invalid or unreadable."""


@dataclass
class LoadedConfig:
    """EngineConfig plus where it came from."""

    config: EngineConfig
    path: Path | None
    base_dir: Path

    @property
    def sessions_dir(self) -> Path:
        """sessions_dir resolved against the config file's directory."""
        p = Path(self.config.sessions_dir).expanduser()
        return p if p.is_absolute() else (self.base_dir / p).resolve()


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for stepwise.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to stepwise.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None, *, search: bool = True) -> LoadedConfig:
    """Load and validate engine configuration.

    Args:
        path: Explicit path to stepwise.yml. If None, searches upward
            from the cwd (unless ``search`` is False).

    Returns:
        LoadedConfig. Defaults when no file exists.

    Raises:
        ConfigError: An explicit path is missing, or the file is invalid.
    """
    if path is None and search:
        path = find_config_file()

    if path is None:
        logger.debug("No %s found, using defaults", CONFIG_FILE)
        return LoadedConfig(config=EngineConfig(), path=None, base_dir=Path.cwd())

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "stepwise" key or be flat
    if isinstance(data.get("stepwise"), dict):
        data = data["stepwise"]

    try:
        config = EngineConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded config from %s", path)
    return LoadedConfig(config=config, path=path, base_dir=path.parent.resolve())
