"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from stepwise.adapters.mock import MockInstaller
from stepwise.core.context import SessionContext
from stepwise.core.models.config import EngineConfig
from stepwise.core.models.plan import Plan
from stepwise.core.services.event_bus import EventBus
from stepwise.core.services.tool_install.detection.platform import Platform
from stepwise.core.services.tool_install.resolver.tool_resolver import ToolResolver

posix_only = pytest.mark.skipif(os.name == "nt", reason="uses sh -c and process groups")


def make_plan(*steps: dict, seeds: dict[str, str] | None = None, explanation: str = "") -> Plan:
    """Build a Plan from step dicts; indices default to position."""
    return Plan.model_validate({
        "explanation": explanation,
        "steps": list(steps),
        "seeds": seeds or {},
    })


def make_context(
    installer: MockInstaller | None = None,
    *,
    timeout: float = 10.0,
    max_workers: int = 8,
    platform: Platform = Platform.DEBIAN,
) -> SessionContext:
    """SessionContext backed by a mock installer (nothing is ever installed for real)."""
    installer = installer if installer is not None else MockInstaller()
    return SessionContext(
        config=EngineConfig(default_timeout=timeout, max_workers=max_workers),
        tools=ToolResolver(installer, platform, probe=installer.which),
        bus=EventBus(),
    )


@pytest.fixture
def installer() -> MockInstaller:
    """Mock installer; tools start absent."""
    return MockInstaller()


@pytest.fixture
def context(installer: MockInstaller) -> SessionContext:
    return make_context(installer)


@pytest.fixture
def sessions_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for session documents."""
    d = tmp_path / "sessions"
    d.mkdir()
    return d
