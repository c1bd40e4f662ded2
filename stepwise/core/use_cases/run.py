"""
Run use case — execute a plan document and record the session.

The full vertical slice from a plan file to a persisted, audited
session: load config, build the session context, ingest the plan,
schedule it, record the sealed result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from stepwise.adapters.base import Installer
from stepwise.adapters.package_manager import PackageManagerInstaller
from stepwise.core.config.loader import ConfigError, LoadedConfig
from stepwise.core.config.plan_loader import PlanLoadError, load_plan
from stepwise.core.context import SessionContext
from stepwise.core.engine.errors import PlanError
from stepwise.core.engine.scheduler import PlanScheduler
from stepwise.core.models.config import EngineConfig
from stepwise.core.models.session import Session
from stepwise.core.persistence.session_store import SessionRecorder, SessionStoreError
from stepwise.core.services.event_bus import EventBus
from stepwise.core.services.extractors import seeds_from_text
from stepwise.core.services.tool_install.detection.platform import Platform, detect_platform
from stepwise.core.services.tool_install.resolver.tool_resolver import ToolResolver

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Result of running a plan."""

    session: Session | None = None
    session_path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.session is not None and self.session.status == "ok"

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result
        if self.session is not None:
            result["session"] = self.session.summary()
            result["results"] = [
                r.model_dump(mode="json") for r in self.session.sorted_results()
            ]
            result["placeholders"] = dict(self.session.placeholder_snapshot)
        result["session_path"] = str(self.session_path) if self.session_path else None
        return result


def build_context(
    loaded: LoadedConfig,
    *,
    timeout: float | None = None,
    max_workers: int | None = None,
    auto_install: bool | None = None,
    installer: Installer | None = None,
    platform: Platform | None = None,
    bus: EventBus | None = None,
    record: bool = True,
) -> SessionContext:
    """Build a SessionContext from configuration plus CLI overrides."""
    overrides: dict = {}
    if timeout is not None:
        overrides["default_timeout"] = timeout
    if max_workers is not None:
        overrides["max_workers"] = max_workers
    if auto_install is not None:
        overrides["auto_install"] = auto_install
    config = loaded.config
    if overrides:
        try:
            config = EngineConfig.model_validate({**config.model_dump(), **overrides})
        except ValidationError as e:
            raise ConfigError(f"Invalid override: {e}") from e

    return context_from_config(
        config,
        loaded.sessions_dir if record else None,
        installer=installer,
        platform=platform,
        bus=bus,
    )


def context_from_config(
    config: EngineConfig,
    sessions_dir: Path | None,
    *,
    installer: Installer | None = None,
    platform: Platform | None = None,
    bus: EventBus | None = None,
    session_id: str | None = None,
) -> SessionContext:
    """Build a SessionContext from an already validated config.

    A None ``sessions_dir`` means the session is not recorded.
    """
    platform = platform or detect_platform()
    if installer is None and config.auto_install:
        installer = PackageManagerInstaller(recipes=config.tools, use_sudo=config.use_sudo)
    elif not config.auto_install:
        installer = None

    logger.debug("Platform %s, installer %s", platform.value, installer)
    return SessionContext(
        config=config,
        tools=ToolResolver(installer, platform, recipes=config.tools),
        bus=bus or EventBus(),
        recorder=SessionRecorder(sessions_dir) if sessions_dir is not None else None,
        session_id=session_id,
    )


def run_plan(
    plan_path: Path,
    context: SessionContext,
    *,
    seeds: dict[str, str] | None = None,
    request: str | None = None,
) -> RunResult:
    """Execute a plan document.

    Args:
        plan_path: YAML or JSON plan document.
        context: Session context (see ``build_context``).
        seeds: Explicit placeholder values (win over request-derived ones).
        request: Free-text user request to take a target address from.

    Returns:
        RunResult with the sealed session, or an error.
    """
    merged: dict[str, str] = {}
    if request:
        merged.update(seeds_from_text(request))
    merged.update(seeds or {})

    try:
        plan = load_plan(plan_path, merged)
    except PlanLoadError as e:
        return RunResult(error=str(e))

    try:
        session = PlanScheduler(context).run(plan)
    except PlanError as e:
        return RunResult(error=f"Plan rejected: {e}")
    except SessionStoreError as e:
        return RunResult(error=str(e))

    path = context.recorder.path_for(session.session_id) if context.recorder else None
    return RunResult(session=session, session_path=path)
