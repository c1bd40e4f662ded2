"""
Session context — everything one plan execution needs, passed explicitly.

Entry points build a context once and hand it to the scheduler:

    - CLI:    use_cases.run.build_context(config, ...)
    - Tests:  SessionContext(config=EngineConfig(), tools=ToolResolver(MockInstaller(), ...))

Nothing here is a module-level singleton; two contexts never share a
cancellation flag, an event bus or a tool cache.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stepwise.core.models.config import EngineConfig
from stepwise.core.services.event_bus import EventBus
from stepwise.core.services.tool_install.detection.platform import Platform
from stepwise.core.services.tool_install.resolver.tool_resolver import ToolResolver

if TYPE_CHECKING:
    from stepwise.core.persistence.session_store import SessionRecorder


@dataclass
class SessionContext:
    """Collaborators and settings for one execution."""

    config: EngineConfig
    tools: ToolResolver
    bus: EventBus = field(default_factory=EventBus)
    cancel: threading.Event = field(default_factory=threading.Event)
    recorder: SessionRecorder | None = None
    session_id: str | None = None

    @property
    def platform(self) -> Platform:
        return self.tools.platform

    def request_cancel(self) -> None:
        """Ask the running plan to stop. Safe from signal handlers."""
        self.cancel.set()
