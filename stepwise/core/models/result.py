"""
StepResult — the per-step outcome record.

Results are the engine's receipts: a step never raises out of the
scheduler, every outcome (including refusals and skips) is captured
here with a machine-readable cause and a human-readable detail.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StepStatus(StrEnum):
    """Terminal status of a step."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"


class StepState(StrEnum):
    """Lifecycle state of a step inside the scheduler."""

    PENDING = "pending"
    WAITING_ON_TOOL = "waiting_on_tool"
    WAITING_ON_PLACEHOLDERS = "waiting_on_placeholders"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({
    StepState.SUCCESS,
    StepState.FAILED,
    StepState.SKIPPED,
    StepState.TIMED_OUT,
})


class StepCause(StrEnum):
    """Why a step did not succeed."""

    TOOL_UNAVAILABLE = "ToolUnavailable"
    PLACEHOLDER_CONFLICT = "PlaceholderConflict"
    UNRESOLVED_DEPENDENCY = "UnresolvedDependency"
    INTERNAL_ORDERING_ERROR = "InternalOrderingError"
    PROCESS_SPAWN_FAILURE = "ProcessSpawnFailure"
    TIMED_OUT = "TimedOut"
    PLAN_CANCELLED = "PlanCancelled"
    COMMAND_FAILED = "CommandFailed"
    EXTRACTION_FAILED = "ExtractionFailed"


class StepResult(BaseModel):
    """Outcome of one step.

    ``command`` is the fully substituted command line when the step got
    as far as substitution, otherwise the raw template.
    """

    model_config = ConfigDict(frozen=True)

    index: int
    status: StepStatus
    cause: StepCause | None = None
    command: str = ""

    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    stdout_truncated: bool = False
    stderr_truncated: bool = False

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    published: dict[str, str] = Field(default_factory=dict)
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.SUCCESS

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED

    @property
    def marker(self) -> str:
        """One-character status marker used in logs and transcripts."""
        return {
            StepStatus.SUCCESS: "✓",
            StepStatus.FAILED: "✗",
            StepStatus.SKIPPED: "⊘",
            StepStatus.TIMED_OUT: "⏱",
        }[self.status]

    @classmethod
    def success(cls, index: int, command: str = "", **kwargs: Any) -> StepResult:
        """Create a success result."""
        return cls(index=index, status=StepStatus.SUCCESS, command=command, **kwargs)

    @classmethod
    def failure(
        cls,
        index: int,
        cause: StepCause,
        detail: str = "",
        **kwargs: Any,
    ) -> StepResult:
        """Create a failure result."""
        return cls(index=index, status=StepStatus.FAILED, cause=cause, detail=detail, **kwargs)

    @classmethod
    def skip(
        cls,
        index: int,
        cause: StepCause,
        detail: str = "",
        **kwargs: Any,
    ) -> StepResult:
        """Create a skip result. Skipped steps were never spawned."""
        return cls(index=index, status=StepStatus.SKIPPED, cause=cause, detail=detail, **kwargs)

    @classmethod
    def timeout(
        cls,
        index: int,
        cause: StepCause = StepCause.TIMED_OUT,
        detail: str = "",
        **kwargs: Any,
    ) -> StepResult:
        """Create a timed-out result (deadline hit or plan cancelled mid-run)."""
        return cls(index=index, status=StepStatus.TIMED_OUT, cause=cause, detail=detail, **kwargs)
