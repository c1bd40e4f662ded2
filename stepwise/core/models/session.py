"""
Session — the record of one plan execution.

A session is built up by the scheduler (results are appended in
completion order) and then sealed. Once sealed it is read-only: the
recorder persists it, the UI renders it, nothing writes to it again.

Serialized to <sessions_dir>/<session_id>.json.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from stepwise.core.models.plan import Plan
from stepwise.core.models.result import StepResult, StepStatus


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


def generate_session_id() -> str:
    """Generate a unique session ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"ses-{now}-{short}"


class SessionOutcome(StrEnum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SessionSealedError(RuntimeError):
    """Raised when something tries to modify a sealed session."""


class Session(BaseModel):
    """Root record of one execution."""

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Identity ─────────────────────────────────────────────────
    session_id: str = Field(default_factory=generate_session_id)
    platform: str = ""

    # ── Input ────────────────────────────────────────────────────
    plan: Plan

    # ── Timestamps ───────────────────────────────────────────────
    started_at: str = Field(default_factory=_now_iso)
    ended_at: str | None = None

    # ── Outcome ──────────────────────────────────────────────────
    results: list[StepResult] = Field(default_factory=list)   # completion order
    placeholder_snapshot: dict[str, str] = Field(default_factory=dict)
    outcome: SessionOutcome = SessionOutcome.COMPLETED
    sealed: bool = False

    # ── Extensible metadata ──────────────────────────────────────
    metadata: dict[str, Any] = Field(default_factory=dict)

    def append(self, result: StepResult) -> None:
        """Record a step result. Results are never replaced or removed."""
        if self.sealed:
            raise SessionSealedError(
                f"session {self.session_id} is sealed; cannot append step {result.index}"
            )
        self.results.append(result)

    def seal(
        self,
        placeholder_snapshot: dict[str, str],
        outcome: SessionOutcome = SessionOutcome.COMPLETED,
    ) -> None:
        """Freeze the session. Sealing twice is an error."""
        if self.sealed:
            raise SessionSealedError(f"session {self.session_id} is already sealed")
        self.placeholder_snapshot = dict(placeholder_snapshot)
        self.outcome = outcome
        self.ended_at = _now_iso()
        self.sealed = True

    def sorted_results(self) -> list[StepResult]:
        """Results ordered by step index, for rendering."""
        return sorted(self.results, key=lambda r: r.index)

    def result_for(self, index: int) -> StepResult | None:
        for r in self.results:
            if r.index == index:
                return r
        return None

    # ── Summary ──────────────────────────────────────────────────

    def _count(self, status: StepStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return self._count(StepStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return self._count(StepStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(StepStatus.SKIPPED)

    @property
    def timed_out(self) -> int:
        return self._count(StepStatus.TIMED_OUT)

    @property
    def status(self) -> str:
        """ok / partial / failed, in the style of an execution report."""
        if self.succeeded == self.total:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def summary(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status,
            "outcome": self.outcome.value,
            "platform": self.platform,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "timed_out": self.timed_out,
        }
