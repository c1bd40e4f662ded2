"""
Audit ledger — append-only execution log.

Every recorded session writes one entry to an NDJSON (newline-delimited
JSON) file next to the session documents. The ledger is append-only:
entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from stepwise.core.models.session import Session

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "audit.ndjson"


class AuditEntry(BaseModel):
    """A single audit log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    session_id: str = ""
    platform: str = ""

    # What happened
    outcome: str = ""              # completed, cancelled
    status: str = ""               # ok, partial, failed
    steps_total: int = 0
    steps_succeeded: int = 0
    steps_failed: int = 0
    steps_skipped: int = 0
    steps_timed_out: int = 0
    duration_ms: int = 0

    # Non-success causes, as "index:Cause"
    errors: list[str] = Field(default_factory=list)

    # Extensible context
    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_session(cls, session: Session) -> AuditEntry:
        duration_ms = 0
        if session.ended_at:
            started = datetime.fromisoformat(session.started_at)
            ended = datetime.fromisoformat(session.ended_at)
            duration_ms = int((ended - started).total_seconds() * 1000)
        return cls(
            session_id=session.session_id,
            platform=session.platform,
            outcome=session.outcome.value,
            status=session.status,
            steps_total=session.total,
            steps_succeeded=session.succeeded,
            steps_failed=session.failed,
            steps_skipped=session.skipped,
            steps_timed_out=session.timed_out,
            duration_ms=duration_ms,
            errors=[
                f"{r.index}:{r.cause.value}"
                for r in session.sorted_results() if r.cause is not None
            ],
        )


class AuditWriter:
    """Append-only audit ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an audit entry to the ledger."""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        data = entry.model_dump(mode="json")
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s", entry.session_id)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[AuditEntry]:
        """Read all entries from the ledger, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """Read the most recent N entries."""
        return self.read_all()[-n:]

    def entry_count(self) -> int:
        """Count entries without loading them all into memory."""
        if not self._path.is_file():
            return 0
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return sum(1 for line in f if line.strip())
        except OSError:
            return 0
