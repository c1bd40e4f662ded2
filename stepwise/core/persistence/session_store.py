"""
Session store — atomic read/write of sealed sessions.

Each session is stored as JSON in <sessions_dir>/<session_id>.json.
Writes are atomic (write to temp file, then rename) so a crash never
leaves a half-written record. Recording also appends one line to the
audit ledger in the same directory.

The recorder only ever receives sealed sessions and never mutates them.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path

from pydantic import ValidationError

from stepwise.core.models.session import Session
from stepwise.core.persistence.audit import DEFAULT_AUDIT_FILE, AuditEntry, AuditWriter

logger = logging.getLogger(__name__)

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class SessionStoreError(Exception):
    """Raised when a session cannot be recorded."""


class SessionRecorder:
    """Persist and read back sealed sessions.

    Args:
        sessions_dir: Directory holding one JSON document per session.
    """

    def __init__(self, sessions_dir: Path):
        self._dir = Path(sessions_dir)
        self._audit = AuditWriter(self._dir / DEFAULT_AUDIT_FILE)

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def audit(self) -> AuditWriter:
        return self._audit

    def path_for(self, session_id: str) -> Path:
        return self._dir / f"{session_id}.json"

    def record(self, session: Session) -> Path:
        """Write ``session`` and its audit entry.

        Raises:
            SessionStoreError: The session is not sealed, or the write failed.
        """
        if not session.sealed:
            raise SessionStoreError(f"refusing to record unsealed session {session.session_id}")

        path = self.path_for(session.session_id)
        self._dir.mkdir(parents=True, exist_ok=True)

        data = session.model_dump(mode="json")
        content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

        fd, tmp_path = tempfile.mkstemp(dir=self._dir, prefix=".session_", suffix=".tmp")
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.replace(path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            logger.error("Failed to save session to %s: %s", path, e)
            raise SessionStoreError(f"cannot write {path}: {e}") from e

        self._audit.write(AuditEntry.from_session(session))
        logger.info("Session %s saved to %s", session.session_id, path)
        return path

    def load(self, session_id: str) -> Session | None:
        """Load one session (None when absent or unreadable)."""
        if not _SESSION_ID_RE.match(session_id):
            return None
        path = self.path_for(session_id)
        if not path.is_file():
            return None
        return _read(path)

    def list_sessions(self, limit: int | None = None) -> list[Session]:
        """All readable sessions, newest first. Corrupt files are skipped."""
        if not self._dir.is_dir():
            return []
        sessions = []
        for path in self._dir.glob("*.json"):
            session = _read(path)
            if session is not None:
                sessions.append(session)
        sessions.sort(key=lambda s: (s.started_at, s.session_id), reverse=True)
        return sessions[:limit] if limit is not None else sessions


def _read(path: Path) -> Session | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Session.model_validate(data)
    except json.JSONDecodeError as e:
        logger.warning("Corrupt session file %s: %s, skipping", path, e)
    except ValidationError as e:
        logger.warning("Invalid session file %s: %s, skipping", path, e)
    except OSError as e:
        logger.warning("Cannot read session file %s: %s", path, e)
    return None
