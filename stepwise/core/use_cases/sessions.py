"""
Sessions use case — browse recorded sessions.
"""

from __future__ import annotations

from pathlib import Path

from stepwise.core.models.session import Session
from stepwise.core.persistence.session_store import SessionRecorder


def list_sessions(sessions_dir: Path, limit: int | None = None) -> list[dict]:
    """Summaries of recorded sessions, newest first."""
    recorder = SessionRecorder(sessions_dir)
    return [s.summary() for s in recorder.list_sessions(limit)]


def get_session(sessions_dir: Path, session_id: str) -> Session | None:
    """One recorded session, or None."""
    return SessionRecorder(sessions_dir).load(session_id)
