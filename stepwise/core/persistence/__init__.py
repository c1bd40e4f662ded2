"""Persistence — session documents and the audit ledger."""

from stepwise.core.persistence.audit import AuditEntry, AuditWriter
from stepwise.core.persistence.session_store import SessionRecorder, SessionStoreError

__all__ = ["AuditEntry", "AuditWriter", "SessionRecorder", "SessionStoreError"]
