"""Audit ledger persistence (SQLAlchemy async + aiosqlite)."""

from .audit import AuditTrail, append_audit_log, verify_audit_chain
from .database import create_session_factory, init_database, session_scope, shutdown
from .models import AuditLog, Base

__all__ = [
    "AuditLog",
    "AuditTrail",
    "Base",
    "append_audit_log",
    "create_session_factory",
    "init_database",
    "session_scope",
    "shutdown",
    "verify_audit_chain",
]
