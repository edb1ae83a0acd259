"""SQLAlchemy ORM models for the audit ledger.

Models:
- AuditLog: Immutable audit trail with hash chaining
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, event
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class AuditLog(Base):
    """Immutable audit trail with hash chaining.

    Each entry is cryptographically linked to the previous entry via SHA-256 hash.
    This provides tamper detection for the audit log.

    Attributes:
        id: Auto-incrementing primary key
        timestamp: When the event occurred (indexed)
        event_type: Type of event, e.g. proposal_resolved (indexed)
        proposal_id: Associated proposal, if any (indexed)
        tool: Tool name the event concerns
        outcome: Coarse outcome (success/error/rejected/expired/blocked)
        event_data: JSON payload with event details (never argument values)
        previous_hash: Hash of previous entry (for chain integrity)
        entry_hash: SHA-256 hash of this entry (unique)
    """
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False, default=lambda: datetime.now(timezone.utc))
    event_type: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    proposal_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)
    tool: Mapped[str] = mapped_column(String(100), nullable=False)
    outcome: Mapped[str] = mapped_column(String(20), nullable=False)
    event_data: Mapped[str] = mapped_column(Text, nullable=False)  # JSON payload
    previous_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    entry_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    __table_args__ = (
        Index("ix_audit_event_timestamp", "event_type", "timestamp"),
    )

    def compute_hash(self) -> str:
        """Compute SHA-256 hash of this audit entry.

        Hash includes: timestamp, event_type, proposal_id, tool, outcome,
        event_data, previous_hash

        Returns:
            Hexadecimal hash string (64 characters)
        """
        # SQLite stores naive datetimes
        timestamp = self.timestamp
        if timestamp and timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        hash_input = {
            "timestamp": timestamp.isoformat() if timestamp else "",
            "event_type": self.event_type,
            "proposal_id": self.proposal_id or "",
            "tool": self.tool,
            "outcome": self.outcome,
            "event_data": self.event_data,
            "previous_hash": self.previous_hash or "",
        }

        canonical = json.dumps(hash_input, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@event.listens_for(AuditLog, "before_insert")
def compute_audit_hash(mapper, connection, target):
    """Automatically compute entry_hash before inserting audit log entry."""
    if not target.entry_hash:
        target.entry_hash = target.compute_hash()
