"""Immutable audit log with hash chaining.

Provides:
- append_audit_log: Append new audit entry with hash chain integrity
- verify_audit_chain: Verify cryptographic integrity of entire audit chain
- AuditTrail: Structured-log audit sink with optional ledger persistence
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .database import create_session_factory, init_database, session_scope, shutdown
from .models import AuditLog

logger = structlog.get_logger()


async def append_audit_log(
    session: AsyncSession,
    event_type: str,
    tool: str,
    outcome: str,
    proposal_id: Optional[str] = None,
    event_data: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Append new entry to audit log with hash chaining.

    Creates a new audit log entry and links it to the previous entry via
    cryptographic hash. The hash chain enables tamper detection.

    Args:
        session: Database session
        event_type: Type of event (e.g., "proposal_resolved", "firewall_triggered")
        tool: Tool name the event concerns
        outcome: Coarse outcome ("success", "error", "rejected", "expired", "blocked")
        proposal_id: Associated proposal, if any
        event_data: JSON-serializable details. Must not hold argument values.

    Returns:
        Created AuditLog entry with computed hash
    """
    stmt = select(AuditLog).order_by(AuditLog.id.desc()).limit(1)
    result = await session.execute(stmt)
    previous_entry = result.scalar_one_or_none()

    entry = AuditLog(
        timestamp=datetime.now(timezone.utc),
        event_type=event_type,
        proposal_id=proposal_id,
        tool=tool,
        outcome=outcome,
        event_data=json.dumps(event_data or {}, sort_keys=True),
        previous_hash=previous_entry.entry_hash if previous_entry else None,
        entry_hash="",  # Computed by before_insert event listener
    )

    session.add(entry)
    await session.flush()

    return entry


async def verify_audit_chain(session: AsyncSession) -> bool:
    """Verify cryptographic integrity of audit log chain.

    Validates that:
    1. Each entry's hash matches its computed hash
    2. Each entry's previous_hash matches the previous entry's hash
    3. The chain is unbroken from start to end

    Args:
        session: Database session

    Returns:
        True if chain is valid, False if tampered
    """
    stmt = select(AuditLog).order_by(AuditLog.id.asc())
    result = await session.execute(stmt)
    entries = result.scalars().all()

    previous_hash = None

    for entry in entries:
        if entry.entry_hash != entry.compute_hash():
            return False
        if entry.previous_hash != previous_hash:
            return False
        previous_hash = entry.entry_hash

    return True


class AuditTrail:
    """Audit sink used by the approval coordinator and the firewall.

    Every event is logged through structlog. When a session factory is
    configured the event is also appended to the hash-chained ledger; appends
    are serialized so concurrent events never fork the chain. A ledger write
    failure is logged and does not change the caller's outcome.

    Args:
        session_factory: Optional async session factory for the ledger
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self.session_factory = session_factory
        self._engine: AsyncEngine | None = None
        self._append_lock = asyncio.Lock()

    @classmethod
    async def open(cls, db_url: str | None) -> "AuditTrail":
        """Build a trail, with a ledger when ``db_url`` is set."""
        if not db_url:
            return cls()
        engine = await init_database(db_url)
        trail = cls(create_session_factory(engine))
        trail._engine = engine
        return trail

    async def close(self) -> None:
        if self._engine is not None:
            await shutdown(self._engine)
            self._engine = None

    async def record(
        self,
        event_type: str,
        *,
        tool: str,
        outcome: str,
        proposal_id: str | None = None,
        **details: Any,
    ) -> None:
        """Record one audit event.

        Args:
            event_type: Event name
            tool: Tool name
            outcome: Coarse outcome
            proposal_id: Associated proposal, if any
            **details: Extra non-sensitive fields (status codes, flags, source)
        """
        logger.info(
            "audit",
            event_type=event_type,
            tool=tool,
            proposal_id=proposal_id,
            outcome=outcome,
            **details,
        )
        if self.session_factory is None:
            return

        try:
            async with self._append_lock:
                async with session_scope(self.session_factory) as session:
                    await append_audit_log(
                        session,
                        event_type=event_type,
                        tool=tool,
                        outcome=outcome,
                        proposal_id=proposal_id,
                        event_data=details,
                    )
        except SQLAlchemyError as e:
            logger.error(
                "audit_ledger_write_failed",
                event_type=event_type,
                proposal_id=proposal_id,
                error=str(e),
            )
