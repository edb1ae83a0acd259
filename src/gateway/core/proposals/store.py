"""Proposal lifecycle store.

The only shared mutable state of the gateway. Owns the keyed collection of
live proposals, evaluates expiry lazily on every read, and snapshots itself to
an optional durable backend after each mutation.

Provides:
- ProposalStore: create/get/list/set_status/retire/sweep over live proposals
"""

import asyncio
import copy
from typing import Any
from uuid import uuid4
from weakref import WeakValueDictionary

import structlog

from .backends import ProposalBackend
from .clock import Clock, SystemClock
from .models import (
    Proposal,
    ProposalStatus,
    fingerprint_arguments,
    summarize_arguments,
)

logger = structlog.get_logger()

DEFAULT_LIST_LIMIT = 20


class ProposalStore:
    """Keyed store of live proposals with TTL expiry.

    Each proposal id has its own asyncio lock, so operations on different ids
    never wait for each other, while two transitions on the same id are
    serialized. Snapshot writes go through one persistence lock so they never
    interleave.

    Proposals handed out are deep copies. Callers change state only through
    ``set_status`` and ``retire``.

    Args:
        ttl_seconds: Time-to-live applied to every new proposal
        backend: Optional durable backend; only unexpired records are reloaded
        clock: Time source (SystemClock by default)
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        backend: ProposalBackend | None = None,
        clock: Clock | None = None,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_ms = int(ttl_seconds * 1000)
        self.backend = backend
        self.clock = clock or SystemClock()
        self._records: dict[str, Proposal] = {}
        self._locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()
        self._persist_lock = asyncio.Lock()
        self._sweep_lock = asyncio.Lock()
        self._load()

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_ms / 1000

    def __len__(self) -> int:
        return len(self._records)

    def _load(self) -> None:
        if self.backend is None:
            return
        now = self.clock.now_ms()
        loaded = 0
        for proposal in self.backend.load():
            if proposal.is_expired(now):
                continue
            self._records[proposal.proposal_id] = proposal
            loaded += 1
        logger.info("proposal_store_loaded", proposals=loaded)

    def _lock_for(self, proposal_id: str) -> asyncio.Lock:
        lock = self._locks.get(proposal_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[proposal_id] = lock
        return lock

    async def _persist(self) -> None:
        if self.backend is None:
            return
        async with self._persist_lock:
            proposals = [p.model_copy(deep=True) for p in self._records.values()]
            await asyncio.to_thread(self.backend.snapshot, proposals)

    async def create(self, tool: str, arguments: dict[str, Any] | None) -> Proposal:
        """Create a pending proposal.

        Args:
            tool: Tool name the proposal will execute
            arguments: Caller-supplied arguments, stored as an immutable copy

        Returns:
            Copy of the stored proposal
        """
        args = copy.deepcopy(arguments) if arguments else {}
        now = self.clock.now_ms()
        proposal = Proposal(
            proposal_id=str(uuid4()),
            tool=tool,
            arguments=args,
            params_hash=fingerprint_arguments(args),
            summary=summarize_arguments(tool, args),
            created_at=now,
            expires_at=now + self.ttl_ms,
        )
        self._records[proposal.proposal_id] = proposal
        try:
            await self._persist()
        except Exception:
            self._records.pop(proposal.proposal_id, None)
            raise
        logger.info(
            "proposal_created",
            proposal_id=proposal.proposal_id,
            tool=tool,
            arg_keys=sorted(args),
        )
        return proposal.model_copy(deep=True)

    async def get(self, proposal_id: str) -> Proposal | None:
        """Fetch a live proposal.

        A record found past its expiry is reclassified as expired, removed and
        reported as not found, whether or not the sweep has run.

        Returns:
            Copy of the proposal, or None
        """
        async with self._lock_for(proposal_id):
            record = self._records.get(proposal_id)
            if record is None:
                return None
            if record.is_expired(self.clock.now_ms()):
                record.status = ProposalStatus.EXPIRED
                del self._records[proposal_id]
                logger.info("proposal_expired", proposal_id=proposal_id, tool=record.tool)
                await self._persist()
                return None
            return record.model_copy(deep=True)

    async def list(
        self,
        limit: int = DEFAULT_LIST_LIMIT,
        status: ProposalStatus | str | None = None,
    ) -> list[Proposal]:
        """List live proposals, newest first.

        Args:
            limit: Maximum number of proposals returned
            status: Optional status filter

        Returns:
            Copies of matching proposals ordered by created_at descending
        """
        await self.sweep()
        now = self.clock.now_ms()
        items = [p for p in self._records.values() if not p.is_expired(now)]
        if status is not None:
            wanted = ProposalStatus(status)
            items = [p for p in items if p.status is wanted]
        items.sort(key=lambda p: p.created_at, reverse=True)
        return [p.model_copy(deep=True) for p in items[: max(0, int(limit))]]

    async def set_status(
        self, proposal_id: str, status: ProposalStatus | str
    ) -> Proposal | None:
        """Apply a terminal transition to a pending proposal.

        No-op returning None when the proposal is gone or already terminal.
        If the record is found past its expiry, EXPIRED is applied instead of
        the requested status and the returned proposal carries it.

        Rejected and expired proposals are removed at once. An approved
        proposal stays as the in-flight marker until ``retire`` (or the sweep)
        removes it, so a concurrent resolution sees it as already terminal.

        Args:
            proposal_id: Proposal to transition
            status: Requested terminal status

        Returns:
            Copy of the proposal with its new status, or None
        """
        requested = ProposalStatus(status)
        if not requested.is_terminal:
            raise ValueError("Only terminal transitions are allowed")

        async with self._lock_for(proposal_id):
            record = self._records.get(proposal_id)
            if record is None or record.status.is_terminal:
                return None

            applied = requested
            if record.is_expired(self.clock.now_ms()):
                applied = ProposalStatus.EXPIRED
            previous = record.status
            record.status = applied
            if applied is not ProposalStatus.APPROVED:
                del self._records[proposal_id]
            try:
                await self._persist()
            except Exception:
                # Undo so the proposal can still be resolved once storage recovers.
                record.status = previous
                self._records[proposal_id] = record
                raise

            logger.info(
                "proposal_status_changed",
                proposal_id=proposal_id,
                tool=record.tool,
                status=applied.value,
            )
            return record.model_copy(deep=True)

    async def retire(self, proposal_id: str) -> bool:
        """Remove a proposal whatever its status. Returns True if it was present."""
        async with self._lock_for(proposal_id):
            record = self._records.pop(proposal_id, None)
            if record is None:
                return False
            await self._persist()
            return True

    async def sweep(self) -> int:
        """Remove every record whose expiry has passed, whatever its status.

        Only one sweep runs at a time; a call made while another is in flight
        returns 0 without touching the store.

        Returns:
            Number of records removed
        """
        if self._sweep_lock.locked():
            return 0
        async with self._sweep_lock:
            now = self.clock.now_ms()
            expired = [pid for pid, p in self._records.items() if p.is_expired(now)]
            for proposal_id in expired:
                self._records.pop(proposal_id, None)
            if expired:
                logger.info("proposals_swept", removed=len(expired))
                await self._persist()
            return len(expired)
