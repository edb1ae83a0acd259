"""Propose/approve workflow for write tools.

Write tools never execute on the call that names them. The call creates a
proposal; a separate approval executes the stored arguments exactly once,
and only if it lands before the proposal expires. Every resolution is
recorded on the audit trail without argument values.

Provides:
- ProposalReceipt: Stored proposal plus its caller-facing projection
- ApprovalCoordinator: propose / resolve / inspect proposals
"""

from dataclasses import dataclass
from typing import Any

import structlog

from gateway.core.errors import (
    SERVER_ERROR,
    ExecutionError,
    GatewayError,
    InternalError,
    ProposalNotFoundError,
    ToolNotFoundError,
)
from gateway.core.persistence.audit import AuditTrail
from gateway.core.proposals import Proposal, ProposalStatus, ProposalStore, to_iso
from gateway.tools.base import ToolRegistry

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProposalReceipt:
    proposal: Proposal
    projection: dict[str, Any]


def proposal_projection(proposal: Proposal) -> dict[str, Any]:
    """What the proposing caller sees. Never includes argument values."""
    return {
        "status": "proposed",
        "proposal_id": proposal.proposal_id,
        "tool": proposal.tool,
        "params_hash": proposal.params_hash,
        "summary": proposal.summary,
        "expires_at": to_iso(proposal.expires_at),
    }


class ApprovalCoordinator:
    """Runs the proposal state machine on top of the store.

    pending -> approved -> executed and removed
    pending -> rejected (removed)
    pending -> expired (removed)

    Claiming a proposal is a single ``set_status`` call on the store, which
    serializes transitions per proposal id. Two concurrent approvals of the
    same id therefore see exactly one winner; the loser gets not-found.

    Args:
        store: Proposal store
        registry: Tool registry resolving proposal tools at execution time
        audit: Audit trail for resolution events
        dry_run: Report the downstream call instead of making it
    """

    def __init__(
        self,
        store: ProposalStore,
        registry: ToolRegistry,
        audit: AuditTrail | None = None,
        dry_run: bool = False,
    ):
        self.store = store
        self.registry = registry
        self.audit = audit or AuditTrail()
        self.dry_run = dry_run

    async def propose(self, tool_name: str, arguments: dict[str, Any] | None) -> ProposalReceipt:
        """Create a pending proposal for a validated write-tool call.

        Args:
            tool_name: Write tool to run on approval
            arguments: Arguments to run it with

        Returns:
            ProposalReceipt with the stored proposal and its projection
        """
        proposal = await self.store.create(tool_name, arguments)
        return ProposalReceipt(proposal=proposal, projection=proposal_projection(proposal))

    async def resolve(self, proposal_id: str, approve: bool) -> dict[str, Any]:
        """Approve or reject a proposal.

        Args:
            proposal_id: Proposal to resolve
            approve: True to execute, anything else rejects

        Returns:
            ``{"status": "approved", "proposal_id", "result"}`` on success,
            ``{"status": "rejected" | "expired", "proposal_id"}`` otherwise

        Raises:
            ProposalNotFoundError: Unknown, already resolved, or swept
            ExecutionError: The tool failed; carries the proposal id
            ToolNotFoundError: The tool is no longer available
            InternalError: Unexpected failure during execution
        """
        requested = ProposalStatus.APPROVED if approve is True else ProposalStatus.REJECTED
        claimed = await self.store.set_status(proposal_id, requested)
        if claimed is None:
            raise ProposalNotFoundError(proposal_id)

        log = logger.bind(proposal_id=proposal_id, tool=claimed.tool)

        if claimed.status is not ProposalStatus.APPROVED:
            outcome = claimed.status.value
            log.info("proposal_resolved", outcome=outcome)
            await self._record(claimed, outcome)
            return {"status": outcome, "proposal_id": proposal_id}

        outcome = "error"
        details: dict[str, Any] = {}
        try:
            tool = self.registry.lookup(claimed.tool)
            if self.dry_run:
                outcome = "success"
                details["dry_run"] = True
                return {
                    "dryRun": True,
                    "validated": True,
                    "wouldCall": tool.would_call(),
                    "proposal_id": proposal_id,
                }

            result = await tool.execute(claimed.arguments)
            outcome = "success"
            return {"status": "approved", "proposal_id": proposal_id, "result": result}
        except ToolNotFoundError as e:
            raise ToolNotFoundError(claimed.tool, "Tool no longer available") from e
        except ExecutionError as e:
            # Approval failures always answer -32000; the upstream status stays in data.
            e.code = SERVER_ERROR
            e.proposal_id = proposal_id
            details["status"] = e.status
            raise
        except GatewayError:
            raise
        except Exception as e:
            log.error("proposal_execution_failed", error_type=type(e).__name__)
            raise InternalError(endpoint=claimed.tool) from e
        finally:
            await self.store.retire(proposal_id)
            log.info("proposal_resolved", outcome=outcome)
            await self._record(claimed, outcome, **details)

    async def _record(self, proposal: Proposal, outcome: str, **details: Any) -> None:
        await self.audit.record(
            "proposal_resolved",
            tool=proposal.tool,
            proposal_id=proposal.proposal_id,
            outcome=outcome,
            params_hash=proposal.params_hash,
            **details,
        )

    async def get_proposal(self, proposal_id: str) -> dict[str, Any]:
        """Safe projection of a live proposal.

        Raises:
            ProposalNotFoundError: Unknown or expired
        """
        proposal = await self.store.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(proposal_id)
        return proposal.to_safe_dict()

    async def list_proposals(
        self, limit: int = 20, status: ProposalStatus | str | None = None
    ) -> list[dict[str, Any]]:
        proposals = await self.store.list(limit=limit, status=status)
        return [p.to_safe_dict() for p in proposals]
