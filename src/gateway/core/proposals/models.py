"""Proposal data model.

Provides:
- ProposalStatus: Lifecycle states
- Proposal: One pending write intent
- fingerprint_arguments / summarize_arguments: Derived proposal fields
- to_iso: Epoch milliseconds to ISO-8601 UTC
"""

import hashlib
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from gateway.core.redaction import redact_object


class ProposalStatus(str, Enum):
    """Proposal lifecycle state.

    PENDING is the only non-terminal state. Each proposal leaves it exactly once.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not ProposalStatus.PENDING


class Proposal(BaseModel):
    """A pending, time-bounded write-tool invocation awaiting approval.

    Timestamps are epoch milliseconds and serialize as ``createdAt`` /
    ``expiresAt`` to match the snapshot file format.
    """

    model_config = ConfigDict(populate_by_name=True)

    proposal_id: str = Field(..., description="UUID, never reused")
    tool: str = Field(..., description="Tool name from the registry")
    arguments: dict[str, Any] = Field(default_factory=dict)
    params_hash: str = Field(..., description="SHA-256 over canonical JSON arguments")
    summary: str
    created_at: int = Field(..., alias="createdAt")
    expires_at: int = Field(..., alias="expiresAt")
    status: ProposalStatus = ProposalStatus.PENDING

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at

    def to_record(self) -> dict[str, Any]:
        """Serialize for the snapshot file."""
        return self.model_dump(mode="json", by_alias=True)

    def to_safe_dict(self) -> dict[str, Any]:
        """Caller-facing projection with redacted arguments."""
        return {
            "proposal_id": self.proposal_id,
            "tool": self.tool,
            "summary": self.summary,
            "params_hash": self.params_hash,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
            "expires_at": to_iso(self.expires_at),
            "status": self.status.value,
            "arguments": redact_object(self.arguments),
        }


def fingerprint_arguments(arguments: dict[str, Any] | None) -> str:
    # Canonical form so key insertion order does not change the fingerprint.
    canonical = json.dumps(
        arguments or {},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def summarize_arguments(tool: str, arguments: dict[str, Any] | None) -> str:
    if not isinstance(arguments, dict) or not arguments:
        return f"{tool} (no parameters)"
    return f"{tool} (fields: {', '.join(sorted(arguments))})"


def to_iso(epoch_ms: int) -> str:
    stamp = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
