"""Safety framework: content firewall, category gating and the approval workflow."""

from .approval import ApprovalCoordinator, ProposalReceipt, proposal_projection
from .firewall import ContentScanner, PatternScanner, ScanVerdict
from .followup import FollowupScheduler, build_blocked_response
from .risk import get_category_description, should_require_approval

__all__ = [
    "ApprovalCoordinator",
    "ContentScanner",
    "FollowupScheduler",
    "PatternScanner",
    "ProposalReceipt",
    "ScanVerdict",
    "build_blocked_response",
    "get_category_description",
    "proposal_projection",
    "should_require_approval",
]
