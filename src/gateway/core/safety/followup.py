"""Follow-up handling for blocked content.

When the firewall blocks a payload, a fixed-form task is created downstream
so a team member can collect the details through another channel. The task
never contains the blocked content.

Provides:
- FollowupScheduler: Best-effort follow-up task creation
- build_blocked_response: Deterministic caller-facing blocked result
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from gateway.core.persistence.audit import AuditTrail
from gateway.tools.client import ApiResponse, CrmClient

logger = structlog.get_logger()

FOLLOWUP_TITLE = "Follow up — sensitive info attempted"
FOLLOWUP_DESCRIPTION = (
    "Client attempted to share restricted details in PCC chat. "
    "Call to complete intake offline."
)
FOLLOWUP_DUE_IN = timedelta(hours=1)
FIREWALL_SOURCES = frozenset({"mcp", "bff"})

BLOCKED_STATUS = "blocked_sensitive"
BLOCKED_REASON = "phi_pii_detected"
MESSAGE_TASK_CREATED = (
    "I can’t accept or process medical or sensitive financial details here. "
    "A follow-up task has been created so a licensed team member can reach out directly."
)
MESSAGE_TASK_FAILED = (
    "I can’t accept or process medical or sensitive financial details here. "
    "I couldn’t create the follow-up task automatically. Please follow up manually."
)


def build_blocked_response(task_created: bool) -> dict[str, Any]:
    """Blocked result returned in place of a proposal or tool result."""
    return {
        "status": BLOCKED_STATUS,
        "reason": BLOCKED_REASON,
        "task_created": bool(task_created),
        "message": MESSAGE_TASK_CREATED if task_created else MESSAGE_TASK_FAILED,
    }


class FollowupScheduler:
    """Creates follow-up tasks after a firewall block.

    Args:
        client: Downstream client
        assignee: Default assignee of the task
        contact_id: Contact the task is attached to; location-level otherwise
        dry_run: Log only, never call downstream
        audit: Audit trail receiving one firewall_triggered event per trigger
    """

    def __init__(
        self,
        client: CrmClient,
        assignee: str = "",
        contact_id: str = "",
        dry_run: bool = False,
        audit: AuditTrail | None = None,
    ):
        self.client = client
        self.assignee = assignee
        self.contact_id = contact_id
        self.dry_run = dry_run
        self.audit = audit or AuditTrail()

    async def _create_task(self) -> ApiResponse:
        due = datetime.now(timezone.utc) + FOLLOWUP_DUE_IN
        task: dict[str, Any] = {
            "title": FOLLOWUP_TITLE,
            "dueDate": due.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "description": FOLLOWUP_DESCRIPTION,
        }
        if self.assignee:
            task["assignedTo"] = self.assignee

        if self.contact_id:
            return await self.client.request("POST", f"/contacts/{self.contact_id}/tasks", body=task)

        if not self.client.location_id:
            return ApiResponse(ok=False, status=400, error="locationId is required")
        return await self.client.request(
            "POST", "/tasks", body={**task, "locationId": self.client.location_id}
        )

    async def trigger(self, tool_name: str, source: str = "mcp") -> bool:
        """Create the follow-up task.

        Never raises: every failure is reported as ``False``.

        Args:
            tool_name: Tool the blocked call targeted
            source: Origin of the trigger, ``mcp`` or ``bff``

        Returns:
            True if the downstream task was created
        """
        task_created = False
        if not self.dry_run:
            try:
                result = await self._create_task()
                task_created = result.ok
            except Exception as e:
                logger.warning("followup_task_failed", tool_attempted=tool_name, error_type=type(e).__name__)

        logger.warning(
            "firewall_triggered",
            tool_attempted=tool_name,
            task_created=task_created,
            source=source,
            dry_run=self.dry_run,
        )
        await self.audit.record(
            "firewall_triggered",
            tool=tool_name,
            outcome="blocked",
            task_created=task_created,
            source=source,
        )
        return task_created
