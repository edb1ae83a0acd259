"""Single entry point for tool calls.

Every tool call goes through ``Dispatcher.dispatch``, which enforces the
order: tool lookup, content firewall, then either direct execution (read
tools) or validation and proposal (write tools).

Provides:
- Dispatcher: Routes tool calls through the safety layer
"""

from typing import Any

import structlog

from gateway.core.errors import GatewayError, InternalError, InvalidParamsError, MissingFieldsError
from gateway.core.safety.approval import ApprovalCoordinator
from gateway.core.safety.firewall import ContentScanner, PatternScanner
from gateway.core.safety.followup import FollowupScheduler, build_blocked_response
from gateway.core.safety.risk import should_require_approval
from gateway.tools.base import ToolRegistry

logger = structlog.get_logger()


class Dispatcher:
    """Routes tool calls to the approval workflow or straight to handlers.

    Args:
        registry: Allowlisted tool registry
        coordinator: Approval coordinator for write tools
        followup: Follow-up scheduler for blocked payloads
        scanner: Content scanner (PatternScanner by default)
        dry_run: Validate write tools and report the call instead of proposing
    """

    def __init__(
        self,
        registry: ToolRegistry,
        coordinator: ApprovalCoordinator,
        followup: FollowupScheduler,
        scanner: ContentScanner | None = None,
        dry_run: bool = False,
    ):
        self.registry = registry
        self.coordinator = coordinator
        self.followup = followup
        self.scanner = scanner or PatternScanner()
        self.dry_run = dry_run

    async def dispatch(self, tool_name: str | None, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """Run one tool call through the safety layer.

        Args:
            tool_name: Requested tool
            arguments: Caller arguments (None is treated as empty)

        Returns:
            The read tool's result, the proposal projection, the dry-run
            validation shape, or the blocked result

        Raises:
            InvalidParamsError: Missing tool name or bad arguments
            MissingFieldsError: Write tool missing required fields
            ToolNotFoundError: Tool not allowlisted or not in the catalog
            ExecutionError: Read tool failed downstream
            InternalError: Unexpected failure while executing a read tool
        """
        if not tool_name:
            raise InvalidParamsError("Invalid params: tool name required")

        args = arguments if isinstance(arguments, dict) else {}
        log = logger.bind(tool=tool_name)
        log.info("tools_call", arg_keys=sorted(args))

        tool = self.registry.lookup(tool_name)

        verdict = self.scanner.scan(args)
        if verdict.blocked:
            log.warning("payload_blocked", rule=verdict.reason)
            task_created = await self.followup.trigger(tool_name, source="mcp")
            return build_blocked_response(task_created)

        if not should_require_approval(tool):
            try:
                return await tool.execute(args)
            except GatewayError:
                raise
            except Exception as e:
                log.error("tool_execution_failed", error_type=type(e).__name__)
                raise InternalError(endpoint=tool_name) from e

        missing = tool.missing_fields(args)
        if missing:
            raise MissingFieldsError(tool_name, missing)

        if self.dry_run:
            log.info("dry_run_validated")
            return {"dryRun": True, "validated": True, "wouldCall": tool.would_call()}

        receipt = await self.coordinator.propose(tool_name, args)
        return receipt.projection
