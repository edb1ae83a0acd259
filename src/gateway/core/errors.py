"""Error taxonomy for the gateway.

Every call path through the dispatcher ends in one of five outcome kinds:
validation errors, policy blocks (not an exception, see safety.firewall),
lifecycle errors, execution errors, and internal errors. Each exception class
carries the JSON-RPC error code it is reported with.

Provides:
- GatewayError: Base class with JSON-RPC code and safe error data
- InvalidParamsError / MissingFieldsError / ToolNotFoundError: Validation errors
- ProposalNotFoundError: Lifecycle error
- ExecutionError: Downstream failure during tool execution
- InternalError: Unexpected failure caught at the dispatch boundary
"""

from typing import Any

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
SERVER_ERROR = -32000
UPSTREAM_AUTH_ERROR = -32001

# Upstream bodies are forwarded to callers only for these endpoints.
DIAGNOSTIC_ENDPOINTS = frozenset({"/conversations/reports"})


class GatewayError(Exception):
    """Base class for all errors reported to gateway callers."""

    code: int = SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def data(self) -> dict[str, Any] | None:
        """Safe error data for the JSON-RPC error object."""
        return None


class InvalidParamsError(GatewayError):
    """Caller supplied missing or malformed parameters."""

    code = INVALID_PARAMS

    def __init__(self, message: str, endpoint: str | None = None):
        super().__init__(message)
        self.endpoint = endpoint

    def data(self) -> dict[str, Any] | None:
        if self.endpoint is None:
            return None
        return {"status": 400, "endpoint": self.endpoint}


class MissingFieldsError(InvalidParamsError):
    """Required fields of a write tool were missing, null or empty.

    Names every missing field, not only the first one.
    """

    def __init__(self, tool_name: str, fields: list[str]):
        super().__init__(f"Missing required fields: {', '.join(fields)}", endpoint=tool_name)
        self.fields = list(fields)


class ToolNotFoundError(GatewayError):
    """Tool is unknown, not allowlisted, or no longer available."""

    def __init__(self, tool_name: str, message: str | None = None):
        super().__init__(message or f"Tool not available: {tool_name}")
        self.tool_name = tool_name

    def data(self) -> dict[str, Any]:
        return {"status": 404, "endpoint": self.tool_name}


class ProposalNotFoundError(GatewayError):
    """Proposal is unknown, already resolved, or expired and swept."""

    def __init__(self, proposal_id: str):
        super().__init__("Proposal not found or expired")
        self.proposal_id = proposal_id

    def data(self) -> dict[str, Any]:
        return {"proposal_id": self.proposal_id}


class ExecutionError(GatewayError):
    """Downstream call failed while executing a tool.

    Only a coarse status and the endpoint tag are exposed to callers. The
    upstream response body is kept for the narrowly allow-listed diagnostic
    endpoints and dropped everywhere else.
    """

    def __init__(
        self,
        message: str,
        status: int = 500,
        endpoint: str = "",
        response: Any = None,
    ):
        super().__init__(message)
        self.status = status
        self.endpoint = endpoint
        self.response = response
        self.proposal_id: str | None = None
        if status in (401, 403):
            self.code = UPSTREAM_AUTH_ERROR
        elif status == 400:
            self.code = INVALID_PARAMS

    def data(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status, "endpoint": self.endpoint}
        if self.endpoint in DIAGNOSTIC_ENDPOINTS and self.response is not None:
            data["response"] = self.response
        if self.proposal_id:
            data["proposal_id"] = self.proposal_id
        return data


class InternalError(GatewayError):
    """Unexpected exception caught at the dispatch or resolution boundary."""

    def __init__(self, endpoint: str = ""):
        super().__init__("Internal server error")
        self.endpoint = endpoint

    def data(self) -> dict[str, Any]:
        return {"status": 500, "endpoint": self.endpoint}
