"""JSON-RPC 2.0 method table.

Maps JSON-RPC requests onto the dispatcher and the approval coordinator and
turns GatewayError exceptions into JSON-RPC error objects. Transport-agnostic:
the HTTP layer passes the decoded body in and serializes what comes back.

Provides:
- RpcHandler: Dispatches one decoded JSON-RPC request
- rpc_error / rpc_result: Envelope builders
"""

import json
from typing import Any, Awaitable, Callable

import structlog

from gateway import __version__
from gateway.app import Gateway
from gateway.core.errors import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    GatewayError,
    InternalError,
    InvalidParamsError,
)
from gateway.core.proposals import ProposalStatus
from gateway.core.safety.followup import FIREWALL_SOURCES

logger = structlog.get_logger()

DEFAULT_PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "ghl-mcp-gateway"

METHOD_ALIASES = {
    "tools.list": "tools/list",
    "tools.call": "tools/call",
    "tools.approve": "tools/approve",
    "tools.proposals.list": "tools/proposals/list",
    "tools.proposals.get": "tools/proposals/get",
    "firewall.trigger": "firewall/trigger",
}
# Answered even when the jsonrpc member is missing.
LENIENT_METHODS = frozenset({"initialize", "tools/list"})


def rpc_result(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def rpc_error(request_id: Any, code: int, message: str, data: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def text_content(payload: Any) -> dict[str, Any]:
    """Wrap a result as a single JSON text content block."""
    text = json.dumps(payload if payload is not None else {}, indent=2, ensure_ascii=False, default=str)
    return {"content": [{"type": "text", "text": text}]}


def normalize_method(method: Any) -> str | None:
    if not method:
        return None
    name = str(method)
    return METHOD_ALIASES.get(name, name)


class RpcHandler:
    """Executes decoded JSON-RPC requests against a Gateway.

    Args:
        gateway: Wired gateway components
    """

    def __init__(self, gateway: Gateway):
        self.gateway = gateway
        self._methods: dict[str, Callable[[dict[str, Any]], Awaitable[Any]]] = {
            "initialize": self.initialize,
            "tools/list": self.tools_list,
            "tools/call": self.tools_call,
            "tools/approve": self.tools_approve,
            "tools/proposals/list": self.proposals_list,
            "tools/proposals/get": self.proposals_get,
            "firewall/trigger": self.firewall_trigger,
        }

    async def handle(self, body: Any) -> dict[str, Any]:
        """Handle one request body and return the response envelope."""
        if not isinstance(body, dict):
            body = {}

        request_id = body.get("id")
        method = normalize_method(body.get("method"))
        params = body.get("params")
        if not isinstance(params, dict):
            params = {}
        jsonrpc = body.get("jsonrpc")

        log = logger.bind(rpc_method=method or "unknown", has_id=request_id is not None)
        log.info("rpc_request", has_params=bool(params))

        # An empty body is a manifest request.
        if method is None and not body:
            method = "tools/list"

        if method not in LENIENT_METHODS:
            if jsonrpc is not None and jsonrpc != "2.0":
                return rpc_error(request_id, INVALID_REQUEST, 'Invalid Request: jsonrpc must be "2.0"')
            if method is None:
                return rpc_error(request_id, INVALID_REQUEST, "Invalid Request: method is required")
            if jsonrpc is None:
                return rpc_error(request_id, INVALID_REQUEST, "Invalid Request: jsonrpc field is required")

        handler = self._methods.get(method)
        if handler is None:
            log.info("rpc_method_not_found")
            return rpc_error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        try:
            result = await handler(params)
        except GatewayError as e:
            log.info("rpc_error", code=e.code)
            return rpc_error(request_id, e.code, e.message, e.data())
        except Exception as e:
            log.error("rpc_unhandled_error", error_type=type(e).__name__)
            error = InternalError(endpoint=method)
            return rpc_error(request_id, error.code, error.message, error.data())
        return rpc_result(request_id, result)

    async def initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        return {
            "protocolVersion": params.get("protocolVersion") or DEFAULT_PROTOCOL_VERSION,
            "capabilities": {"tools": {}, "prompts": {}, "resources": {}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    async def tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        tools = self.gateway.registry.manifest()
        logger.info("tools_list", tool_count=len(tools))
        return {"tools": tools}

    async def tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments")
        if name is not None and not isinstance(name, str):
            raise InvalidParamsError("Invalid params: tool name must be a string")
        if arguments is not None and not isinstance(arguments, dict):
            raise InvalidParamsError("Invalid params: arguments must be an object")
        result = await self.gateway.dispatcher.dispatch(name, arguments)
        return text_content(result)

    async def tools_approve(self, params: dict[str, Any]) -> dict[str, Any]:
        proposal_id = params.get("proposal_id")
        if not proposal_id or not isinstance(proposal_id, str):
            raise InvalidParamsError("Invalid params: proposal_id required")
        return await self.gateway.coordinator.resolve(proposal_id, params.get("approve") is True)

    async def proposals_list(self, params: dict[str, Any]) -> dict[str, Any]:
        limit = params.get("limit", 20)
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise InvalidParamsError("Invalid params: limit must be a non-negative integer")
        status = params.get("status")
        if status is not None and status not in {s.value for s in ProposalStatus}:
            raise InvalidParamsError("Invalid params: unknown status")
        proposals = await self.gateway.coordinator.list_proposals(limit=limit, status=status)
        return {"proposals": proposals}

    async def proposals_get(self, params: dict[str, Any]) -> dict[str, Any]:
        proposal_id = params.get("proposal_id")
        if not proposal_id or not isinstance(proposal_id, str):
            raise InvalidParamsError("Invalid params: proposal_id required")
        return {"proposal": await self.gateway.coordinator.get_proposal(proposal_id)}

    async def firewall_trigger(self, params: dict[str, Any]) -> dict[str, Any]:
        tool_attempted = params.get("tool_attempted")
        source = params.get("source") or "mcp"
        if not tool_attempted or not isinstance(tool_attempted, str):
            raise InvalidParamsError("Invalid params: tool_attempted required")
        if source not in FIREWALL_SOURCES:
            raise InvalidParamsError("Invalid params: source must be bff or mcp")
        task_created = await self.gateway.followup.trigger(tool_attempted, source=source)
        return {"ok": True, "task_created": task_created}
