"""Tool definitions and the allowlisted registry.

Provides:
- ToolCategory: read/write classification of a tool
- ToolDefinition: Immutable tool metadata plus its async handler
- ToolRegistry: Lookup over the catalog, gated by an independent allowlist
- location_for: Resolve the location a location-scoped handler should use
- pluck: Unwrap the payload key of a downstream response
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Iterable

import structlog
from pydantic import BaseModel, ConfigDict, Field

from gateway.core.errors import ExecutionError, InvalidParamsError, ToolNotFoundError

logger = structlog.get_logger()

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]

DEFAULT_ROLE_ALLOWLIST = ("executive", "recruit", "client")


class ToolCategory(str, Enum):
    """Classification of a tool.

    READ: Executes immediately, no downstream side effects
    WRITE: Must be proposed and approved before it executes
    """

    READ = "read"
    WRITE = "write"


class ToolDefinition(BaseModel):
    """Definition of a tool exposed by the gateway.

    Loaded once at startup and never changed afterwards.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., description="Unique tool identifier")
    description: str = Field(..., description="Human-readable tool description")
    category: ToolCategory = Field(..., description="Read/write classification")
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON schema for tool arguments",
    )
    handler: ToolHandler = Field(..., exclude=True, repr=False)
    http_method: str = "POST"
    endpoint: str = ""
    approval_required: bool | None = None
    dry_run_supported: bool = True
    safe_logging: bool = True
    role_allowlist: tuple[str, ...] = DEFAULT_ROLE_ALLOWLIST

    @property
    def is_write(self) -> bool:
        return self.category is ToolCategory.WRITE

    @property
    def required_fields(self) -> list[str]:
        return list(self.input_schema.get("required") or [])

    def missing_fields(self, arguments: dict[str, Any] | None) -> list[str]:
        """Required keys that are absent, None or the empty string, in schema order."""
        args = arguments or {}
        return [
            key for key in self.required_fields
            if args.get(key) is None or args.get(key) == ""
        ]

    def would_call(self) -> dict[str, str]:
        """Downstream call reported by dry-run validation."""
        return {"method": self.http_method, "endpoint": self.endpoint or self.name}

    async def execute(self, arguments: dict[str, Any] | None) -> Any:
        """Run the handler.

        Validation and execution errors raised without an endpoint tag are
        tagged with the tool name before they propagate.
        """
        try:
            return await self.handler(dict(arguments or {}))
        except InvalidParamsError as e:
            if e.endpoint is None:
                e.endpoint = self.name
            raise
        except ExecutionError as e:
            if not e.endpoint:
                e.endpoint = self.name
            raise

    def to_manifest(self) -> dict[str, Any]:
        """Manifest entry as returned by tools/list."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "readWrite": self.category.value,
            "approval_required": (
                self.is_write if self.approval_required is None else self.approval_required
            ),
            "dry_run_supported": self.dry_run_supported,
            "safe_logging": self.safe_logging,
            "role_allowlist": list(self.role_allowlist),
        }


class ToolRegistry:
    """Static catalog of tools plus an independent allowlist.

    A tool is available only when it is both allowlisted and present in the
    catalog. The allowlist is consulted first, so a catalog entry that is not
    allowlisted is never reachable.

    Args:
        definitions: Catalog entries
        allowlist: Names that may be exposed
    """

    def __init__(self, definitions: Iterable[ToolDefinition], allowlist: Iterable[str]):
        self._tools: dict[str, ToolDefinition] = {}
        for tool in definitions:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool
        self.allowlist = frozenset(allowlist)

        hidden = sorted(set(self._tools) - self.allowlist)
        if hidden:
            logger.info("tools_not_allowlisted", tools=hidden)

    def __contains__(self, name: object) -> bool:
        return name in self.allowlist and name in self._tools

    def lookup(self, name: str) -> ToolDefinition:
        """Return the tool, or raise ToolNotFoundError.

        Raises:
            ToolNotFoundError: Name not allowlisted or not in the catalog
        """
        if name not in self.allowlist:
            raise ToolNotFoundError(
                name, f"Tool not available: {name} is not in the allowed tool catalog"
            )
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name, f"Unknown tool: {name}")
        return tool

    def available(self) -> list[ToolDefinition]:
        """Allowlisted tools in catalog order."""
        return [tool for name, tool in self._tools.items() if name in self.allowlist]

    def manifest(self) -> list[dict[str, Any]]:
        return [tool.to_manifest() for tool in self.available()]


def pluck(data: Any, key: str, default: Any = None) -> Any:
    """``data[key]`` when present and truthy, else ``data`` itself, else ``default``."""
    if isinstance(data, dict) and data.get(key):
        return data[key]
    return data or default


def location_for(client: Any, arguments: dict[str, Any]) -> str:
    """Location from the arguments, else the client's configured default.

    Raises:
        InvalidParamsError: Neither is set
    """
    location_id = arguments.get("locationId") or getattr(client, "location_id", "")
    if not location_id:
        raise InvalidParamsError("locationId is required")
    return location_id
