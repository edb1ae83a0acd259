"""Tool catalog, registry and downstream client."""

from .base import DEFAULT_ROLE_ALLOWLIST, ToolCategory, ToolDefinition, ToolRegistry
from .catalog import ALLOWED_TOOLS, build_catalog, build_registry
from .client import ApiResponse, CrmClient

__all__ = [
    "ALLOWED_TOOLS",
    "ApiResponse",
    "CrmClient",
    "DEFAULT_ROLE_ALLOWLIST",
    "ToolCategory",
    "ToolDefinition",
    "ToolRegistry",
    "build_catalog",
    "build_registry",
]
