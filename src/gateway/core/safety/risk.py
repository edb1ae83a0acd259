"""Category-based execution control.

Whether a tool call needs approval is a property of the tool definition, not
something decided at runtime from the arguments.

Provides:
- should_require_approval: Check if a tool must be proposed before it runs
- get_category_description: Human-readable category description
"""

from gateway.tools.base import ToolCategory, ToolDefinition


def should_require_approval(tool: ToolDefinition) -> bool:
    """Determine if a tool call must go through propose/approve.

    READ tools: execute immediately
    WRITE tools: proposed, then executed only after approval

    Args:
        tool: Tool definition with a category attribute

    Returns:
        True if approval is required
    """
    return tool.category is ToolCategory.WRITE


def get_category_description(category: ToolCategory) -> str:
    """Describe a category for CLI listings and manifests."""
    descriptions = {
        ToolCategory.READ: "Read-only lookup, executes immediately",
        ToolCategory.WRITE: "Changes downstream state, requires approval",
    }
    return descriptions.get(category, "Unknown category")
