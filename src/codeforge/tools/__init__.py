from codeforge.tools.tool_bus import ToolBus
from codeforge.tools.tool_registry import ToolRegistry
from codeforge.tools.types import ToolCall, ToolOutcome, ToolResult, ToolSchema

__all__ = ["ToolBus", "ToolRegistry", "ToolCall", "ToolOutcome", "ToolResult", "ToolSchema"]
