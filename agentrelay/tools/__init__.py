"""
Tools: the tool contract, the registry and name resolution, tool surface
selection and the built-in session file tools.
"""

from agentrelay.tools.base import (
    BaseTool,
    FunctionTool,
    Tool,
    error_result,
    function_tool,
    is_error_result,
    tool_schema_for_llm,
)
from agentrelay.tools.names import ToolNameMap, sanitize_tool_name
from agentrelay.tools.registry import ToolRegistry
from agentrelay.tools.file_tools import FILE_TOOL_CLASSES, TODO_FILE_NAME, register_file_tools
from agentrelay.tools.surface import ToolSurfaceProvider

__all__ = [
    "BaseTool",
    "FunctionTool",
    "Tool",
    "error_result",
    "function_tool",
    "is_error_result",
    "tool_schema_for_llm",
    "ToolNameMap",
    "sanitize_tool_name",
    "ToolRegistry",
    "FILE_TOOL_CLASSES",
    "TODO_FILE_NAME",
    "register_file_tools",
    "ToolSurfaceProvider",
]
