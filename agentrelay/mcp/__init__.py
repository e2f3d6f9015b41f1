from agentrelay.mcp.manager import (
    SERVER_TYPE_MAP,
    ConnectionEvent,
    MCPConfigurationError,
    MCPConnectionError,
    MCPManager,
    MCPManagerSession,
    MCPRegistry,
    MCPServerSpec,
    RetryPolicy,
    categorize_error,
)
from agentrelay.mcp.tools import MCPToolAdapter, namespaced_name, register_mcp_tools, smart_name

__all__ = [
    "SERVER_TYPE_MAP",
    "ConnectionEvent",
    "MCPConfigurationError",
    "MCPConnectionError",
    "MCPManager",
    "MCPManagerSession",
    "MCPRegistry",
    "MCPServerSpec",
    "RetryPolicy",
    "categorize_error",
    "MCPToolAdapter",
    "namespaced_name",
    "register_mcp_tools",
    "smart_name",
]
