"""Expose tools of connected MCP servers through the tool registry."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional

from loguru import logger

from agentrelay.context.run_context import RunContext
from agentrelay.tools.base import BaseTool
from agentrelay.tools.registry import ToolRegistry

MCP_PREFIX = "mcp"


def namespaced_name(server_id: str, tool_name: str) -> str:
    return f"{MCP_PREFIX}:{server_id}:{tool_name}"


class MCPToolAdapter(BaseTool):
    """Wraps one tool of one MCP server.

    ``name`` is the smart name the tool is registered under; calls are
    forwarded to the server with the tool's own name.
    """

    timeout: Optional[float] = None

    def __init__(self, server_id: str, server: Any, tool_def: Any, name: Optional[str] = None):
        self.server_id = server_id
        self.server = server
        self.tool_name = tool_def.name
        self.name = name or tool_def.name
        self.description = getattr(tool_def, "description", None) or f"{tool_def.name} ({server_id})"
        self.schema = dict(getattr(tool_def, "inputSchema", None) or {"type": "object", "properties": {}})

    @property
    def namespaced_name(self) -> str:
        return namespaced_name(self.server_id, self.tool_name)

    async def execute(self, args: Dict[str, Any], context: RunContext) -> Any:
        try:
            result = await self.server.call_tool(self.tool_name, args or {})
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning(f"MCP tool {self.namespaced_name} failed: {exc}")
            return {"error": f"MCP tool {self.namespaced_name} failed: {exc}"}

        texts = [item.text for item in (getattr(result, "content", None) or []) if getattr(item, "text", None)]
        if getattr(result, "isError", False):
            return {"error": "\n".join(texts) or f"MCP tool {self.namespaced_name} reported an error"}

        payload: Dict[str, Any] = {"content": "\n".join(texts)}
        structured = getattr(result, "structuredContent", None)
        if structured:
            payload["structured"] = structured
        return payload


def _allowed(server_id: str, tool_name: str, smart_name: str, allowlist: Optional[Iterable[str]]) -> bool:
    if not allowlist:
        return True
    allowed = set(allowlist)
    return bool({namespaced_name(server_id, tool_name), tool_name, smart_name} & allowed)


def smart_name(tool_name: str, taken: Iterable[str]) -> str:
    """Bare tool name, or ``name_2``, ``name_3``... when it is already taken."""
    taken = set(taken)
    if tool_name not in taken:
        return tool_name
    index = 2
    while f"{tool_name}_{index}" in taken:
        index += 1
    return f"{tool_name}_{index}"


def register_mcp_tools(
    registry: ToolRegistry,
    servers: Mapping[str, Any],
    tools_by_server: Mapping[str, List[Any]],
    allowlist: Optional[Iterable[str]] = None,
) -> List[str]:
    """Register MCP tools under smart names, in server order.

    The first tool with a given name keeps the bare name (unless a built-in
    already owns it); later ones get a numeric suffix. Each tool also
    answers to ``mcp:<server>:<tool>``.

    Returns:
        The registered smart names.
    """
    allowlist = list(allowlist or [])
    registered: List[str] = []
    for server_id, tool_defs in tools_by_server.items():
        server = servers.get(server_id)
        if server is None:
            logger.warning(f"MCP server '{server_id}' is not connected; skipping its tools")
            continue
        for tool_def in tool_defs:
            name = smart_name(tool_def.name, registry.names())
            if not _allowed(server_id, tool_def.name, name, allowlist):
                continue
            adapter = MCPToolAdapter(server_id, server, tool_def, name=name)
            if registry.register_instance(adapter, aliases=[adapter.namespaced_name]) is not None:
                registered.append(name)
    logger.info(f"Registered {len(registered)} MCP tools")
    return registered
