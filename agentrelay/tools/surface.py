"""Choose which MCP tools are offered to an agent for a run."""

from __future__ import annotations

import asyncio
from typing import Callable, Iterable, List, Optional

from loguru import logger

from agentrelay.context.run_context import RunContext
from agentrelay.llm.client import LLMClient, LLMRequest
from agentrelay.llm.llm_setup import ModelTier, ModelTiers, resolve_model, tiers_for_context
from agentrelay.models.messages import UserMessage
from agentrelay.tools.registry import ToolRegistry
from agentrelay.utils.parsers import parse_json_output

ROUTER_PROMPT = (
    "You select tools for an AI agent. Given the user's request and a catalog of tools, "
    "reply with a JSON array containing the names of the most relevant tools, best first. "
    "Reply with the JSON array only."
)


def uniq_by_name(names: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for name in names:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result


class ToolSurfaceProvider:
    """Appends MCP tools to an agent's own tools.

    Modes:
        ``all``: every registered MCP tool.
        ``router``: a small model picks up to ``max_mcp_per_turn`` tools for
            the request; any failure falls back to the first tools in
            registration order. The router call is bounded by ``timeout`` seconds. A previous selection is reused as is.

    The result is de-duplicated and capped at ``max_tools_per_turn``; the
    agent's own tools always come first.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        mcp_tool_names: Callable[[], List[str]],
        mode: str = "all",
        llm: Optional[LLMClient] = None,
        tiers: Optional[ModelTiers] = None,
        max_tools_per_turn: int = 20,
        max_mcp_per_turn: int = 8,
        enabled: bool = True,
        timeout: Optional[float] = 30.0,
    ):
        if mode not in ("all", "router"):
            raise ValueError(f"Unknown tool mode: {mode}")
        self.registry = registry
        self.mcp_tool_names = mcp_tool_names
        self.mode = mode
        self.llm = llm
        self.tiers = tiers or ModelTiers()
        self.max_tools_per_turn = max_tools_per_turn
        self.max_mcp_per_turn = max_mcp_per_turn
        self.enabled = enabled
        self.timeout = timeout

    async def select(
        self,
        base_tools: List[str],
        query: str = "",
        context: Optional[RunContext] = None,
        previous: Optional[List[str]] = None,
    ) -> List[str]:
        if not self.enabled:
            return list(base_tools)

        available = self.mcp_tool_names()
        if not available:
            return list(base_tools)

        if previous is not None:
            chosen = [name for name in previous if name in available]
        elif self.mode == "all":
            chosen = list(available)
        else:
            chosen = await self._route(query, available, context)

        return uniq_by_name([*base_tools, *chosen])[: self.max_tools_per_turn]

    async def _route(self, query: str, available: List[str], context: Optional[RunContext]) -> List[str]:
        limit = self.max_mcp_per_turn
        if self.llm is None or len(available) <= limit or (context is not None and context.cancelled):
            return available[:limit]

        catalog_lines = []
        for name in available:
            tool = self.registry.get_registered_tool(name)
            description = (tool.description if tool else "")[:200]
            catalog_lines.append(f"- {name}: {description}")
        prompt = f"User request:\n{query}\n\nTools:\n" + "\n".join(catalog_lines) + f"\n\nSelect at most {limit} tools."

        try:
            model = resolve_model(ModelTier.MINI, tiers_for_context(self.tiers, context))
            request = LLMRequest(
                model=model,
                system_prompt=ROUTER_PROMPT,
                messages=[UserMessage(text=prompt)],
                temperature=0.0,
            )
            response = await asyncio.wait_for(self.llm.call(request), self.timeout)
            picked = parse_json_output(response.text or "")
        except asyncio.TimeoutError:
            logger.warning(f"Tool router timed out after {self.timeout}s, falling back to the first {limit} MCP tools")
            return available[:limit]
        except Exception as exc:
            logger.warning(f"Tool router failed, falling back to the first {limit} MCP tools: {exc}")
            return available[:limit]

        if not isinstance(picked, list):
            logger.warning("Tool router returned a non-list; falling back")
            return available[:limit]

        chosen = uniq_by_name(name for name in picked if isinstance(name, str) and name in available)[:limit]
        for name in available:
            if len(chosen) >= limit:
                break
            if name not in chosen:
                chosen.append(name)
        logger.debug(f"Tool router selected {chosen}")
        return chosen
