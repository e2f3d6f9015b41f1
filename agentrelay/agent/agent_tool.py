"""Expose agent definitions as ordinary tools so agents can call agents."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from loguru import logger

from agentrelay.context.run_context import RunContext, get_current_session
from agentrelay.profiles.base import AgentDefinition
from agentrelay.tools.base import BaseTool

if TYPE_CHECKING:
    from agentrelay.agent.runner import AgentRunner
    from agentrelay.tools.registry import ToolRegistry


class AgentTool(BaseTool):
    """Runs a sub-agent as a tool call of the calling agent.

    The sub-agent's session is attached to the caller's session as a nested
    session. Its result is returned as ``{"success", "output"|"error",
    "terminationReason"}`` so failures reach the caller's model as tool errors.
    """

    # Sub-agents are bounded by their own iteration and LLM limits.
    timeout: Optional[float] = None

    def __init__(self, definition: AgentDefinition, runner: "AgentRunner"):
        self.definition = definition
        self.runner = runner
        self.name = definition.name
        self.description = definition.description
        self.schema = definition.args_schema

    async def execute(self, args: Dict[str, Any], context: RunContext) -> Any:
        parent = get_current_session()
        logger.debug(f"Calling sub-agent {self.name} from {parent.agent_name if parent else 'top level'}")
        result = await self.runner.run(
            self.definition,
            args=args,
            context=context,
            parent_session=parent,
        )

        payload: Dict[str, Any] = {
            "success": result.success,
            "terminationReason": result.termination_reason.value,
        }
        if result.success:
            output = result.output
            payload["output"] = output.model_dump() if hasattr(output, "model_dump") else output
        else:
            payload["error"] = result.error
        if result.summary is not None:
            payload["summary"] = result.summary.content
        return payload


def register_agent_tools(
    registry: "ToolRegistry",
    runner: "AgentRunner",
    definitions: Iterable[AgentDefinition],
) -> List[str]:
    """Register each definition as an ``AgentTool``; returns the registered names."""
    names = []
    for definition in definitions:
        registry.register(definition.name, lambda d=definition: AgentTool(d, runner))
        names.append(definition.name)
    return names
