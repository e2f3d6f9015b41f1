"""Conversation-level orchestration: pick the agent for a user turn and run it."""

from __future__ import annotations

from typing import Dict, List, Optional

from loguru import logger

from agentrelay.agent.runner import AgentRunner
from agentrelay.context.run_context import RunContext
from agentrelay.models.messages import ErrorMessage, Message, ModelTextMessage, UserMessage
from agentrelay.models.session import AgentSession, RunResult
from agentrelay.profiles.base import AgentCatalog, AgentDefinition, UnknownAgentError


class Orchestrator:
    """Owns the user-facing transcript of one conversation.

    Each user turn is routed to an agent (explicit name, then a route keyed
    by agent type, then the default agent), run to completion, and its final
    output or error is appended to the conversation. Handoffs inside the run
    are already substituted into the returned result.
    """

    def __init__(
        self,
        runner: AgentRunner,
        catalog: AgentCatalog,
        default_agent: str,
        routes: Optional[Dict[str, str]] = None,
    ):
        self.runner = runner
        self.catalog = catalog
        self.default_agent = default_agent
        self.routes = dict(routes or {})
        self.messages: List[Message] = []
        self.sessions: List[AgentSession] = []

    def select_agent(self, agent_name: Optional[str] = None, agent_type: Optional[str] = None) -> AgentDefinition:
        """Resolve the agent for a turn.

        Raises:
            UnknownAgentError: if the chosen name is not in the catalog.
        """
        if agent_name:
            return self.catalog.require(agent_name)
        if agent_type:
            routed = self.routes.get(agent_type)
            if routed:
                return self.catalog.require(routed)
            if agent_type in self.catalog:
                return self.catalog.require(agent_type)
            logger.debug(f"No route for agent type '{agent_type}'; using {self.default_agent}")
        return self.catalog.require(self.default_agent)

    async def handle_turn(
        self,
        text: str,
        agent_name: Optional[str] = None,
        agent_type: Optional[str] = None,
        context: Optional[RunContext] = None,
    ) -> RunResult:
        """Run one user turn and record it in the conversation transcript."""
        definition = self.select_agent(agent_name, agent_type)
        self.messages.append(UserMessage(text=text))
        logger.info(f"Routing turn to {definition.name}")

        result = await self.runner.run(definition, args={"query": text}, context=context)
        if result.session is not None:
            self.sessions.append(result.session)

        if result.success:
            self.messages.append(ModelTextMessage(text=result.text))
        else:
            self.messages.append(ErrorMessage(error=result.error or "Agent run failed"))
        return result

    def reset(self) -> None:
        self.messages.clear()
        self.sessions.clear()


__all__ = ["Orchestrator", "UnknownAgentError"]
