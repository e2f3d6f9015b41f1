from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Type, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from agentrelay.llm.llm_setup import ModelTier
from agentrelay.models.messages import Message, UserMessage

DEFAULT_AGENT_VERSION = "2025-09-17"
HANDOFF_TOOL_PREFIX = "handoff_to_"


class HandoffTrigger(str, Enum):
    ON_TOOL_CALL = "on_tool_call"
    ON_MAX_ITERATIONS = "on_max_iterations"


class HandoffConfig(BaseModel):
    """Transfer of control from one agent to another."""

    model_config = ConfigDict(frozen=True)

    target_agent_name: str
    trigger: HandoffTrigger = HandoffTrigger.ON_TOOL_CALL
    include_tool_results: Optional[List[str]] = Field(
        default=None,
        description="Tool names whose results are copied into the target's transcript; None copies all",
    )
    description: Optional[str] = None

    @property
    def tool_name(self) -> str:
        """Name of the tool the LLM calls to trigger this handoff."""
        return f"{HANDOFF_TOOL_PREFIX}{self.target_agent_name}"

    def tool_schema(self) -> Dict[str, Any]:
        description = self.description or (
            f"Hand off the task to the {self.target_agent_name}. "
            "Call this once you have gathered what the next agent needs."
        )
        return {
            "type": "function",
            "function": {
                "name": self.tool_name,
                "description": description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "description": "Task for the receiving agent"},
                        "reasoning": {"type": "string", "description": "Why the handoff happens now"},
                    },
                    "required": ["query"],
                },
            },
        }


PrepareMessages = Callable[[Dict[str, Any], "AgentDefinition"], List[Message]]
Salvage = Callable[[List[Message]], Optional[str]]


def default_prepare_messages(args: Dict[str, Any], definition: "AgentDefinition") -> List[Message]:
    """Single user message built from the call arguments."""
    text = args.get("query") or args.get("task") or args.get("instruction") or ""
    reasoning = args.get("reasoning")
    if reasoning:
        text = f"{text}\n\nReasoning: {reasoning}" if text else f"Reasoning: {reasoning}"
    if not text:
        text = str(args) if args else ""
    return [UserMessage(text=text)]


DEFAULT_ARGS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "query": {"type": "string", "description": "The task for the agent"},
        "reasoning": {"type": "string", "description": "Why this agent is being called"},
    },
    "required": ["query"],
}


class AgentDefinition(BaseModel):
    """Immutable description of an agent.

    Definitions are plain data: the runner interprets them, and the same
    definition may be used by any number of concurrent runs.
    """

    name: str = Field(description="Unique agent name, also used when the agent is exposed as a tool")
    description: str = Field(default="", description="What the agent does; shown to calling agents")
    instructions: str = Field(default="", description="The agent's system prompt")
    tools: List[str] = Field(default_factory=list, description="Ordered tool names the agent may call")
    handoffs: List[HandoffConfig] = Field(default_factory=list)
    max_iterations: int = Field(default=10, gt=0)
    temperature: float = 0.0
    model: Optional[Union[ModelTier, str]] = Field(
        default=None,
        description="Explicit model name, or a tier resolved against the configured models",
    )
    args_schema: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_ARGS_SCHEMA))
    output_schema: Optional[Type[BaseModel]] = Field(
        default=None,
        description="Pydantic model the final answer must validate against",
    )
    version: str = DEFAULT_AGENT_VERSION
    include_mcp_tools: bool = False
    include_intermediate_steps: bool = False
    include_summary: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)

    prepare_messages: Optional[PrepareMessages] = None
    salvage: Optional[Salvage] = None
    before_execute: Optional[Callable[..., Any]] = None
    after_execute: Optional[Callable[..., Any]] = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, protected_namespaces=())

    @field_validator("tools")
    @classmethod
    def _dedupe_tools(cls, tools: List[str]) -> List[str]:
        seen: Dict[str, None] = {}
        for tool in tools:
            seen.setdefault(tool, None)
        return list(seen)

    def handoff_for_tool(self, tool_name: str) -> Optional[HandoffConfig]:
        """The ``on_tool_call`` handoff triggered by ``tool_name``, if any."""
        for handoff in self.handoffs:
            if handoff.trigger == HandoffTrigger.ON_TOOL_CALL and handoff.tool_name == tool_name:
                return handoff
        return None

    def is_handoff_trigger(self, tool_name: str) -> bool:
        return self.handoff_for_tool(tool_name) is not None

    def max_iterations_handoff(self) -> Optional[HandoffConfig]:
        for handoff in self.handoffs:
            if handoff.trigger == HandoffTrigger.ON_MAX_ITERATIONS:
                return handoff
        return None

    def handoff_tool_schemas(self) -> List[Dict[str, Any]]:
        return [h.tool_schema() for h in self.handoffs if h.trigger == HandoffTrigger.ON_TOOL_CALL]

    def initial_messages(self, args: Dict[str, Any]) -> List[Message]:
        prepare = self.prepare_messages or default_prepare_messages
        return list(prepare(args, self))

    def with_overrides(self, **changes: Any) -> "AgentDefinition":
        """Copy of this definition with ``changes`` applied (``None`` values ignored)."""
        updates = {k: v for k, v in changes.items() if v is not None}
        if not updates:
            return self
        return self.model_validate({**self.__dict__, **updates})


AgentDefinition.model_rebuild()


class UnknownAgentError(KeyError):
    """Raised when an agent name is not present in the catalog."""

    def __str__(self) -> str:
        return f"Unknown agent: {self.args[0]}"


class AgentCatalog:
    """Name -> AgentDefinition lookup used by the runner and orchestrator."""

    def __init__(self, definitions: Optional[Iterable[AgentDefinition]] = None):
        self._definitions: Dict[str, AgentDefinition] = {}
        for definition in definitions or ():
            self.register(definition)

    def register(self, definition: AgentDefinition) -> None:
        if definition.name in self._definitions:
            logger.warning(f"Agent '{definition.name}' is already registered; overwriting")
        self._definitions[definition.name] = definition

    def get(self, name: str) -> Optional[AgentDefinition]:
        return self._definitions.get(name)

    def require(self, name: str) -> AgentDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise UnknownAgentError(name) from None

    def names(self) -> List[str]:
        return list(self._definitions)

    def __contains__(self, name: str) -> bool:
        return name in self._definitions

    def __iter__(self):
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)
