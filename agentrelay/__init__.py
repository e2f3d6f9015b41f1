"""
agentrelay: multi-agent LLM orchestration with tool calls, handoffs and MCP tools.
"""

from agentrelay.agent import AgentRunner, AgentTool, Orchestrator
from agentrelay.app import RelayApp
from agentrelay.context import FileStore, RunContext
from agentrelay.llm import LLMConfig, ModelTier, resolve_model
from agentrelay.models import AgentSession, RunResult, TerminationReason
from agentrelay.profiles import AgentCatalog, AgentDefinition, HandoffConfig, HandoffTrigger, load_builtin_profiles
from agentrelay.tools import FunctionTool, ToolRegistry, function_tool
from agentrelay.utils import RelayConfig, resolve_config

__version__ = "0.1.0"

__all__ = [
    "AgentRunner",
    "AgentTool",
    "Orchestrator",
    "RelayApp",
    "FileStore",
    "RunContext",
    "LLMConfig",
    "ModelTier",
    "resolve_model",
    "AgentSession",
    "RunResult",
    "TerminationReason",
    "AgentCatalog",
    "AgentDefinition",
    "HandoffConfig",
    "HandoffTrigger",
    "load_builtin_profiles",
    "FunctionTool",
    "ToolRegistry",
    "function_tool",
    "RelayConfig",
    "resolve_config",
]
