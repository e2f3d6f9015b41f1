"""
Agent execution: the runner loop, handoffs, sub-agent tools, descriptors,
tracing and conversation orchestration.
"""

from agentrelay.agent.descriptor import AgentDescriptor, AgentDescriptorRegistry, build_descriptor
from agentrelay.agent.handoff import HandoffTargetMissingError, curate_handoff_transcript
from agentrelay.agent.tracker import AgentsTracer, SafeTracer, Tracer
from agentrelay.agent.runner import AgentRunner, HandoffDepthError
from agentrelay.agent.agent_tool import AgentTool, register_agent_tools
from agentrelay.agent.orchestrator import Orchestrator

__all__ = [
    "AgentDescriptor",
    "AgentDescriptorRegistry",
    "build_descriptor",
    "HandoffTargetMissingError",
    "curate_handoff_transcript",
    "AgentsTracer",
    "SafeTracer",
    "Tracer",
    "AgentRunner",
    "HandoffDepthError",
    "AgentTool",
    "register_agent_tools",
    "Orchestrator",
]
