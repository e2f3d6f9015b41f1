"""Handoff transcript curation and result splicing."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from agentrelay.models.messages import (
    Message,
    ModelToolCallMessage,
    ToolResultMessage,
    first_user_message,
)
from agentrelay.models.session import RunResult, TerminationReason
from agentrelay.profiles.base import HandoffConfig


class HandoffTargetMissingError(LookupError):
    """Raised when a handoff names an agent that is not in the catalog."""

    def __init__(self, source: str, target: str):
        self.source = source
        self.target = target
        super().__init__(f"Handoff target '{target}' requested by '{source}' is not registered")


def curate_handoff_transcript(messages: Sequence[Message], handoff: HandoffConfig) -> List[Message]:
    """Initial transcript for the receiving agent.

    Contains the parent's original user request, then the parent's tool
    results (all of them, or only those whose tool name is listed in
    ``include_tool_results``). The handoff query reaches the receiving agent
    through its call arguments, not the transcript.
    """
    curated: List[Message] = []
    original = first_user_message(list(messages))
    if original is not None:
        curated.append(original)

    allowed = set(handoff.include_tool_results) if handoff.include_tool_results is not None else None
    for message in messages:
        if not isinstance(message, ToolResultMessage):
            continue
        if message.tool_name.startswith("handoff_to_"):
            continue
        if allowed is None or message.tool_name in allowed:
            curated.append(message)

    return curated


def handoff_result_message(
    call: Optional[ModelToolCallMessage],
    target: str,
    child: RunResult,
) -> ToolResultMessage:
    """Synthetic tool result carrying the child's outcome back to the parent transcript."""
    payload: Dict[str, Any] = {
        "handoff": target,
        "success": child.success,
        "termination_reason": child.termination_reason.value,
    }
    if child.success:
        payload["output"] = child.output.model_dump() if hasattr(child.output, "model_dump") else child.output
    else:
        payload["error"] = child.error
    tool_name = call.tool_name if call is not None else f"handoff_to_{target}"
    tool_call_id = call.tool_call_id if call is not None else f"handoff_{target}"
    return ToolResultMessage(
        tool_call_id=tool_call_id,
        tool_name=tool_name,
        result_data=payload,
        is_error=not child.success,
    )


def substitute_result(child: RunResult, intermediate_steps: Optional[List[Message]] = None) -> RunResult:
    """The parent's terminal result after a handoff: the child's outcome, tagged ``handed_off``."""
    return RunResult(
        success=child.success,
        output=child.output,
        error=child.error,
        termination_reason=TerminationReason.HANDED_OFF,
        summary=child.summary,
        intermediate_steps=intermediate_steps,
    )
