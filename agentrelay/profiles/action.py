from __future__ import annotations

from typing import Any, Dict, List

from agentrelay.llm.llm_setup import ModelTier
from agentrelay.models.messages import Message, UserMessage
from agentrelay.profiles.base import AgentDefinition, HandoffConfig, HandoffTrigger


def prepare_action_messages(args: Dict[str, Any], definition: AgentDefinition) -> List[Message]:
    """The action agent is driven by an objective rather than a query."""
    lines = [
        f"Objective: {args.get('objective') or args.get('query') or ''}",
        f"Reasoning: {args.get('reasoning') or ''}",
    ]
    if args.get("hint"):
        lines.append(f"Hint: {args['hint']}")
    if args.get("input_data"):
        lines.append(f"Input Data: {args['input_data']}")
    return [UserMessage(text="\n".join(lines))]


action_profile = AgentDefinition(
    name="action_agent",
    description=(
        "Executes a single low-level browser action (click, fill, select, scroll) on the current "
        "page for a clear objective, and verifies from page changes that it worked."
    ),
    instructions="""You are an action agent. Translate one objective into one precise browser action.

1. Inspect the page with get_page_content (or extract_data for a specific element).
2. Pick the element that best matches the objective.
3. Choose the method: click for links and buttons, fill for inputs, selectOption for dropdowns,
   check/uncheck for checkboxes.
4. Execute it with perform_action.
5. Check the returned pageChange evidence. If nothing changed, try a different element or method;
   after two failed attempts report what you tried.

When the action clearly succeeded, call handoff_to_action_verification_agent so the result can be
verified, or answer with a short description of the outcome.""",
    tools=[
        "get_page_content",
        "perform_action",
        "extract_data",
        "node_ids_to_urls",
        "scroll_page",
        "take_screenshot",
        "create_file",
        "update_file",
        "delete_file",
        "read_file",
        "list_files",
    ],
    args_schema={
        "type": "object",
        "properties": {
            "objective": {"type": "string", "description": "The action to perform, e.g. 'click the login button'"},
            "reasoning": {"type": "string", "description": "Why this action is needed"},
            "hint": {"type": "string", "description": "Feedback about a previous failed attempt"},
            "input_data": {"type": "string", "description": "Data to type or fill, in XML format"},
        },
        "required": ["objective", "reasoning"],
    },
    prepare_messages=prepare_action_messages,
    handoffs=[
        HandoffConfig(
            target_agent_name="action_verification_agent",
            trigger=HandoffTrigger.ON_TOOL_CALL,
            include_tool_results=["perform_action", "get_page_content"],
        ),
    ],
    max_iterations=10,
    model=ModelTier.MINI,
    temperature=0.5,
)


action_verification_profile = AgentDefinition(
    name="action_verification_agent",
    description="Verifies whether a browser action achieved its objective, using the page state and action evidence.",
    instructions="""You verify browser actions. You receive the original objective and the results of the
action attempt. Inspect the current page with get_page_content or take_screenshot if needed, then answer
with a short verdict: whether the objective was achieved, the evidence, and what to try next if it was not.""",
    tools=["get_page_content", "take_screenshot", "extract_data"],
    max_iterations=3,
    model=ModelTier.MINI,
    temperature=0.0,
)
