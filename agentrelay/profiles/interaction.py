"""Single-purpose page interaction agents: click, form fill, keyboard, hover and scroll.

Each one inspects the page, picks one element and drives ``perform_action``
with a single method. They share the argument schema and message layout.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from agentrelay.llm.llm_setup import ModelTier
from agentrelay.models.messages import Message, UserMessage
from agentrelay.profiles.base import AgentDefinition

INTERACTION_TOOLS = ["get_page_content", "perform_action", "extract_data"]


def objective_messages(label: str) -> Callable[[Dict[str, Any], AgentDefinition], List[Message]]:
    """Message builder that opens with ``<label> Objective:``."""

    def prepare(args: Dict[str, Any], definition: AgentDefinition) -> List[Message]:
        lines = [f"{label} Objective: {args.get('objective') or args.get('query') or ''}"]
        if args.get("key"):
            lines.append(f"Key to Press: {args['key']}")
        lines.append(f"Reasoning: {args.get('reasoning') or ''}")
        if args.get("hint"):
            lines.append(f"Hint: {args['hint']}")
        return [UserMessage(text="\n".join(lines))]

    return prepare


def objective_schema(example: str, purpose: str, **extra: Dict[str, str]) -> Dict[str, Any]:
    properties: Dict[str, Any] = {
        "objective": {"type": "string", "description": f"What to do, in natural language (e.g. {example})"},
        **extra,
        "reasoning": {"type": "string", "description": f"Why the {purpose} agent is being invoked"},
        "hint": {"type": "string", "description": "Feedback from a previous failed attempt"},
    }
    return {"type": "object", "properties": properties, "required": ["objective", "reasoning"]}


def _interaction_agent(
    name: str,
    label: str,
    description: str,
    instructions: str,
    schema: Dict[str, Any],
    tools: Optional[List[str]] = None,
) -> AgentDefinition:
    return AgentDefinition(
        name=name,
        description=description,
        instructions=instructions,
        tools=tools or list(INTERACTION_TOOLS),
        args_schema=schema,
        prepare_messages=objective_messages(label),
        max_iterations=5,
        model=ModelTier.MINI,
        temperature=0.7,
    )


click_action_profile = _interaction_agent(
    "click_action_agent",
    "Click",
    "Clicks buttons, links and other clickable elements. Checkboxes and dropdowns are better served by "
    "the check/uncheck and selectOption methods of the action agent.",
    """You find and click the element that best matches the objective.

1. Read the page with get_page_content.
2. Look for buttons and links whose text matches, radio buttons, elements with click-related ARIA
   roles, and elements labelled by nearby matching text.
3. Click it with perform_action using the 'click' method.
4. If the click fails, try another element that serves the same purpose.

Prefer exact text matches, clear interactive roles, visible and enabled elements, and elements whose
position makes sense in the page context. Do not use click for checkboxes (check/uncheck) or
dropdowns (selectOption).""",
    objective_schema("'click the login button'", "click"),
    tools=[*INTERACTION_TOOLS, "node_ids_to_urls"],
)


form_fill_action_profile = _interaction_agent(
    "form_fill_action_agent",
    "Form Fill",
    "Finds the form field that matches the objective and fills it with well-formatted text.",
    """You fill form fields.

1. Read the page with get_page_content.
2. Find the input, textarea or specialised field (search, email, password) whose label, placeholder
   or ARIA attributes match the objective.
3. Fill it with perform_action using the 'fill' method.
4. If filling fails, work out why (format, disabled field) and try an alternative.

Prefer visible, enabled, required and empty fields that accept the kind of data being entered.
Format values for the field type: email addresses for email fields, concise search queries,
context-appropriate date formats.""",
    objective_schema("\"enter 'user@example.com' in the email field\"", "form fill"),
)


keyboard_input_action_profile = _interaction_agent(
    "keyboard_input_action_agent",
    "Keyboard Input",
    "Sends a key press (Enter, Tab, arrow keys, Escape, Space) to the element the objective refers to.",
    """You send keyboard input.

1. Read the page with get_page_content.
2. Decide which element must receive the input and which key achieves the objective:
   Enter submits or activates, Tab moves focus, arrow keys navigate menus and sliders,
   Escape closes dialogs, Space toggles checkboxes and buttons.
3. Press the key with perform_action using the 'press' method.
4. If it has no effect, try another element or key.

Prefer visible, enabled, keyboard-accessible elements.""",
    objective_schema(
        "'press Enter in the search box'",
        "keyboard input",
        key={"type": "string", "description": "The key to press, e.g. 'Enter', 'Tab', 'ArrowDown'"},
    ),
)


hover_action_profile = _interaction_agent(
    "hover_action_agent",
    "Hover",
    "Hovers over elements that reveal menus, tooltips or other hidden content.",
    """You hover over elements to reveal content.

1. Read the page with get_page_content.
2. Find the hover-responsive element the objective refers to: navigation items with submenus,
   icons with tooltips, truncated text, image overlays, cards with hover states.
3. Hover with perform_action using the 'hover' method.
4. Check whether the expected content appeared.""",
    objective_schema("'show the tooltip for the info icon'", "hover"),
)


scroll_action_profile = _interaction_agent(
    "scroll_action_agent",
    "Scroll",
    "Scrolls the page or a scrollable container so the content named in the objective becomes visible.",
    """You scroll content into view.

1. Read the page with get_page_content. Scrollable containers are marked in the tree.
2. Identify the target element below the viewport, or the container to scroll (overflowing
   divs, carousels, infinite-scroll lists).
3. Scroll with perform_action using the 'scrollIntoView' method.
4. Verify that the intended content is now visible.

Prefer named sections, landmarks and elements whose ids or anchors match the objective.""",
    objective_schema("'scroll to the contact form'", "scroll"),
)
