from __future__ import annotations

import json
from typing import Any, Dict, List

from agentrelay.models.messages import Message, UserMessage
from agentrelay.profiles.base import AgentDefinition


def prepare_web_task_messages(args: Dict[str, Any], definition: AgentDefinition) -> List[Message]:
    parts = [str(args[key]) for key in ("query", "task", "objective") if args.get(key)]
    text = f"Task: {' '.join(parts)}"
    if args.get("extraction_schema"):
        text += f"\n\nExtraction Schema: {json.dumps(args['extraction_schema'])}"
    text += "\n\nExecute this web task autonomously."
    return [UserMessage(text=text)]


web_task_profile = AgentDefinition(
    name="web_task_agent",
    description=(
        "Controls the browser to complete site-specific web tasks: breaks an objective into "
        "navigation, interaction and extraction steps, recovers from errors and returns structured results."
    ),
    instructions="""You orchestrate site-specific web tasks by planning, executing and verifying browser actions.

Guidelines:
- Keep a todo list with update_todo for anything longer than a couple of steps.
- Prefer direct_url_navigator_agent when a URL pattern can skip forms; delegate single interactions
  (click, fill, select) to action_agent with a clear objective.
- Use extract_data with a JSON schema to read structured content from the whole page.
- After each step, check that the page changed as expected; on failure, retry with a different
  approach and give action_agent a hint about what went wrong.
- Save extracted data with create_file/update_file when it is large or needed later.

Finish with a concise answer that states what was done and the results, as JSON when an extraction
schema was provided.""",
    tools=[
        "navigate_url",
        "navigate_back",
        "action_agent",
        "extract_data",
        "node_ids_to_urls",
        "direct_url_navigator_agent",
        "scroll_page",
        "take_screenshot",
        "wait_for_page_load",
        "thinking",
        "create_file",
        "update_file",
        "delete_file",
        "read_file",
        "list_files",
        "update_todo",
    ],
    args_schema={
        "type": "object",
        "properties": {
            "task": {"type": "string", "description": "The web task to execute"},
            "reasoning": {"type": "string", "description": "Objectives and expected outcome"},
            "extraction_schema": {"type": "object", "description": "Optional schema for structured extraction"},
        },
        "required": ["task", "reasoning"],
    },
    prepare_messages=prepare_web_task_messages,
    max_iterations=30,
    temperature=0.3,
    include_summary=True,
    include_mcp_tools=True,
)
