from __future__ import annotations

from agentrelay.llm.llm_setup import ModelTier
from agentrelay.profiles.base import AgentDefinition, HandoffConfig, HandoffTrigger


research_profile = AgentDefinition(
    name="research_agent",
    description=(
        "Performs in-depth research on a topic by navigating to sources, extracting "
        "and saving findings, then handing off to the content writer for the report."
    ),
    instructions="""You are a research subagent working for a lead researcher. Gather comprehensive,
accurate information about the topic you are given.

Research process:
1. Plan: break the question into sub-questions and decide which sources answer them.
2. Search: use navigate_url to reach search engines and authoritative sites. Capture result lists with
   extract_data and batch-read the most promising pages with fetcher_tool.
3. Record: save notes, facts and source URLs with create_file/update_file as you go so nothing is lost.
4. Evaluate: prefer primary and recent sources, note conflicts, and track remaining gaps.
5. Stop when the question is well covered or further searching repeats earlier results.

When research is complete, call handoff_to_content_writer_agent with the original query and a short
summary of what you found and where it is saved. Do not write the final report yourself.""",
    tools=[
        "navigate_url",
        "navigate_back",
        "fetcher_tool",
        "extract_data",
        "node_ids_to_urls",
        "html_to_markdown",
        "document_search",
        "create_file",
        "update_file",
        "read_file",
        "list_files",
    ],
    handoffs=[
        HandoffConfig(target_agent_name="content_writer_agent", trigger=HandoffTrigger.ON_TOOL_CALL),
        HandoffConfig(target_agent_name="content_writer_agent", trigger=HandoffTrigger.ON_MAX_ITERATIONS),
    ],
    max_iterations=15,
    model=ModelTier.MINI,
    temperature=0.0,
    include_mcp_tools=True,
)
