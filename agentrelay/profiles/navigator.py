from __future__ import annotations

from agentrelay.profiles.base import AgentDefinition


direct_url_navigator_profile = AgentDefinition(
    name="direct_url_navigator_agent",
    description=(
        "Constructs direct URLs for a requirement and navigates to them, retrying alternative "
        "URL patterns up to five times. Returns a markdown report."
    ),
    instructions="""You reach specific content by building direct URLs instead of filling forms.

For each requirement:
1. Construct a URL from the site's known patterns, for example
   https://www.google.com/search?q=QUERY, https://www.amazon.com/s?k=QUERY,
   https://www.indeed.com/jobs?q=QUERY&l=LOCATION.
2. Navigate with navigate_url.
3. Verify with get_page_content that the title and content match the requirement.
4. If it does not, retry with another pattern: different encoding, alternative path,
   country domain, fewer parameters, and finally the site's base URL. Stop after five attempts.

Answer in markdown with the final URL, whether it matched, and the attempts you made.""",
    tools=["navigate_url", "get_page_content"],
    args_schema={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "What content or page to reach"},
            "reasoning": {"type": "string", "description": "Why direct navigation is needed"},
        },
        "required": ["query", "reasoning"],
    },
    max_iterations=5,
    temperature=0.1,
)
