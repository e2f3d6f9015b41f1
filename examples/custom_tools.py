"""Register plain Python functions as tools and give them to a custom agent.

Usage:
    python examples/custom_tools.py
"""

import asyncio

from agentrelay import AgentDefinition, RelayApp
from agentrelay.tools.base import function_tool


@function_tool
def word_count(text: str) -> dict:
    """Count the words in a piece of text.

    Args:
        text: The text to count.
    """
    return {"words": len(text.split())}


@function_tool
async def shout(text: str) -> str:
    """Return the text in upper case.

    Args:
        text: The text to transform.
    """
    return text.upper()


editor = AgentDefinition(
    name="editor_agent",
    description="Edits short pieces of text.",
    instructions="You edit text. Use the tools when they help and answer with the edited text.",
    tools=["word_count", "shout", "create_file"],
    max_iterations=5,
)


async def main() -> None:
    app = RelayApp("configs/default.yaml")
    app.register_tool(word_count)
    app.register_tool(shout)
    app.catalog.register(editor)

    result = await app.ask("Make 'hello relay' louder and save it to loud.txt", agent="editor_agent")
    app.printer.print_result(result)


if __name__ == "__main__":
    asyncio.run(main())
