"""Ask one question through the default web task agent.

Usage:
    python examples/simple.py
"""

import asyncio

from agentrelay import RelayApp


async def main() -> None:
    async with RelayApp("configs/default.yaml") as app:
        result = await app.ask(
            "Find the outstanding papers of ACL 2025 and write a short summary of each.",
            agent="research_agent",
        )
        app.printer.print_result(result)
        if result.session is not None:
            app.printer.print_session(result.session)


if __name__ == "__main__":
    asyncio.run(main())
