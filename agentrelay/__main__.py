"""Command line entry point: ``python -m agentrelay "question"``."""

import argparse
import asyncio
import sys

from agentrelay.app import RelayApp


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agentrelay", description="Run a question through an agentrelay agent")
    parser.add_argument("query", help="User question or task")
    parser.add_argument("--config", "-c", default=None, help="YAML or JSON configuration file")
    parser.add_argument("--agent", "-a", default=None, help="Agent name (default: configured default agent)")
    parser.add_argument("--agent-type", default=None, help="Route key used when --agent is not given")
    parser.add_argument("--show-session", action="store_true", help="Print the session tree after the answer")
    return parser


async def _run(args: argparse.Namespace) -> int:
    async with RelayApp(args.config) as app:
        result = await app.ask(args.query, agent=args.agent, agent_type=args.agent_type)
        app.printer.print_result(result)
        if args.show_session and result.session is not None:
            app.printer.print_session(result.session)
        return 0 if result.success else 1


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
