"""Console rendering of agent sessions and run results."""

from __future__ import annotations

import re
from typing import Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text
from rich.tree import Tree

from agentrelay.models.messages import (
    ErrorMessage,
    ModelTextMessage,
    ModelToolCallMessage,
    ToolResultMessage,
    UserMessage,
)
from agentrelay.models.session import AgentSession, RunResult, SessionStatus
from agentrelay.utils.helpers import preview_text, serialize_content

_STATUS_STYLE = {
    SessionStatus.RUNNING: "yellow",
    SessionStatus.COMPLETED: "green",
    SessionStatus.ERROR: "red",
}


class SessionPrinter:
    """Prints a session tree (agents, tool calls, handoffs) and final answers."""

    def __init__(self, console: Optional[Console] = None, preview_limit: int = 120):
        self.console = console or Console()
        self.preview_limit = preview_limit

    def session_tree(self, session: AgentSession) -> Tree:
        tree = Tree(self._session_label(session))
        self._fill(tree, session)
        return tree

    def print_session(self, session: AgentSession) -> None:
        self.console.print(self.session_tree(session))

    def print_result(self, result: RunResult, title: Optional[str] = None) -> None:
        if result.success:
            body = result.text
            panel = Panel(
                self._renderable(body),
                title=title or "Answer",
                border_style="green",
                padding=(1, 2),
            )
        else:
            panel = Panel(
                Text(result.error or "Unknown error"),
                title=title or "Error",
                border_style="red",
                padding=(1, 2),
            )
        self.console.print(panel)

        if result.summary is not None:
            self.console.print(Panel(
                self._renderable(result.summary.content),
                title=f"Summary ({result.summary.type})",
                border_style="cyan",
            ))

    def _session_label(self, session: AgentSession) -> Text:
        style = _STATUS_STYLE.get(session.status, "white")
        label = Text(session.agent_name, style=f"bold {style}")
        details = [session.status.value]
        if session.termination_reason is not None:
            details.append(session.termination_reason.value)
        if session.duration_seconds is not None:
            details.append(f"{session.duration_seconds:.1f}s")
        label.append(f"  [{', '.join(details)}]", style="dim")
        return label

    def _fill(self, tree: Tree, session: AgentSession) -> None:
        nested = {child.session_id: child for child in session.nested_sessions}
        for message in session.messages:
            if isinstance(message, UserMessage):
                tree.add(Text(f"user: {preview_text(message.text, self.preview_limit)}", style="cyan"))
            elif isinstance(message, ModelTextMessage):
                tree.add(Text(f"answer: {preview_text(message.text, self.preview_limit)}", style="green"))
            elif isinstance(message, ModelToolCallMessage):
                args = preview_text(serialize_content(message.tool_args), self.preview_limit)
                tree.add(Text(f"call {message.tool_name}({args})", style="magenta"))
            elif isinstance(message, ToolResultMessage):
                style = "red" if message.is_error else "dim"
                data = preview_text(serialize_content(message.result_data), self.preview_limit)
                tree.add(Text(f"result {message.tool_name}: {data}", style=style))
            elif isinstance(message, ErrorMessage):
                tree.add(Text(f"error: {message.error}", style="bold red"))

        for child in nested.values():
            branch = tree.add(self._session_label(child))
            self._fill(branch, child)

    @staticmethod
    def _renderable(content: str):
        if content and re.search(r"^#{1,6}\s|^\s*[-*+]\s+\S|\*\*.+\*\*", content, re.MULTILINE):
            return Markdown(content)
        return Text(content or "")
