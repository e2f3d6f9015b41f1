"""Tests for application wiring, the console printer and the CLI parser."""

from types import SimpleNamespace

import pytest
from rich.console import Console

from agentrelay.__main__ import build_parser
from agentrelay.app import RelayApp
from agentrelay.mcp import manager as mcp_manager
from agentrelay.tools.base import BaseTool

from conftest import ScriptedLLM, call, text


class PageContentTool(BaseTool):
    name = "get_page_content"
    description = "Return the page."

    async def execute(self, args, context):
        return {"content": "<html>login form</html>"}


def make_app(llm, **config):
    config.setdefault("provider", "local")
    config.setdefault("model", "llama3")
    config.setdefault("base_url", "http://localhost:11434/v1")
    return RelayApp(config, llm=llm, console=Console(record=True, width=120), setup_logging=False)


def test_app_registers_builtins():
    app = make_app(ScriptedLLM())

    assert "create_file" in app.registry
    assert "action_agent" in app.registry
    assert "web_task_agent" in app.catalog
    assert app.context().model == "llama3"


def test_agent_overrides_are_applied():
    app = make_app(ScriptedLLM(), agents={"search_agent": {"max_iterations": 3, "temperature": 0.7}})
    search = app.catalog.require("search_agent")

    assert search.max_iterations == 3
    assert search.temperature == 0.7


@pytest.mark.asyncio
async def test_ask_routes_to_named_agent_and_shares_files():
    llm = ScriptedLLM([
        call("create_file", fileName="draft.md", content="first"),
        text("saved"),
        call("read_file", fileName="draft.md"),
        text("read it"),
    ])
    app = make_app(llm)

    async with app:
        first = await app.ask("write a draft", agent="content_writer_agent")
        second = await app.ask("read the draft", agent="content_writer_agent")

    assert first.success and second.success
    read_result = second.session.tool_results()[0]
    assert read_result.result_data["file"]["content"] == "first"
    assert app.file_store.exists(app.conversation_id, "draft.md")


@pytest.mark.asyncio
async def test_environment_tools_can_be_registered():
    llm = ScriptedLLM([call("get_page_content"), text("Clicked")])
    app = make_app(llm)
    app.register_tool(PageContentTool())

    result = await app.ask("open the page", agent="direct_url_navigator_agent")

    assert result.success
    assert not result.session.tool_results()[0].is_error


def test_register_factory_requires_name():
    app = make_app(ScriptedLLM())
    with pytest.raises(ValueError):
        app.register_tool(lambda: PageContentTool())


@pytest.mark.asyncio
async def test_printer_renders_session_and_result():
    llm = ScriptedLLM([call("list_files"), text("No files yet")])
    app = make_app(llm)

    result = await app.ask("what files exist?", agent="content_writer_agent")
    app.printer.print_result(result)
    app.printer.print_session(result.session)
    output = app.console.export_text()

    assert "No files yet" in output
    assert "content_writer_agent" in output
    assert "call list_files" in output


def test_cli_parser():
    args = build_parser().parse_args(["find flights", "--agent", "search_agent", "--show-session"])

    assert args.query == "find flights"
    assert args.agent == "search_agent"
    assert args.show_session
    assert args.config is None


class FakeMCPServer:
    instances = []

    def __init__(self, name=None, params=None, **kwargs):
        self.name = name
        self.cleaned_up = False
        FakeMCPServer.instances.append(self)

    async def connect(self):
        pass

    async def list_tools(self):
        return [SimpleNamespace(name="search", description="Search", inputSchema={"type": "object"})]

    async def cleanup(self):
        self.cleaned_up = True


@pytest.mark.asyncio
async def test_connect_mcp_twice_keeps_names_and_session(monkeypatch):
    FakeMCPServer.instances = []
    monkeypatch.setitem(mcp_manager.SERVER_TYPE_MAP, "fake", FakeMCPServer)
    app = make_app(ScriptedLLM(), mcp={
        "enabled": True,
        "servers": {
            "alpha": {"type": "fake", "params": {"command": "noop"}},
            "beta": {"type": "fake", "params": {"command": "noop"}},
        },
    })

    async with app:
        first = list(app._mcp_tool_names)
        again = await app.connect_mcp()

        assert first == ["search", "search_2"]
        assert again == first
        assert "search_3" not in app.registry
        assert len(FakeMCPServer.instances) == 2

    assert all(server.cleaned_up for server in FakeMCPServer.instances)
    assert "search" not in app.registry
