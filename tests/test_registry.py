"""Tests for tool naming and the tool registry."""

from types import SimpleNamespace

import pytest

from agentrelay.mcp.tools import register_mcp_tools
from agentrelay.tools.base import FunctionTool, function_tool, is_error_result, tool_schema_for_llm
from agentrelay.tools.names import ToolNameMap, sanitize_tool_name
from agentrelay.tools.registry import ToolRegistry

from conftest import EchoTool


class FakeServer:
    def __init__(self, name):
        self.name = name

    async def call_tool(self, tool_name, arguments):
        return SimpleNamespace(content=[SimpleNamespace(text=f"{self.name}:{tool_name}")], isError=False)


def tool_def(name, description="", schema=None):
    return SimpleNamespace(name=name, description=description, inputSchema=schema or {"type": "object"})


@pytest.fixture
def mcp_registry():
    registry = ToolRegistry()
    servers = {"serverA": FakeServer("A"), "serverB": FakeServer("B")}
    register_mcp_tools(
        registry,
        servers,
        {"serverA": [tool_def("search")], "serverB": [tool_def("search"), tool_def("fetch")]},
    )
    return registry


def test_sanitize_replaces_unsafe_characters():
    assert sanitize_tool_name("mcp:server:search") == "mcp_server_search"
    assert sanitize_tool_name("already_safe-name") == "already_safe-name"
    assert sanitize_tool_name("") == "tool"


def test_sanitize_never_truncates():
    name = "x" * 200
    assert sanitize_tool_name(name) == name


def test_name_map_collisions_get_suffixes():
    names = ToolNameMap()
    assert names.get_sanitized("a:b") == "a_b"
    assert names.get_sanitized("a.b") == "a_b_2"
    assert names.get_sanitized("a/b") == "a_b_3"
    assert names.get_sanitized("a:b") == "a_b"
    assert names.resolve_original("a_b_2") == "a.b"
    assert names.resolve_original("unknown") is None


def test_register_instantiates_once():
    created = []

    def factory():
        created.append(1)
        return EchoTool()

    registry = ToolRegistry()
    registry.register("echo", factory)

    assert registry.resolve("echo") is registry.resolve("echo")
    assert len(created) == 1


def test_failing_factory_is_skipped():
    def factory():
        raise RuntimeError("cannot build")

    registry = ToolRegistry()
    assert registry.register("bad", factory) is None
    assert "bad" not in registry
    assert registry.resolve("bad") is None


def test_overwrite_replaces_instance():
    registry = ToolRegistry()
    first = registry.register("echo", EchoTool)
    second = registry.register("echo", EchoTool)

    assert first is not second
    assert registry.resolve("echo") is second
    assert len(registry) == 1


def test_unregister_drops_aliases():
    registry = ToolRegistry()
    registry.register("echo", EchoTool, aliases=["mcp:s:echo"])
    registry.unregister("echo")

    assert registry.resolve("echo") is None
    assert registry.resolve("mcp:s:echo") is None


def test_duplicate_mcp_names_keep_registration_order(mcp_registry):
    """The first server keeps the bare name; the second gets a numeric suffix."""
    first = mcp_registry.resolve("search")
    second = mcp_registry.resolve("search_2")

    assert first.server_id == "serverA"
    assert second.server_id == "serverB"
    assert mcp_registry.resolve("fetch").server_id == "serverB"


def test_namespaced_names_resolve_to_their_server(mcp_registry):
    assert mcp_registry.resolve("mcp:serverA:search") is mcp_registry.resolve("search")
    assert mcp_registry.resolve("mcp:serverB:search") is mcp_registry.resolve("search_2")


@pytest.mark.parametrize("name", ["search", "search_2", "fetch", "mcp:serverB:search", "mcp:serverA:search"])
def test_resolution_is_stable_and_survives_sanitizing(mcp_registry, name):
    """Resolving twice, or resolving the sanitized form, yields the same instance."""
    original = mcp_registry.resolve(name)
    assert original is not None
    assert mcp_registry.resolve(name) is original

    sanitized = mcp_registry.name_map.get_sanitized(name)
    assert mcp_registry.resolve(sanitized) is original


def test_unknown_namespace_falls_back_to_bare_name(mcp_registry):
    assert mcp_registry.resolve("mcp:elsewhere:fetch") is mcp_registry.resolve("fetch")


def test_available_names_restrict_resolution(mcp_registry):
    assert mcp_registry.canonical_name("search", available=["fetch"]) is None
    assert mcp_registry.canonical_name("fetch", available=["fetch"]) == "fetch"
    assert mcp_registry.canonical_name("mcp:serverB:search", available=["search_2"]) == "search_2"


def test_sanitized_available_name_resolves():
    registry = ToolRegistry()
    registry.register("web.fetch", EchoTool)

    assert registry.canonical_name("web_fetch", available=["web.fetch"]) == "web.fetch"


def test_is_error_result():
    assert is_error_result({"error": "x"})
    assert is_error_result({"success": False})
    assert not is_error_result({"success": True, "error": None})
    assert not is_error_result("error")


def test_tool_schema_for_llm():
    schema = tool_schema_for_llm("echo", EchoTool())

    assert schema["type"] == "function"
    assert schema["function"]["name"] == "echo"
    assert schema["function"]["parameters"]["properties"]["text"]["type"] == "string"


@pytest.mark.asyncio
async def test_function_tool_from_callable(context):
    async def add(a: int, b: int = 2) -> int:
        """Add two numbers."""
        return a + b

    tool = FunctionTool.from_callable(add)

    assert tool.name == "add"
    assert tool.description == "Add two numbers."
    assert set(tool.schema["properties"]) == {"a", "b"}
    assert await tool.execute({"a": 3}, context) == 5


@pytest.mark.asyncio
async def test_function_tool_rejects_bad_arguments(context):
    @function_tool(name="shout")
    def upper(text: str) -> str:
        return text.upper()

    assert upper.name == "shout"
    assert await upper.execute({"text": "hi"}, context) == "HI"
    result = await upper.execute({}, context)
    assert is_error_result(result)
