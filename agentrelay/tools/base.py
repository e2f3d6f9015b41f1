"""Tool contract shared by built-in tools, MCP adapters and sub-agents."""

from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

from agents.function_schema import function_schema
from loguru import logger

from agentrelay.context.run_context import RunContext


@runtime_checkable
class Tool(Protocol):
    """Anything the runner can dispatch a tool call to.

    ``schema`` is a JSON schema describing the call arguments. ``execute`` may
    return any JSON-serializable value; a mapping carrying an ``error`` key is
    treated as a failed call and reported back to the model as such.
    """

    name: str
    description: str
    schema: Dict[str, Any]

    async def execute(self, args: Dict[str, Any], context: RunContext) -> Any:
        ...


class BaseTool:
    """Convenience base class for tools defined in this package."""

    name: str = ""
    description: str = ""
    schema: Dict[str, Any] = {"type": "object", "properties": {}}

    async def execute(self, args: Dict[str, Any], context: RunContext) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def is_error_result(result: Any) -> bool:
    """True for ``{"error": ...}`` payloads and ``{"success": False}`` payloads."""
    if not isinstance(result, dict):
        return False
    if result.get("error"):
        return True
    return result.get("success") is False


def error_result(message: str, **extra: Any) -> Dict[str, Any]:
    return {"success": False, "error": message, **extra}


def tool_schema_for_llm(name: str, tool: Tool) -> Dict[str, Any]:
    """OpenAI-style function declaration for ``tool`` advertised under ``name``."""
    parameters = tool.schema or {"type": "object", "properties": {}}
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": tool.description or "",
            "parameters": parameters,
        },
    }


class FunctionTool(BaseTool):
    """Wraps a plain (sync or async) Python function as a tool.

    Argument schema and description are derived from the signature and the
    docstring. Functions cannot receive the run context; write a ``BaseTool``
    subclass for tools that need it.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
    ):
        self._func = func
        self._schema = function_schema(
            func,
            name_override=name,
            description_override=description,
            strict_json_schema=False,
        )
        self.name = self._schema.name
        self.description = self._schema.description or ""
        self.schema = self._schema.params_json_schema

    @classmethod
    def from_callable(
        cls,
        func: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> "FunctionTool":
        return cls(func, name=name, description=description)

    async def execute(self, args: Dict[str, Any], context: RunContext) -> Any:
        try:
            parsed = self._schema.params_pydantic_model(**(args or {}))
        except Exception as exc:
            logger.debug(f"Invalid arguments for tool {self.name}: {exc}")
            return error_result(f"Invalid arguments for {self.name}: {exc}")

        positional, keyword = self._schema.to_call_args(parsed)
        result = self._func(*positional, **keyword)
        if inspect.isawaitable(result):
            result = await result
        return result


def function_tool(
    func: Optional[Callable[..., Any]] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
):
    """Decorator form of ``FunctionTool.from_callable``; usable bare or with arguments."""

    def wrap(f: Callable[..., Any]) -> FunctionTool:
        return FunctionTool(f, name=name, description=description)

    if func is not None:
        return wrap(func)
    return wrap


ToolFactory = Callable[[], Tool]