"""Shared test fixtures."""

import asyncio

import pytest

from agentrelay.agent.runner import AgentRunner
from agentrelay.context.run_context import RunContext
from agentrelay.llm.client import FunctionCall, LLMResponse
from agentrelay.llm.llm_setup import ModelTiers
from agentrelay.profiles.base import AgentCatalog
from agentrelay.tools.base import BaseTool
from agentrelay.tools.registry import ToolRegistry
from agentrelay.utils.config import RunnerSettings


def text(value: str) -> LLMResponse:
    return LLMResponse(text=value)


def call(name: str, call_id: str = None, **arguments) -> LLMResponse:
    return LLMResponse(function_call=FunctionCall(name=name, arguments=arguments, call_id=call_id))


class ScriptedLLM:
    """Replays a fixed list of responses; exceptions in the list are raised.

    Entries may also be callables taking the request, for responses that
    depend on what the runner sent.
    """

    def __init__(self, responses=None, default=None):
        self.responses = list(responses or [])
        self.default = default
        self.requests = []

    async def call(self, request):
        self.requests.append(request)
        if not self.responses:
            if self.default is not None:
                return self.default
            raise AssertionError("ScriptedLLM ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            response = response(request)
            if asyncio.iscoroutine(response):
                response = await response
        return response


class HangingLLM:
    """Never answers until cancelled."""

    def __init__(self):
        self.calls = 0

    async def call(self, request):
        self.calls += 1
        await asyncio.sleep(3600)


class RecordingTracer:
    """Tracer that records every call as ``(method, kind, name)`` tuples."""

    def __init__(self):
        self.events = []
        self._next = 0

    def _handle(self):
        self._next += 1
        return self._next

    def create_trace(self, name, metadata=None):
        self.events.append(("create_trace", None, name))
        return self._handle()

    def create_observation(self, trace_handle, kind, name, *, parent=None, input=None, metadata=None):
        self.events.append(("create_observation", kind, name))
        return self._handle()

    def update_observation(self, observation, *, output=None, error=None):
        self.events.append(("update_observation", observation, error))

    def finalize_trace(self, trace_handle, *, output=None, error=None):
        self.events.append(("finalize_trace", trace_handle, error))

    def kinds(self):
        return [kind for method, kind, _ in self.events if method == "create_observation"]


class ExplodingTracer:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise RuntimeError(f"tracer {name} is down")
        return fail


class EchoTool(BaseTool):
    name = "echo"
    description = "Echo the arguments back."
    schema = {"type": "object", "properties": {"text": {"type": "string"}}}

    def __init__(self):
        self.calls = []

    async def execute(self, args, context):
        self.calls.append(args)
        return {"echo": args.get("text", "")}


class NotFoundTool(BaseTool):
    name = "lookup"
    description = "Always fails."

    async def execute(self, args, context):
        return {"error": "not found"}


class BrokenTool(BaseTool):
    name = "broken"
    description = "Raises."

    async def execute(self, args, context):
        raise ValueError("boom")


class SlowTool(BaseTool):
    name = "slow"
    description = "Sleeps."
    timeout = 0.05

    async def execute(self, args, context):
        await asyncio.sleep(5)
        return {"done": True}


class CancellingTool(BaseTool):
    name = "stop"
    description = "Cancels the run it belongs to."

    async def execute(self, args, context):
        context.cancel()
        return {"stopped": True}


@pytest.fixture
def settings():
    return RunnerSettings(
        max_llm_retries=2,
        llm_retry_base_delay=0,
        llm_retry_max_delay=0,
        llm_timeout=2,
        tool_timeout=2,
    )


@pytest.fixture
def tiers():
    return ModelTiers(default="test-model", main="test-model", mini="test-mini")


@pytest.fixture
def registry():
    registry = ToolRegistry()
    for tool_cls in (EchoTool, NotFoundTool, BrokenTool, SlowTool, CancellingTool):
        registry.register(tool_cls.name, tool_cls)
    return registry


@pytest.fixture
def catalog():
    return AgentCatalog()


@pytest.fixture
def make_runner(registry, catalog, settings, tiers):
    """Build an AgentRunner around a scripted LLM."""

    def _make(llm, **kwargs):
        kwargs.setdefault("settings", settings)
        kwargs.setdefault("tiers", tiers)
        return AgentRunner(llm=llm, registry=registry, catalog=catalog, **kwargs)

    return _make


@pytest.fixture
def context():
    return RunContext()
