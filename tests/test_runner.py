"""Tests for the agent loop."""

import asyncio

import pytest
from pydantic import BaseModel

from agentrelay.context.file_store import FileStore
from agentrelay.llm.client import LLMCallError, LLMTransientError
from agentrelay.llm.llm_setup import ModelTier, ModelTiers
from agentrelay.models.messages import (
    ErrorMessage,
    ModelTextMessage,
    ModelToolCallMessage,
    ToolResultMessage,
    UserMessage,
)
from agentrelay.models.session import SessionStatus, TerminationReason
from agentrelay.profiles.base import AgentDefinition
from agentrelay.tools.base import BaseTool
from agentrelay.tools.file_tools import register_file_tools

from conftest import ExplodingTracer, HangingLLM, RecordingTracer, ScriptedLLM, call, text


def agent(**kwargs):
    kwargs.setdefault("name", "tester")
    kwargs.setdefault("instructions", "You are a test agent.")
    kwargs.setdefault("tools", ["echo", "lookup", "broken", "slow", "stop"])
    return AgentDefinition(**kwargs)


class Answer(BaseModel):
    answer: str
    confidence: float


@pytest.mark.asyncio
async def test_final_answer_on_first_turn(make_runner):
    """Plain text on iteration 1 ends the run with that text and no tool calls."""
    runner = make_runner(ScriptedLLM([text("42")]))
    result = await runner.run(agent(), args={"query": "meaning of life?"})

    assert result.success
    assert result.output == "42"
    assert result.termination_reason == TerminationReason.FINAL_ANSWER
    session = result.session
    assert session.status == SessionStatus.COMPLETED
    assert session.end_time is not None
    assert session.tool_calls() == []
    assert [type(m) for m in session.messages] == [UserMessage, ModelTextMessage]


@pytest.mark.asyncio
async def test_output_matching_schema_is_returned_as_text(make_runner):
    """Schema-conforming text is the final answer verbatim."""
    payload = '{"answer": "yes", "confidence": 0.9}'
    runner = make_runner(ScriptedLLM([text(payload)]))
    result = await runner.run(agent(output_schema=Answer), args={"query": "q"})

    assert result.termination_reason == TerminationReason.FINAL_ANSWER
    assert result.output == payload
    assert result.session.tool_calls() == []


@pytest.mark.asyncio
async def test_schema_violation_is_reported_and_counts_as_iteration(make_runner):
    """An answer failing the schema is rejected and the model gets another turn."""
    llm = ScriptedLLM([text("not json"), text('{"answer": "ok", "confidence": 1}')])
    runner = make_runner(llm)
    result = await runner.run(agent(output_schema=Answer), args={"query": "q"})

    assert result.success
    errors = [m for m in result.session.messages if isinstance(m, ErrorMessage)]
    assert len(errors) == 1
    assert "schema" in errors[0].error
    assert len(llm.requests) == 2


@pytest.mark.asyncio
async def test_schema_violation_exhausts_iterations(make_runner):
    runner = make_runner(ScriptedLLM(default=text("still not json")))
    result = await runner.run(agent(output_schema=Answer, max_iterations=2), args={"query": "q"})

    assert not result.success
    assert result.termination_reason == TerminationReason.MAX_ITERATIONS


@pytest.mark.asyncio
async def test_tool_call_then_answer(make_runner, registry):
    """The tool result carries the call's id and the tool output."""
    runner = make_runner(ScriptedLLM([call("echo", call_id="c1", text="hi"), text("done")]))
    result = await runner.run(agent(), args={"query": "say hi"})

    assert result.success
    messages = result.session.messages
    assert isinstance(messages[1], ModelToolCallMessage)
    assert isinstance(messages[2], ToolResultMessage)
    assert messages[2].tool_call_id == "c1"
    assert messages[2].result_data == {"echo": "hi"}
    assert not messages[2].is_error
    assert registry.get_registered_tool("echo").calls == [{"text": "hi"}]


@pytest.mark.asyncio
async def test_every_tool_call_has_exactly_one_result(make_runner):
    llm = ScriptedLLM([
        call("echo", text="a"),
        call("lookup"),
        call("broken"),
        call("ghost_tool"),
        text("done"),
    ])
    result = await make_runner(llm).run(agent(), args={"query": "q"})

    messages = result.session.messages
    for index, message in enumerate(messages):
        if isinstance(message, ModelToolCallMessage):
            later = [
                m for m in messages[index + 1:]
                if isinstance(m, ToolResultMessage) and m.tool_call_id == message.tool_call_id
            ]
            assert len(later) == 1
            assert messages[index + 1] is later[0]


@pytest.mark.asyncio
async def test_transcript_only_grows(make_runner):
    """Every transcript the LLM sees extends the previous one."""
    llm = ScriptedLLM([call("echo", text="1"), call("lookup"), text("done")])
    result = await make_runner(llm).run(agent(), args={"query": "q"})

    seen = [list(request.messages) for request in llm.requests]
    for earlier, later in zip(seen, seen[1:]):
        assert later[: len(earlier)] == earlier
        assert len(later) > len(earlier)
    assert result.session.messages[: len(seen[-1])] == seen[-1]


@pytest.mark.asyncio
async def test_unknown_tool_does_not_end_the_run(make_runner):
    """Calling an unregistered tool yields an error result and the loop goes on."""
    llm = ScriptedLLM([call("ghost_tool"), text("recovered")])
    result = await make_runner(llm).run(agent(), args={"query": "q"})

    assert result.success
    assert result.output == "recovered"
    tool_result = result.session.tool_results()[0]
    assert tool_result.is_error
    assert "not found" in tool_result.result_data["error"]


@pytest.mark.asyncio
async def test_tool_outside_allowed_list_is_not_found(make_runner):
    llm = ScriptedLLM([call("broken"), text("ok")])
    result = await make_runner(llm).run(agent(tools=["echo"]), args={"query": "q"})

    assert "not found" in result.session.tool_results()[0].result_data["error"]


@pytest.mark.asyncio
async def test_tool_exception_becomes_error_result(make_runner):
    llm = ScriptedLLM([call("broken"), text("ok")])
    result = await make_runner(llm).run(agent(), args={"query": "q"})

    tool_result = result.session.tool_results()[0]
    assert tool_result.is_error
    assert "boom" in tool_result.result_data["error"]


@pytest.mark.asyncio
async def test_tool_timeout_becomes_error_result(make_runner):
    llm = ScriptedLLM([call("slow"), text("ok")])
    result = await make_runner(llm).run(agent(), args={"query": "q"})

    tool_result = result.session.tool_results()[0]
    assert tool_result.is_error
    assert "timed out" in tool_result.result_data["error"]
    assert result.success


@pytest.mark.asyncio
async def test_namespaced_tool_name_resolves(make_runner):
    llm = ScriptedLLM([call("mcp:local:echo", text="x"), text("ok")])
    result = await make_runner(llm).run(agent(), args={"query": "q"})

    tool_result = result.session.tool_results()[0]
    assert not tool_result.is_error
    assert tool_result.tool_name == "echo"


@pytest.mark.asyncio
async def test_max_iterations_with_failing_tool(make_runner):
    """Two failing tool calls exhaust max_iterations=2 without crashing."""
    runner = make_runner(ScriptedLLM(default=call("lookup", q="x")))
    result = await runner.run(agent(max_iterations=2), args={"query": "find it"})

    assert not result.success
    assert result.termination_reason == TerminationReason.MAX_ITERATIONS
    assert len(result.session.tool_calls()) == 2
    assert result.session.status == SessionStatus.ERROR
    assert "maximum iterations" in result.error


@pytest.mark.asyncio
@pytest.mark.parametrize("max_iterations", [1, 3, 5])
async def test_tool_calls_never_exceed_max_iterations(make_runner, max_iterations):
    runner = make_runner(ScriptedLLM(default=call("echo", text="again")))
    result = await runner.run(agent(max_iterations=max_iterations), args={"query": "q"})

    assert len(result.session.tool_calls()) == max_iterations


@pytest.mark.asyncio
async def test_salvage_turns_max_iterations_into_partial_success(make_runner):
    def salvage(messages):
        return f"partial after {sum(isinstance(m, ToolResultMessage) for m in messages)} results"

    runner = make_runner(ScriptedLLM(default=call("lookup")))
    result = await runner.run(agent(max_iterations=2, salvage=salvage), args={"query": "q"})

    assert result.success
    assert result.output == "partial after 2 results"
    assert result.termination_reason == TerminationReason.MAX_ITERATIONS
    assert result.session.status == SessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_failing_salvage_falls_back_to_error(make_runner):
    def salvage(messages):
        raise RuntimeError("cannot salvage")

    runner = make_runner(ScriptedLLM(default=call("lookup")))
    result = await runner.run(agent(max_iterations=1, salvage=salvage), args={"query": "q"})

    assert not result.success
    assert result.termination_reason == TerminationReason.MAX_ITERATIONS


@pytest.mark.asyncio
async def test_empty_response_counts_as_iteration(make_runner):
    llm = ScriptedLLM([text(""), text("answer")])
    result = await make_runner(llm).run(agent(), args={"query": "q"})

    assert result.success
    assert any(isinstance(m, ErrorMessage) for m in result.session.messages)


@pytest.mark.asyncio
async def test_transient_llm_error_is_retried(make_runner):
    llm = ScriptedLLM([LLMTransientError("rate limited"), text("fine")])
    result = await make_runner(llm).run(agent(), args={"query": "q"})

    assert result.success
    assert len(llm.requests) == 2


@pytest.mark.asyncio
async def test_retries_are_bounded(make_runner):
    llm = ScriptedLLM([LLMTransientError("down")] * 5)
    result = await make_runner(llm).run(agent(), args={"query": "q"})

    assert not result.success
    assert result.termination_reason == TerminationReason.ERROR
    assert len(llm.requests) == 3
    assert "after 3 attempt" in result.error
    assert isinstance(result.session.messages[-1], ErrorMessage)


@pytest.mark.asyncio
async def test_permanent_llm_error_is_not_retried(make_runner):
    llm = ScriptedLLM([LLMCallError("bad request")])
    result = await make_runner(llm).run(agent(), args={"query": "q"})

    assert not result.success
    assert result.error == "bad request"
    assert len(llm.requests) == 1


@pytest.mark.asyncio
async def test_llm_timeout_fails_the_run(make_runner, settings):
    llm = HangingLLM()
    fast = settings.model_copy(update={"llm_timeout": 0.05, "max_llm_retries": 1})
    result = await make_runner(llm, settings=fast).run(agent(), args={"query": "q"})

    assert not result.success
    assert "timed out" in result.error
    assert llm.calls == 2


@pytest.mark.asyncio
async def test_unexpected_exception_is_reported(make_runner):
    llm = ScriptedLLM([KeyError("surprise")])
    result = await make_runner(llm).run(agent(), args={"query": "q"})

    assert not result.success
    assert result.termination_reason == TerminationReason.ERROR
    assert result.error.startswith("Unexpected error")


@pytest.mark.asyncio
async def test_cancellation_from_a_tool_stops_the_loop(make_runner, context):
    llm = ScriptedLLM([call("stop"), text("never")])
    result = await make_runner(llm).run(agent(), args={"query": "q"}, context=context)

    assert not result.success
    assert result.termination_reason == TerminationReason.ERROR
    assert result.error == "Run cancelled"
    assert len(llm.requests) == 1
    assert context.cancelled


class WorkTool(BaseTool):
    name = "work"
    description = "Does slow work that must not be cut short."

    def __init__(self):
        self.finished = False

    async def execute(self, args, context):
        await asyncio.sleep(0.2)
        self.finished = True
        return {"done": True}


async def cancel_after(context, delay=0.05):
    await asyncio.sleep(delay)
    context.cancel()


@pytest.mark.asyncio
async def test_running_tool_completes_when_cancelled(make_runner, registry, context):
    """A tool already executing when cancel fires finishes and its result is recorded."""
    tool = WorkTool()
    registry.register_instance(tool)
    llm = ScriptedLLM([call("work", call_id="w1"), text("never")])

    canceller = asyncio.create_task(cancel_after(context))
    result = await make_runner(llm).run(agent(tools=["work"]), args={"query": "q"}, context=context)
    await canceller

    assert tool.finished
    assert [type(m) for m in result.session.messages] == [
        UserMessage, ModelToolCallMessage, ToolResultMessage, ErrorMessage,
    ]
    assert result.session.tool_results()[0].result_data == {"done": True}
    assert not result.success
    assert result.error == "Run cancelled"
    assert len(llm.requests) == 1


@pytest.mark.asyncio
async def test_pending_llm_call_finishes_before_the_run_stops(make_runner, context):
    async def slow_answer(request):
        await asyncio.sleep(0.2)
        return call("echo")

    llm = ScriptedLLM([slow_answer, text("never")])
    canceller = asyncio.create_task(cancel_after(context))
    result = await make_runner(llm).run(agent(), args={"query": "q"}, context=context)
    await canceller

    assert not result.success
    assert result.error == "Run cancelled"
    assert result.session.status == SessionStatus.ERROR
    assert len(llm.requests) == 1

@pytest.mark.asyncio
async def test_already_cancelled_context_makes_no_llm_call(make_runner, context):
    llm = ScriptedLLM([text("x")])
    context.cancel()
    result = await make_runner(llm).run(agent(), args={"query": "q"}, context=context)

    assert not result.success
    assert llm.requests == []


@pytest.mark.asyncio
async def test_model_tier_resolution(make_runner):
    llm = ScriptedLLM([text("ok")])
    await make_runner(llm).run(agent(model=ModelTier.NANO), args={"query": "q"})

    assert llm.requests[0].model == "test-mini"


@pytest.mark.asyncio
async def test_context_models_override_configured_tiers(make_runner, context):
    llm = ScriptedLLM([text("ok")])
    context.mini_model = "ctx-mini"
    await make_runner(llm).run(agent(model=ModelTier.MINI), args={"query": "q"}, context=context)

    assert llm.requests[0].model == "ctx-mini"


@pytest.mark.asyncio
async def test_unresolvable_model_fails_the_run(make_runner):
    llm = ScriptedLLM([text("never")])
    result = await make_runner(llm, tiers=ModelTiers()).run(agent(model=ModelTier.MINI), args={"query": "q"})

    assert not result.success
    assert "No model configured" in result.error
    assert llm.requests == []


@pytest.mark.asyncio
async def test_request_carries_instructions_temperature_and_tools(make_runner):
    llm = ScriptedLLM([text("ok")])
    await make_runner(llm).run(agent(tools=["echo", "unregistered"], temperature=0.4), args={"query": "q"})

    request = llm.requests[0]
    assert request.system_prompt == "You are a test agent."
    assert request.temperature == 0.4
    assert [t["function"]["name"] for t in request.tools] == ["echo"]


@pytest.mark.asyncio
async def test_lifecycle_hooks_run_and_failures_are_ignored(make_runner):
    seen = []

    def before(ctx):
        seen.append("before")

    async def after(result, session, ctx):
        seen.append(("after", result.output, session.agent_name))
        raise RuntimeError("hook failure")

    result = await make_runner(ScriptedLLM([text("ok")])).run(
        agent(before_execute=before, after_execute=after), args={"query": "q"},
    )

    assert result.success
    assert seen == ["before", ("after", "ok", "tester")]


@pytest.mark.asyncio
async def test_intermediate_steps_are_optional(make_runner):
    runner = make_runner(ScriptedLLM([text("a"), text("b")]))
    without = await runner.run(agent(), args={"query": "q"})
    with_steps = await runner.run(agent(include_intermediate_steps=True), args={"query": "q"})

    assert without.intermediate_steps is None
    assert len(with_steps.intermediate_steps) == 2


@pytest.mark.asyncio
async def test_summary_is_generated_on_request(make_runner):
    llm = ScriptedLLM([text("answer"), text("The agent answered.")])
    result = await make_runner(llm).run(agent(include_summary=True), args={"query": "q"})

    assert result.summary.type == "completion"
    assert result.summary.content == "The agent answered."
    assert llm.requests[1].model == "test-mini"


@pytest.mark.asyncio
async def test_summary_failure_is_omitted(make_runner):
    llm = ScriptedLLM([text("answer"), LLMCallError("nope")])
    result = await make_runner(llm).run(agent(include_summary=True), args={"query": "q"})

    assert result.success
    assert result.summary is None


@pytest.mark.asyncio
async def test_tracer_records_agent_generation_and_tool(make_runner):
    tracer = RecordingTracer()
    llm = ScriptedLLM([call("echo", text="x"), text("ok")])
    await make_runner(llm, tracer=tracer).run(agent(), args={"query": "q"})

    assert tracer.events[0][0] == "create_trace"
    assert tracer.kinds() == ["agent", "generation", "tool", "generation"]
    assert tracer.events[-1][0] == "finalize_trace"


@pytest.mark.asyncio
async def test_tracer_failures_never_affect_the_run(make_runner):
    llm = ScriptedLLM([call("echo", text="x"), text("ok")])
    result = await make_runner(llm, tracer=ExplodingTracer()).run(agent(), args={"query": "q"})

    assert result.success
    assert result.output == "ok"


@pytest.mark.asyncio
async def test_descriptor_is_recorded_on_session(make_runner):
    result = await make_runner(ScriptedLLM([text("ok")])).run(agent(version="v9"), args={"query": "q"})

    descriptor = result.session.descriptor
    assert descriptor["name"] == "tester"
    assert descriptor["version"] == "v9"
    assert len(descriptor["prompt_hash"]) == 64


@pytest.mark.asyncio
async def test_file_tools_use_the_root_session_workspace(make_runner, registry):
    store = FileStore()
    register_file_tools(registry, store)
    llm = ScriptedLLM([
        call("create_file", fileName="notes.md", content="# Notes"),
        text("saved"),
    ])
    result = await make_runner(llm).run(agent(tools=["create_file"]), args={"query": "q"})

    assert not result.session.tool_results()[0].is_error
    assert store.read(result.session.session_id, "notes.md").content == "# Notes"


@pytest.mark.asyncio
async def test_run_agent_uses_the_catalog(make_runner, catalog):
    catalog.register(agent(name="helper"))
    result = await make_runner(ScriptedLLM([text("hello")])).run_agent("helper", "hi")

    assert result.session.agent_name == "helper"
    assert result.session.agent_query == "hi"
