"""The agent loop: LLM turns, tool dispatch, handoffs and termination."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from agentrelay.agent.descriptor import AgentDescriptorRegistry
from agentrelay.agent.handoff import (
    HandoffTargetMissingError,
    curate_handoff_transcript,
    handoff_result_message,
    substitute_result,
)
from agentrelay.agent.tracker import SafeTracer, Tracer
from agentrelay.context.run_context import (
    RunCancelledError,
    RunContext,
    reset_current_session,
    set_current_session,
)
from agentrelay.llm.client import LLMCallError, LLMClient, LLMRequest, LLMResponse, LLMTransientError
from agentrelay.llm.llm_setup import (
    ModelResolutionError,
    ModelTier,
    ModelTiers,
    resolve_model,
    tiers_for_context,
)
from agentrelay.models.messages import (
    ErrorMessage,
    Message,
    ModelTextMessage,
    ModelToolCallMessage,
    ToolResultMessage,
    UserMessage,
    first_user_message,
    new_tool_call_id,
)
from agentrelay.models.session import (
    AgentSession,
    RunResult,
    RunSummary,
    SessionStatus,
    TerminationReason,
)
from agentrelay.profiles.base import AgentCatalog, AgentDefinition, HandoffConfig
from agentrelay.tools.base import is_error_result, tool_schema_for_llm
from agentrelay.tools.registry import ToolRegistry
from agentrelay.utils.config import RunnerSettings
from agentrelay.utils.helpers import preview_text
from agentrelay.utils.parsers import OutputParserError, validate_output

SUMMARY_PROMPT = (
    "Summarize the agent run below for the user in a few sentences: what was asked, "
    "what was done, and the outcome. Do not invent details."
)


class HandoffDepthError(RuntimeError):
    """Raised when chained handoffs exceed the configured depth."""


@dataclass
class _RunState:
    definition: AgentDefinition
    session: AgentSession
    context: RunContext
    trace_handle: Any = None
    observation: Any = None
    owns_trace: bool = False
    depth: int = 0
    model: Optional[str] = None
    parent: Optional[AgentSession] = None


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(f"LLM call attempt {retry_state.attempt_number} failed ({exc}); retrying")


async def _call_hook(hook, *args) -> None:
    if hook is None:
        return
    try:
        result = hook(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        logger.warning(f"Agent lifecycle hook {getattr(hook, '__name__', hook)!r} failed: {exc}")


class AgentRunner:
    """Drives one agent definition through its LLM/tool loop.

    All collaborators are passed in; a runner holds no global state and can
    serve any number of concurrent runs.

    Args:
        llm: Client used for every model turn.
        registry: Tool registry used to resolve tool calls.
        catalog: Agent definitions, used to look up handoff targets.
        settings: Retry and timeout limits.
        tracer: Optional tracing backend; failures there never affect a run.
        tiers: Configured models per tier, overridable per run via ``RunContext``.
        surface: Optional ``ToolSurfaceProvider`` adding MCP tools to agents
            that opt in with ``include_mcp_tools``.
    """

    def __init__(
        self,
        llm: LLMClient,
        registry: ToolRegistry,
        catalog: AgentCatalog,
        settings: Optional[RunnerSettings] = None,
        tracer: Optional[Tracer] = None,
        descriptors: Optional[AgentDescriptorRegistry] = None,
        tiers: Optional[ModelTiers] = None,
        surface: Any = None,
        max_handoff_depth: int = 8,
    ):
        self.llm = llm
        self.registry = registry
        self.catalog = catalog
        self.settings = settings or RunnerSettings()
        self.tracer = SafeTracer(tracer)
        self.descriptors = descriptors or AgentDescriptorRegistry()
        self.tiers = tiers or ModelTiers()
        self.surface = surface
        self.max_handoff_depth = max_handoff_depth
        self._active: Dict[str, Tuple[Any, Any]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_agent(self, name: str, query: str, context: Optional[RunContext] = None, **kwargs: Any) -> RunResult:
        """Run the catalog agent ``name`` on a single user query."""
        definition = self.catalog.require(name)
        return await self.run(definition, args={"query": query}, context=context, **kwargs)

    async def run(
        self,
        definition: AgentDefinition,
        initial_messages: Optional[Sequence[Message]] = None,
        args: Optional[Dict[str, Any]] = None,
        context: Optional[RunContext] = None,
        parent_session: Optional[AgentSession] = None,
        _depth: int = 0,
    ) -> RunResult:
        """Run ``definition`` to termination.

        Args:
            definition: The agent to run.
            initial_messages: Seed transcript; defaults to the definition's
                ``prepare_messages`` applied to ``args``.
            args: Call arguments (``query``/``reasoning`` for most agents).
            context: Provider/model identifiers and the cancellation signal.
            parent_session: When given, the new session is recorded as its child.

        Returns:
            The terminal ``RunResult``; ``result.session`` holds the full
            session tree. Errors are reported through the result, never raised.
        """
        args = dict(args or {})
        context = context or RunContext()
        session = AgentSession(
            agent_name=definition.name,
            agent_query=args.get("query"),
            agent_reasoning=args.get("reasoning"),
        )
        if parent_session is not None:
            parent_session.add_nested_session(session)
        if context.session_id is None:
            context = replace(context, session_id=session.session_id)

        descriptor = self.descriptors.describe(definition)
        session.descriptor = descriptor.model_dump()
        state = _RunState(
            definition=definition, session=session, context=context, depth=_depth, parent=parent_session,
        )

        parent_trace = self._active.get(parent_session.session_id) if parent_session is not None else None
        if parent_trace is not None:
            state.trace_handle, parent_observation = parent_trace
        else:
            state.trace_handle = self.tracer.create_trace(
                definition.name,
                metadata={
                    "agent": definition.name,
                    "version": descriptor.version,
                    "prompt_hash": descriptor.prompt_hash,
                    "session_id": session.session_id,
                },
            )
            state.owns_trace = state.trace_handle is not None
            parent_observation = None
        state.observation = self.tracer.create_observation(
            state.trace_handle,
            "agent",
            definition.name,
            parent=parent_observation,
            metadata={
                "tools": definition.tools,
                "handoffs": [h.target_agent_name for h in definition.handoffs],
                "version": descriptor.version,
                "prompt_hash": descriptor.prompt_hash,
            },
        )
        self._active[session.session_id] = (state.trace_handle, state.observation)

        logger.info(f"[{definition.name}] session {session.session_id} started")
        await _call_hook(definition.before_execute, context)

        try:
            result = await self._execute(state, initial_messages, args)
        except RunCancelledError as exc:
            result = self._fail(state, str(exc) or "Run cancelled")
        except (HandoffTargetMissingError, HandoffDepthError, ModelResolutionError, LLMCallError) as exc:
            result = self._fail(state, str(exc))
        except Exception as exc:
            logger.exception(f"[{definition.name}] unexpected error")
            result = self._fail(state, f"Unexpected error: {exc}")
        finally:
            self._active.pop(session.session_id, None)

        if definition.include_summary:
            summary = await self._summarize(state, result)
            if summary is not None:
                result = result.model_copy(update={"summary": summary})

        result = result.model_copy(update={"session": session})
        self.tracer.update_observation(
            state.observation,
            output=result.output if result.success else None,
            error=None if result.success else result.error,
        )
        if state.owns_trace:
            self.tracer.finalize_trace(state.trace_handle, output=result.output, error=result.error)

        await _call_hook(definition.after_execute, result, session, context)
        logger.info(
            f"[{definition.name}] session {session.session_id} finished: "
            f"{result.termination_reason.value} (success={result.success})"
        )
        return result

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _execute(
        self,
        state: _RunState,
        initial_messages: Optional[Sequence[Message]],
        args: Dict[str, Any],
    ) -> RunResult:
        definition, session = state.definition, state.session

        state.model = resolve_model(definition.model, self._tiers_for(state.context))
        tool_context = state.context.with_model(state.model)

        messages = list(initial_messages) if initial_messages is not None else definition.initial_messages(args)
        for message in messages:
            session.append_message(message)

        allowed = await self._allowed_tools(state)
        session.tools = list(allowed)
        schemas = self._tool_schemas(allowed) + definition.handoff_tool_schemas()

        iterations = 0
        while iterations < definition.max_iterations:
            state.context.raise_if_cancelled()
            logger.debug(f"[{definition.name}] iteration {iterations + 1}/{definition.max_iterations}")
            response = await self._call_llm(state, schemas)
            state.context.raise_if_cancelled()

            call = response.function_call
            if call is None:
                text = (response.text or "").strip()
                if not text:
                    session.append_message(ErrorMessage(error="Model returned an empty response"))
                    iterations += 1
                    continue

                session.append_message(ModelTextMessage(text=text))
                if definition.output_schema is not None:
                    try:
                        validate_output(text, definition.output_schema)
                    except OutputParserError as exc:
                        logger.debug(f"[{definition.name}] final answer rejected: {exc.message}")
                        session.append_message(ErrorMessage(
                            error=f"The final answer must be JSON matching the required schema. {exc.message}"
                        ))
                        iterations += 1
                        continue
                return self._complete(state, text)

            call_message = ModelToolCallMessage(
                tool_name=call.name,
                tool_args=call.arguments,
                tool_call_id=call.call_id or new_tool_call_id(),
            )
            session.append_message(call_message)

            handoff = definition.handoff_for_tool(call.name)
            if handoff is not None:
                return await self._handoff(state, handoff, call_message, call.arguments)

            session.append_message(await self._execute_tool(state, call_message, allowed, tool_context))
            iterations += 1

        logger.info(f"[{definition.name}] reached max iterations ({definition.max_iterations})")
        handoff = definition.max_iterations_handoff()
        if handoff is not None:
            return await self._handoff(state, handoff, None, {})

        salvaged = self._salvage(state)
        if salvaged is not None:
            session.finalize(SessionStatus.COMPLETED, TerminationReason.MAX_ITERATIONS)
            return RunResult(
                success=True,
                output=salvaged,
                termination_reason=TerminationReason.MAX_ITERATIONS,
                intermediate_steps=self._steps(state),
            )

        session.finalize(SessionStatus.ERROR, TerminationReason.MAX_ITERATIONS)
        return RunResult(
            success=False,
            error=f"Agent '{definition.name}' reached maximum iterations ({definition.max_iterations}) without a final answer",
            termination_reason=TerminationReason.MAX_ITERATIONS,
            intermediate_steps=self._steps(state),
        )

    # ------------------------------------------------------------------
    # LLM
    # ------------------------------------------------------------------

    async def _call_llm(self, state: _RunState, schemas: List[Dict[str, Any]]) -> LLMResponse:
        definition = state.definition
        request = LLMRequest(
            model=state.model,
            messages=list(state.session.messages),
            system_prompt=definition.instructions,
            tools=schemas,
            temperature=definition.temperature,
        )
        observation = self.tracer.create_observation(
            state.trace_handle,
            "generation",
            definition.name,
            parent=state.observation,
            input=request.messages[-1].model_dump(mode="json") if request.messages else None,
            metadata={"model": state.model, "temperature": definition.temperature},
        )
        try:
            response = await self._call_with_retry(request, state.context)
        except Exception as exc:
            self.tracer.update_observation(observation, error=str(exc))
            raise

        output = response.function_call.name if response.function_call else response.text
        self.tracer.update_observation(observation, output=output)
        return response

    async def _call_with_retry(self, request: LLMRequest, context: RunContext) -> LLMResponse:
        settings = self.settings
        attempts = settings.max_llm_retries + 1
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_exponential(multiplier=settings.llm_retry_base_delay, max=settings.llm_retry_max_delay),
                retry=retry_if_exception_type((LLMTransientError, asyncio.TimeoutError)),
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    context.raise_if_cancelled()
                    return await self._with_timeout(self.llm.call(request), settings.llm_timeout)
        except asyncio.TimeoutError as exc:
            raise LLMCallError(f"LLM call timed out after {attempts} attempt(s)") from exc
        except LLMTransientError as exc:
            raise LLMCallError(f"LLM call failed after {attempts} attempt(s): {exc}") from exc

    async def _summarize(self, state: _RunState, result: RunResult) -> Optional[RunSummary]:
        if result.success:
            kind = "timeout" if result.termination_reason == TerminationReason.MAX_ITERATIONS else "completion"
        else:
            kind = "error"
        lines = [f"{m.kind}: {preview_text(m.model_dump(exclude={'timestamp', 'kind'}), 500)}" for m in state.session.messages]
        lines.append(f"outcome: {preview_text(result.text, 1000)}")
        try:
            model = resolve_model(ModelTier.MINI, self._tiers_for(state.context))
            response = await self._with_timeout(
                self.llm.call(LLMRequest(
                    model=model,
                    system_prompt=SUMMARY_PROMPT,
                    messages=[UserMessage(text="\n".join(lines))],
                )),
                self.settings.llm_timeout,
            )
        except Exception as exc:
            logger.warning(f"[{state.definition.name}] summary generation failed: {exc}")
            return None
        if not response.text:
            return None
        return RunSummary(type=kind, content=response.text.strip())

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def _allowed_tools(self, state: _RunState) -> List[str]:
        definition = state.definition
        names = list(definition.tools)
        if definition.include_mcp_tools and self.surface is not None:
            first_user = first_user_message(state.session.messages)
            previous = state.parent.selected_tool_names if state.parent is not None else None
            names = await self.surface.select(
                names,
                query=first_user.text if first_user else "",
                context=state.context,
                previous=previous,
            )
            state.session.selected_tool_names = list(names)
        return names

    def _tool_schemas(self, allowed: Sequence[str]) -> List[Dict[str, Any]]:
        schemas = []
        for name in allowed:
            tool = self.registry.resolve(name)
            if tool is None:
                logger.debug(f"Tool '{name}' is not registered; not advertised to the model")
                continue
            schemas.append(tool_schema_for_llm(self.registry.name_map.get_sanitized(name), tool))
        return schemas

    async def _execute_tool(
        self,
        state: _RunState,
        call: ModelToolCallMessage,
        allowed: Sequence[str],
        tool_context: RunContext,
    ) -> ToolResultMessage:
        name = call.tool_name
        observation = self.tracer.create_observation(
            state.trace_handle, "tool", name, parent=state.observation, input=call.tool_args,
        )

        canonical = self.registry.canonical_name(name, allowed)
        tool = self.registry.get_registered_tool(canonical) if canonical else None
        if tool is None:
            logger.info(f"[{state.definition.name}] tool '{name}' not found")
            result: Any = {"error": f"Tool '{name}' not found"}
        else:
            logger.debug(f"[{state.definition.name}] calling {canonical}({preview_text(call.tool_args)})")
            timeout = getattr(tool, "timeout", None) or self.settings.tool_timeout
            token = set_current_session(state.session)
            try:
                result = await self._with_timeout(tool.execute(dict(call.tool_args), tool_context), timeout)
            except asyncio.TimeoutError:
                result = {"error": f"Tool '{canonical}' timed out after {timeout}s"}
            except RunCancelledError:
                raise
            except Exception as exc:
                logger.warning(f"[{state.definition.name}] tool '{canonical}' raised: {exc}")
                result = {"error": f"Tool '{canonical}' failed: {exc}"}
            finally:
                reset_current_session(token)

        is_error = tool is None or is_error_result(result)
        self.tracer.update_observation(
            observation,
            output=result,
            error=str(result.get("error")) if is_error and isinstance(result, dict) else None,
        )
        return ToolResultMessage(
            tool_call_id=call.tool_call_id,
            tool_name=canonical or name,
            result_data=result,
            is_error=is_error,
        )

    @staticmethod
    async def _with_timeout(awaitable: Awaitable[Any], timeout: Optional[float]) -> Any:
        """Await a single LLM or tool call, bounded by ``timeout`` seconds.

        The abort signal is not raced here: a call that has started runs to
        completion (or observes the signal itself) and the loop stops at the
        next iteration boundary.
        """
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout)

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    async def _handoff(
        self,
        state: _RunState,
        handoff: HandoffConfig,
        call: Optional[ModelToolCallMessage],
        args: Dict[str, Any],
    ) -> RunResult:
        definition, session = state.definition, state.session
        target = self.catalog.get(handoff.target_agent_name)
        if target is None:
            raise HandoffTargetMissingError(definition.name, handoff.target_agent_name)
        if state.depth >= self.max_handoff_depth:
            raise HandoffDepthError(
                f"Handoff from '{definition.name}' to '{target.name}' exceeds depth {self.max_handoff_depth}"
            )

        logger.info(f"[{definition.name}] handing off to {target.name} ({handoff.trigger.value})")
        observation = self.tracer.create_observation(
            state.trace_handle, "handoff", target.name,
            parent=state.observation, metadata={"from_agent": definition.name},
        )

        original = first_user_message(session.messages)
        child_args = {
            "query": args.get("query") or (original.text if original else ""),
            "reasoning": args.get("reasoning"),
        }
        child = await self.run(
            target,
            initial_messages=curate_handoff_transcript(session.messages, handoff),
            args=child_args,
            context=state.context,
            parent_session=session,
            _depth=state.depth + 1,
        )
        self.tracer.update_observation(observation, output=child.output, error=child.error)

        session.append_message(handoff_result_message(call, target.name, child))
        session.finalize(
            SessionStatus.COMPLETED if child.success else SessionStatus.ERROR,
            TerminationReason.HANDED_OFF,
        )
        return substitute_result(child, self._steps(state))

    def _salvage(self, state: _RunState) -> Optional[str]:
        hook = state.definition.salvage
        if hook is None:
            return None
        try:
            return hook(list(state.session.messages))
        except Exception as exc:
            logger.warning(f"[{state.definition.name}] salvage hook failed: {exc}")
            return None

    def _complete(self, state: _RunState, output: Any) -> RunResult:
        state.session.finalize(SessionStatus.COMPLETED, TerminationReason.FINAL_ANSWER)
        return RunResult(
            success=True,
            output=output,
            termination_reason=TerminationReason.FINAL_ANSWER,
            intermediate_steps=self._steps(state),
        )

    def _fail(self, state: _RunState, error: str) -> RunResult:
        session = state.session
        logger.error(f"[{state.definition.name}] run failed: {error}")
        if not session.is_finalized:
            session.append_message(ErrorMessage(error=error))
            session.finalize(SessionStatus.ERROR, TerminationReason.ERROR)
        return RunResult(
            success=False,
            error=error,
            termination_reason=TerminationReason.ERROR,
            intermediate_steps=self._steps(state),
        )

    def _steps(self, state: _RunState) -> Optional[List[Message]]:
        if not state.definition.include_intermediate_steps:
            return None
        return list(state.session.messages)

    def _tiers_for(self, context: RunContext) -> ModelTiers:
        return tiers_for_context(self.tiers, context)
