"""Best-effort tracing for agent runs.

The runner talks to a ``Tracer`` through ``SafeTracer``: every tracer call is
wrapped so a failing backend is logged and never affects the run.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Protocol

from agents.tracing.create import agent_span, function_span, generation_span, handoff_span, trace
from loguru import logger

from agentrelay.utils.helpers import preview_text, serialize_content

OBSERVATION_KINDS = ("agent", "generation", "tool", "handoff")


class Tracer(Protocol):
    def create_trace(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> Any:
        ...

    def create_observation(
        self,
        trace_handle: Any,
        kind: str,
        name: str,
        *,
        parent: Any = None,
        input: Any = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Any:
        ...

    def update_observation(self, observation: Any, *, output: Any = None, error: Optional[str] = None) -> None:
        ...

    def finalize_trace(self, trace_handle: Any, *, output: Any = None, error: Optional[str] = None) -> None:
        ...


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return serialize_content(value)


class AgentsTracer:
    """``Tracer`` backed by the openai-agents tracing processors.

    Spans are created with explicit parents and never marked current, so
    concurrent sessions in different tasks do not interleave.
    """

    def __init__(self, workflow_name: str = "agentrelay"):
        self.workflow_name = workflow_name

    def create_trace(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> Any:
        handle = trace(
            workflow_name=f"{self.workflow_name}:{name}",
            metadata={k: str(v) for k, v in (metadata or {}).items()},
        )
        handle.start()
        return handle

    def create_observation(
        self,
        trace_handle: Any,
        kind: str,
        name: str,
        *,
        parent: Any = None,
        input: Any = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Any:
        metadata = metadata or {}
        owner = parent or trace_handle
        if kind == "agent":
            span = agent_span(
                name=name,
                tools=list(metadata.get("tools") or []),
                handoffs=list(metadata.get("handoffs") or []),
                parent=owner,
            )
        elif kind == "generation":
            span = generation_span(
                input=[{"role": "user", "content": preview_text(input, 2000)}] if input is not None else None,
                model=metadata.get("model"),
                model_config={k: v for k, v in metadata.items() if k != "model"},
                parent=owner,
            )
        elif kind == "tool":
            span = function_span(name=name, input=json.dumps(input, default=str) if input is not None else None, parent=owner)
        elif kind == "handoff":
            span = handoff_span(from_agent=metadata.get("from_agent"), to_agent=name, parent=owner)
        else:
            raise ValueError(f"Unknown observation kind: {kind}")
        span.start()
        return span

    def update_observation(self, observation: Any, *, output: Any = None, error: Optional[str] = None) -> None:
        data = observation.span_data
        if output is not None and hasattr(data, "output"):
            text = _as_text(output)
            data.output = [{"role": "assistant", "content": text}] if data.type == "generation" else text
        if error:
            observation.set_error({"message": error, "data": None})
        observation.finish()

    def finalize_trace(self, trace_handle: Any, *, output: Any = None, error: Optional[str] = None) -> None:
        if error:
            logger.debug(f"Trace {trace_handle.trace_id} finished with error: {preview_text(error)}")
        trace_handle.finish()


class SafeTracer:
    """Wraps an optional ``Tracer`` so tracing failures never propagate."""

    def __init__(self, tracer: Optional[Tracer] = None):
        self.tracer = tracer

    @property
    def enabled(self) -> bool:
        return self.tracer is not None

    def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        if self.tracer is None:
            return None
        try:
            return getattr(self.tracer, method)(*args, **kwargs)
        except Exception as exc:
            logger.warning(f"Tracing call {method} failed: {exc}")
            return None

    def create_trace(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> Any:
        return self._call("create_trace", name, metadata)

    def create_observation(self, trace_handle: Any, kind: str, name: str, **kwargs: Any) -> Any:
        if trace_handle is None and kwargs.get("parent") is None:
            return None
        return self._call("create_observation", trace_handle, kind, name, **kwargs)

    def update_observation(self, observation: Any, **kwargs: Any) -> None:
        if observation is not None:
            self._call("update_observation", observation, **kwargs)

    def finalize_trace(self, trace_handle: Any, **kwargs: Any) -> None:
        if trace_handle is not None:
            self._call("finalize_trace", trace_handle, **kwargs)
