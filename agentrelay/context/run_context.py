"""Per-run execution context handed to the runner, the LLM client and tools."""

from __future__ import annotations

import asyncio
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from loguru import logger

if TYPE_CHECKING:
    from agentrelay.models.session import AgentSession

# Session currently executing a tool call. Tools that spawn sub-agents use it
# to attach their child sessions without explicit parameter passing.
_current_session: ContextVar[Optional["AgentSession"]] = ContextVar(
    "current_agent_session",
    default=None,
)


def get_current_session() -> Optional["AgentSession"]:
    """Return the session whose tool call is currently executing, if any."""
    return _current_session.get()


def set_current_session(session: Optional["AgentSession"]):
    """Bind ``session`` as current; returns the token for ``reset_current_session``."""
    return _current_session.set(session)


def reset_current_session(token) -> None:
    _current_session.reset(token)


class RunCancelledError(Exception):
    """Raised when a run observes its cancellation signal."""


@dataclass
class RunContext:
    """Provider/model identifiers, cancellation and capability probes for one run.

    ``model`` is the model the current agent resolved to; ``main_model``,
    ``mini_model`` and ``nano_model`` are the configured tiers used for model
    resolution and by tools that make their own LLM calls.
    """

    provider: str = "openai"
    model: Optional[str] = None
    main_model: Optional[str] = None
    mini_model: Optional[str] = None
    nano_model: Optional[str] = None
    abort_signal: asyncio.Event = field(default_factory=asyncio.Event)
    get_vision_capability: Optional[Callable[[str], bool]] = None
    session_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.abort_signal.is_set()

    def cancel(self) -> None:
        """Signal cooperative cancellation to the runner and every tool sharing this context."""
        self.abort_signal.set()

    def raise_if_cancelled(self) -> None:
        if self.abort_signal.is_set():
            raise RunCancelledError("Run cancelled")

    def supports_vision(self, model: Optional[str] = None) -> bool:
        """Ask the configured probe whether ``model`` (default: current model) accepts images."""
        target = model or self.model
        if self.get_vision_capability is None or not target:
            return False
        try:
            return bool(self.get_vision_capability(target))
        except Exception as exc:
            logger.warning(f"Vision capability probe failed for {target}: {exc}")
            return False

    def with_model(self, model: str) -> "RunContext":
        """Copy of this context bound to ``model``; the abort signal is shared."""
        return replace(self, model=model)
