"""Agent session and run result records."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from agentrelay.models.messages import (
    Message,
    ModelToolCallMessage,
    ToolResultMessage,
)


class SessionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class TerminationReason(str, Enum):
    FINAL_ANSWER = "final_answer"
    MAX_ITERATIONS = "max_iterations"
    ERROR = "error"
    HANDED_OFF = "handed_off"


class SessionStateError(RuntimeError):
    """Raised when a session is finalized twice."""


class AgentSession(BaseModel):
    """Observable record of one agent run, including nested child runs.

    ``messages`` only grows through ``append_message``. ``end_time`` is set
    exactly when the session leaves ``running``.
    """

    model_config = ConfigDict(validate_assignment=False)

    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    agent_name: str
    agent_query: Optional[str] = None
    agent_reasoning: Optional[str] = None
    parent_session_id: Optional[str] = None
    status: SessionStatus = SessionStatus.RUNNING
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    messages: List[Message] = Field(default_factory=list)
    nested_sessions: List["AgentSession"] = Field(default_factory=list)
    termination_reason: Optional[TerminationReason] = None
    descriptor: Optional[Dict[str, Any]] = None
    tools: List[str] = Field(default_factory=list)
    selected_tool_names: Optional[List[str]] = None

    _finalized: bool = PrivateAttr(default=False)

    def append_message(self, message: Message) -> None:
        if self._finalized:
            raise SessionStateError(f"Session {self.session_id} is finalized; cannot append messages")
        self.messages.append(message)

    def add_nested_session(self, child: "AgentSession") -> None:
        child.parent_session_id = self.session_id
        self.nested_sessions.append(child)

    def finalize(self, status: SessionStatus, reason: TerminationReason) -> None:
        if self._finalized:
            raise SessionStateError(f"Session {self.session_id} is already finalized")
        if status == SessionStatus.RUNNING:
            raise SessionStateError("A session cannot be finalized as running")
        self.status = status
        self.termination_reason = reason
        self.end_time = datetime.now()
        self._finalized = True

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def tool_calls(self) -> List[ModelToolCallMessage]:
        return [m for m in self.messages if isinstance(m, ModelToolCallMessage)]

    def tool_results(self) -> List[ToolResultMessage]:
        return [m for m in self.messages if isinstance(m, ToolResultMessage)]

    def walk(self) -> Iterator["AgentSession"]:
        """Depth-first iteration over this session and all nested sessions."""
        yield self
        for child in self.nested_sessions:
            yield from child.walk()

    def find_nested(self, agent_name: str) -> Optional["AgentSession"]:
        for session in self.walk():
            if session is not self and session.agent_name == agent_name:
                return session
        return None


class RunSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = Field(description="completion, error or timeout")
    content: str


class RunResult(BaseModel):
    """Terminal outcome of one run, returned to the caller."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    output: Optional[Any] = None
    error: Optional[str] = None
    termination_reason: TerminationReason
    summary: Optional[RunSummary] = None
    intermediate_steps: Optional[List[Message]] = None
    session: Optional[AgentSession] = Field(default=None, exclude=True)

    @property
    def text(self) -> str:
        """Output (or error) rendered as plain text."""
        if self.success:
            if isinstance(self.output, str):
                return self.output
            if isinstance(self.output, BaseModel):
                return self.output.model_dump_json(indent=2)
            return "" if self.output is None else str(self.output)
        return self.error or ""


AgentSession.model_rebuild()
