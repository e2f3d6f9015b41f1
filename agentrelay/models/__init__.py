"""Message, session and result records."""

from agentrelay.models.messages import (
    ErrorMessage,
    Message,
    ModelTextMessage,
    ModelToolCallMessage,
    ToolResultMessage,
    UserMessage,
    first_user_message,
    messages_from_dicts,
)
from agentrelay.models.session import (
    AgentSession,
    RunResult,
    RunSummary,
    SessionStateError,
    SessionStatus,
    TerminationReason,
)

__all__ = [
    "ErrorMessage",
    "Message",
    "ModelTextMessage",
    "ModelToolCallMessage",
    "ToolResultMessage",
    "UserMessage",
    "first_user_message",
    "messages_from_dicts",
    "AgentSession",
    "RunResult",
    "RunSummary",
    "SessionStateError",
    "SessionStatus",
    "TerminationReason",
]
