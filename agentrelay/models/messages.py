"""Transcript message types.

A transcript is an append-only list of these records. Every
``ModelToolCallMessage`` is followed by the ``ToolResultMessage`` carrying
the same ``tool_call_id`` before the next model turn.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def new_tool_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


class BaseMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.now)


class UserMessage(BaseMessage):
    kind: Literal["user"] = "user"
    text: str


class ModelTextMessage(BaseMessage):
    kind: Literal["model_text"] = "model_text"
    text: str


class ModelToolCallMessage(BaseMessage):
    kind: Literal["model_tool_call"] = "model_tool_call"
    tool_name: str
    tool_args: Dict[str, Any] = Field(default_factory=dict)
    tool_call_id: str = Field(default_factory=new_tool_call_id)


class ToolResultMessage(BaseMessage):
    kind: Literal["tool_result"] = "tool_result"
    tool_call_id: str
    tool_name: str
    result_data: Any = None
    is_error: bool = False


class ErrorMessage(BaseMessage):
    kind: Literal["error"] = "error"
    error: str


Message = Annotated[
    Union[UserMessage, ModelTextMessage, ModelToolCallMessage, ToolResultMessage, ErrorMessage],
    Field(discriminator="kind"),
]

_messages_adapter = TypeAdapter(List[Message])


def messages_from_dicts(data: List[Dict[str, Any]]) -> List[Message]:
    """Rebuild a transcript from its ``model_dump`` form."""
    return _messages_adapter.validate_python(data)


def first_user_message(messages: List[Message]) -> UserMessage | None:
    for message in messages:
        if isinstance(message, UserMessage):
            return message
    return None
