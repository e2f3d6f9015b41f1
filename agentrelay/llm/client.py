"""LLM client contract and an OpenAI-compatible chat-completions implementation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

import openai
from loguru import logger
from openai import AsyncOpenAI

from agentrelay.models.messages import (
    ErrorMessage,
    Message,
    ModelTextMessage,
    ModelToolCallMessage,
    ToolResultMessage,
    UserMessage,
)
from agentrelay.utils.helpers import preview_text, serialize_content


class LLMCallError(Exception):
    """Raised when an LLM call fails."""


class LLMTransientError(LLMCallError):
    """Raised for failures worth retrying: connection, timeout, rate limit, 5xx."""


@dataclass
class FunctionCall:
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    call_id: Optional[str] = None


@dataclass
class LLMResponse:
    """One model turn: either text, a single function call, or both empty."""

    text: Optional[str] = None
    function_call: Optional[FunctionCall] = None
    raw: Any = None


@dataclass
class LLMRequest:
    model: str
    messages: Sequence[Message]
    system_prompt: str = ""
    tools: List[Dict[str, Any]] = field(default_factory=list)
    temperature: Optional[float] = None


class LLMClient(Protocol):
    async def call(self, request: LLMRequest) -> LLMResponse:
        ...


def build_chat_messages(system_prompt: str, messages: Sequence[Message]) -> List[Dict[str, Any]]:
    """Convert a transcript into chat-completions messages.

    Tool results whose call is not part of ``messages`` (curated handoff
    transcripts) are rendered as user text, since the API rejects orphan
    ``tool`` messages.
    """
    chat: List[Dict[str, Any]] = []
    if system_prompt:
        chat.append({"role": "system", "content": system_prompt})

    seen_call_ids = set()
    for message in messages:
        if isinstance(message, UserMessage):
            chat.append({"role": "user", "content": message.text})
        elif isinstance(message, ModelTextMessage):
            chat.append({"role": "assistant", "content": message.text})
        elif isinstance(message, ModelToolCallMessage):
            seen_call_ids.add(message.tool_call_id)
            chat.append({
                "role": "assistant",
                "content": None,
                "tool_calls": [{
                    "id": message.tool_call_id,
                    "type": "function",
                    "function": {
                        "name": message.tool_name,
                        "arguments": json.dumps(message.tool_args),
                    },
                }],
            })
        elif isinstance(message, ToolResultMessage):
            content = serialize_content(message.result_data)
            if message.tool_call_id in seen_call_ids:
                chat.append({"role": "tool", "tool_call_id": message.tool_call_id, "content": content})
            else:
                chat.append({"role": "user", "content": f"Result from {message.tool_name}:\n{content}"})
        elif isinstance(message, ErrorMessage):
            chat.append({"role": "user", "content": f"Error: {message.error}"})
    return chat


def _parse_arguments(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Model returned malformed tool arguments: {preview_text(raw)}")
        return {}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


class OpenAIChatClient:
    """``LLMClient`` backed by ``AsyncOpenAI.chat.completions``.

    Works with any OpenAI-compatible endpoint. Only the first tool call of a
    response is used; the runner executes tools strictly one at a time.
    """

    def __init__(self, client: AsyncOpenAI, parallel_tool_calls: Optional[bool] = False):
        self.client = client
        self.parallel_tool_calls = parallel_tool_calls

    async def call(self, request: LLMRequest) -> LLMResponse:
        kwargs: Dict[str, Any] = {
            "model": request.model,
            "messages": build_chat_messages(request.system_prompt, request.messages),
        }
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.tools:
            kwargs["tools"] = request.tools
            kwargs["tool_choice"] = "auto"
            if self.parallel_tool_calls is not None:
                kwargs["parallel_tool_calls"] = self.parallel_tool_calls

        try:
            completion = await self.client.chat.completions.create(**kwargs)
        except (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError) as exc:
            raise LLMTransientError(f"{type(exc).__name__}: {exc}") from exc
        except openai.APIError as exc:
            raise LLMCallError(f"{type(exc).__name__}: {exc}") from exc

        if not completion.choices:
            raise LLMCallError("LLM returned no choices")

        message = completion.choices[0].message
        tool_calls = message.tool_calls or []
        function_call = None
        if tool_calls:
            if len(tool_calls) > 1:
                logger.debug(f"Model returned {len(tool_calls)} tool calls; using the first")
            first = tool_calls[0]
            function_call = FunctionCall(
                name=first.function.name,
                arguments=_parse_arguments(first.function.arguments),
                call_id=first.id,
            )

        return LLMResponse(text=message.content, function_call=function_call, raw=completion)
