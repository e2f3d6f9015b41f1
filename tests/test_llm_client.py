"""Tests for the chat-completions client."""

import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from agentrelay.llm.client import (
    LLMCallError,
    LLMRequest,
    LLMTransientError,
    OpenAIChatClient,
    build_chat_messages,
)
from agentrelay.models.messages import (
    ErrorMessage,
    ModelTextMessage,
    ModelToolCallMessage,
    ToolResultMessage,
    UserMessage,
)


class FakeCompletions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return self.response


def fake_openai(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def completion(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def tool_call(name, arguments, call_id="call_1"):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def test_build_chat_messages_pairs_calls_and_results():
    chat = build_chat_messages("system", [
        UserMessage(text="q"),
        ModelToolCallMessage(tool_name="echo", tool_args={"a": 1}, tool_call_id="c1"),
        ToolResultMessage(tool_call_id="c1", tool_name="echo", result_data={"ok": True}),
        ErrorMessage(error="bad answer"),
        ModelTextMessage(text="done"),
    ])

    assert [m["role"] for m in chat] == ["system", "user", "assistant", "tool", "user", "assistant"]
    assert json.loads(chat[2]["tool_calls"][0]["function"]["arguments"]) == {"a": 1}
    assert chat[3]["tool_call_id"] == "c1"
    assert json.loads(chat[3]["content"]) == {"ok": True}
    assert chat[4]["content"] == "Error: bad answer"


def test_orphan_tool_results_become_user_text():
    chat = build_chat_messages("", [
        UserMessage(text="q"),
        ToolResultMessage(tool_call_id="elsewhere", tool_name="search", result_data="found it"),
    ])

    assert chat[1] == {"role": "user", "content": "Result from search:\nfound it"}


@pytest.mark.asyncio
async def test_call_returns_text():
    completions = FakeCompletions(completion(content="hello"))
    client = OpenAIChatClient(fake_openai(completions))

    response = await client.call(LLMRequest(model="m", messages=[UserMessage(text="hi")], temperature=0.2))

    assert response.text == "hello"
    assert response.function_call is None
    assert completions.kwargs["temperature"] == 0.2
    assert "tools" not in completions.kwargs


@pytest.mark.asyncio
async def test_call_returns_first_function_call():
    completions = FakeCompletions(completion(tool_calls=[
        tool_call("search", '{"q": "x"}', "a"),
        tool_call("fetch", "{}", "b"),
    ]))
    client = OpenAIChatClient(fake_openai(completions))
    tools = [{"type": "function", "function": {"name": "search", "parameters": {}}}]

    response = await client.call(LLMRequest(model="m", messages=[UserMessage(text="hi")], tools=tools))

    assert response.function_call.name == "search"
    assert response.function_call.arguments == {"q": "x"}
    assert response.function_call.call_id == "a"
    assert completions.kwargs["tool_choice"] == "auto"
    assert completions.kwargs["parallel_tool_calls"] is False


@pytest.mark.asyncio
async def test_malformed_arguments_become_empty():
    completions = FakeCompletions(completion(tool_calls=[tool_call("search", "{not json")]))
    response = await OpenAIChatClient(fake_openai(completions)).call(LLMRequest(model="m", messages=[]))

    assert response.function_call.arguments == {}


@pytest.mark.asyncio
async def test_connection_errors_are_transient():
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://example.com/v1/chat/completions"))
    client = OpenAIChatClient(fake_openai(FakeCompletions(error=error)))

    with pytest.raises(LLMTransientError):
        await client.call(LLMRequest(model="m", messages=[]))


@pytest.mark.asyncio
async def test_empty_choices_fail():
    client = OpenAIChatClient(fake_openai(FakeCompletions(SimpleNamespace(choices=[]))))

    with pytest.raises(LLMCallError, match="no choices"):
        await client.call(LLMRequest(model="m", messages=[]))
