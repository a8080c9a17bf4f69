"""Tests for the chat API clients."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from patent_guide import config
from patent_guide.services import llm
from patent_guide.services.llm import (
    ChatConfigurationError,
    GeminiChatClient,
    OpenAIChatClient,
    create_chat_client,
)

MESSAGES = [
    {"role": "system", "content": "be helpful"},
    {"role": "user", "content": "question"},
    {"role": "assistant", "content": "answer"},
]


def test_openai_client_requires_key(monkeypatch):
    monkeypatch.setattr(config, "OPENAI_API_KEY", None)
    with pytest.raises(ChatConfigurationError):
        OpenAIChatClient()


def test_gemini_client_requires_key(monkeypatch):
    monkeypatch.setattr(config, "GEMINI_API_KEY", None)
    with pytest.raises(ChatConfigurationError):
        GeminiChatClient()


def test_unknown_provider():
    with pytest.raises(ChatConfigurationError):
        create_chat_client("carrier-pigeon")


def test_provider_selection(monkeypatch):
    monkeypatch.setattr(llm.genai, "configure", lambda **kwargs: None)
    monkeypatch.setattr(config, "GEMINI_API_KEY", "gemini-key")
    monkeypatch.setattr(config, "OPENAI_API_KEY", "openai-key")
    assert isinstance(create_chat_client("gemini"), GeminiChatClient)
    assert isinstance(create_chat_client("OpenAI"), OpenAIChatClient)


@pytest.mark.asyncio
async def test_openai_client_returns_first_choice_content():
    client = OpenAIChatClient(api_key="test-key", model="gpt-4")
    create = AsyncMock(return_value=SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="hello there"))]
    ))
    client.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    reply = await client.chat(MESSAGES, temperature=0.6, max_tokens=500)

    assert reply == "hello there"
    create.assert_awaited_once_with(
        model="gpt-4", messages=MESSAGES, temperature=0.6, max_tokens=500
    )


@pytest.mark.asyncio
async def test_openai_client_normalizes_missing_content():
    client = OpenAIChatClient(api_key="test-key")
    create = AsyncMock(return_value=SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=None))]
    ))
    client.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    assert await client.chat(MESSAGES) == ""


@pytest.mark.asyncio
async def test_openai_client_propagates_errors():
    client = OpenAIChatClient(api_key="test-key")
    create = AsyncMock(side_effect=TimeoutError("slow"))
    client.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    with pytest.raises(TimeoutError):
        await client.chat(MESSAGES)


def test_gemini_split_maps_roles(monkeypatch):
    monkeypatch.setattr(llm.genai, "configure", lambda **kwargs: None)
    client = GeminiChatClient(api_key="test-key")
    system, contents = client._split(MESSAGES)
    assert system == "be helpful"
    assert contents == [
        {"role": "user", "parts": ["question"]},
        {"role": "model", "parts": ["answer"]},
    ]


@pytest.mark.asyncio
async def test_gemini_client_sends_system_instruction(monkeypatch):
    monkeypatch.setattr(llm.genai, "configure", lambda **kwargs: None)
    captured = {}

    class FakeModel:
        def __init__(self, name, system_instruction=None):
            captured["name"] = name
            captured["system_instruction"] = system_instruction

        async def generate_content_async(self, contents, generation_config=None):
            captured["contents"] = contents
            captured["generation_config"] = generation_config
            return SimpleNamespace(text="gemini reply")

    monkeypatch.setattr(llm.genai, "GenerativeModel", FakeModel)
    client = GeminiChatClient(api_key="test-key", model="gemini-1.5-flash")

    reply = await client.chat(MESSAGES, temperature=0.6, max_tokens=500)

    assert reply == "gemini reply"
    assert captured["name"] == "gemini-1.5-flash"
    assert captured["system_instruction"] == "be helpful"
    assert captured["generation_config"] == {"temperature": 0.6, "max_output_tokens": 500}


@pytest.mark.asyncio
async def test_lazy_client_builds_on_first_request_only():
    built = []

    class StubClient(llm.ChatClient):
        async def chat(self, messages, temperature=0.6, max_tokens=500):
            return "stub reply"

    def factory():
        built.append(True)
        return StubClient()

    client = llm.LazyChatClient(factory)
    assert built == []
    assert await client.chat(MESSAGES) == "stub reply"
    assert await client.chat(MESSAGES) == "stub reply"
    assert built == [True]


@pytest.mark.asyncio
async def test_lazy_client_raises_configuration_error_on_use(monkeypatch):
    monkeypatch.setattr(config, "CHAT_PROVIDER", "openai")
    monkeypatch.setattr(config, "OPENAI_API_KEY", None)
    client = llm.LazyChatClient()
    with pytest.raises(ChatConfigurationError):
        await client.chat(MESSAGES)
