"""Shared test fixtures."""

from typing import Dict, List

import pytest

from patent_guide.api.app import app, get_chat_client, rate_limiter, repository
from patent_guide.services.llm import ChatClient


class FakeChatClient(ChatClient):
    """Chat client that replays canned replies and records every request."""

    def __init__(self, replies=None, error: Exception = None):
        self.replies = list(replies or [])
        self.error = error
        self.requests: List[List[Dict[str, str]]] = []
        self.options: List[Dict[str, float]] = []

    async def chat(self, messages, temperature=0.6, max_tokens=500) -> str:
        self.requests.append(messages)
        self.options.append({"temperature": temperature, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else ""


@pytest.fixture(autouse=True)
def reset_state():
    """Start every test with an empty store and fresh rate-limit windows."""
    repository.clear()
    rate_limiter.reset()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def fake_chat():
    client = FakeChatClient()
    app.dependency_overrides[get_chat_client] = lambda: client
    return client
