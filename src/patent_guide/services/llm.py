"""Chat completion clients used to drive the guided conversation."""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

import google.generativeai as genai
import structlog
from openai import AsyncOpenAI

from .. import config

logger = structlog.get_logger()


class ChatConfigurationError(RuntimeError):
    """Raised when a chat provider is selected without the settings it needs."""


class ChatClient(ABC):
    """Sends an ordered ``{role, content}`` list and returns the reply text."""

    @abstractmethod
    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = config.CHAT_TEMPERATURE,
        max_tokens: int = config.CHAT_MAX_TOKENS,
    ) -> str:
        pass


class OpenAIChatClient(ChatClient):
    """OpenAI chat completions."""

    def __init__(self, api_key: Optional[str] = None, model: str = config.OPENAI_MODEL):
        api_key = api_key or config.OPENAI_API_KEY
        if not api_key:
            logger.error("openai_api_key_missing")
            raise ChatConfigurationError("OpenAI API key missing!")
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key)
        logger.info("chat_client_init", provider="openai", model=model)

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = config.CHAT_TEMPERATURE,
        max_tokens: int = config.CHAT_MAX_TOKENS,
    ) -> str:
        logger.debug("chat_request", provider="openai", messages=len(messages),
                     temperature=temperature, max_tokens=max_tokens)
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            logger.error("chat_request_failed", provider="openai",
                         error_type=type(e).__name__, error=str(e))
            raise
        content = response.choices[0].message.content or ""
        logger.debug("chat_response", provider="openai", length=len(content))
        return content


class GeminiChatClient(ChatClient):
    """Google Gemini, with the leading system message sent as the system instruction."""

    ROLE_MAP = {"user": "user", "assistant": "model"}

    def __init__(self, api_key: Optional[str] = None, model: str = config.GEMINI_MODEL):
        api_key = api_key or config.GEMINI_API_KEY
        if not api_key:
            logger.error("gemini_api_key_missing")
            raise ChatConfigurationError("Gemini API key missing!")
        genai.configure(api_key=api_key)
        self.model_name = model
        logger.info("chat_client_init", provider="gemini", model=model)

    def _split(self, messages: List[Dict[str, str]]):
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        contents = [
            {"role": self.ROLE_MAP[m["role"]], "parts": [m["content"]]}
            for m in messages
            if m["role"] in self.ROLE_MAP
        ]
        return system or None, contents

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = config.CHAT_TEMPERATURE,
        max_tokens: int = config.CHAT_MAX_TOKENS,
    ) -> str:
        system, contents = self._split(messages)
        model = genai.GenerativeModel(self.model_name, system_instruction=system)
        logger.debug("chat_request", provider="gemini", messages=len(contents),
                     temperature=temperature, max_tokens=max_tokens)
        try:
            response = await model.generate_content_async(
                contents,
                generation_config={"temperature": temperature, "max_output_tokens": max_tokens},
            )
        except Exception as e:
            logger.error("chat_request_failed", provider="gemini",
                         error_type=type(e).__name__, error=str(e))
            raise
        content = response.text or ""
        logger.debug("chat_response", provider="gemini", length=len(content))
        return content


def create_chat_client(provider: Optional[str] = None) -> ChatClient:
    """Build the chat client selected by ``CHAT_PROVIDER``."""
    provider = (provider or config.CHAT_PROVIDER).lower()
    if provider == "openai":
        return OpenAIChatClient()
    if provider == "gemini":
        return GeminiChatClient()
    raise ChatConfigurationError(f"Unknown chat provider: {provider}")


class LazyChatClient(ChatClient):
    """Defers building the real client until the first request needs it.

    Configuration errors surface from ``chat`` instead of at construction, so
    turns that never reach the model work without provider settings.
    """

    def __init__(self, factory: Callable[[], ChatClient] = create_chat_client):
        self._factory = factory
        self._client: Optional[ChatClient] = None

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = config.CHAT_TEMPERATURE,
        max_tokens: int = config.CHAT_MAX_TOKENS,
    ) -> str:
        if self._client is None:
            self._client = self._factory()
        return await self._client.chat(messages, temperature=temperature, max_tokens=max_tokens)
