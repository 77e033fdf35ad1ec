"""
Concrete chat adapters and the adapter factory.

OpenAI and DeepSeek share the OpenAI chat completions wire format, so both
go through ``AsyncOpenAI``; DeepSeek only changes the base URL and model.
"""

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from openai import AsyncOpenAI

from inbox_agent.config import LLMConfig
from inbox_agent.exceptions import UnsupportedProviderError
from inbox_agent.llm.base import LLMAdapter
from inbox_agent.models import ChatChunk, ChatMessage, ChatOptions, ChatResponse, TokenUsage

logger = logging.getLogger(__name__)

DEEPSEEK_BASE_URL = "https://api.deepseek.com"
DEEPSEEK_DEFAULT_MODEL = "deepseek-chat"

# Recognised names that have no adapter yet
PLANNED_PROVIDERS = ("anthropic", "ollama")


class OpenAIAdapter(LLMAdapter):
    """Chat completions through the OpenAI SDK.

    Args:
        api_key: API key
        base_url: Optional OpenAI-compatible endpoint
        client: Preconfigured ``AsyncOpenAI``, mainly for tests
    """

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.base_url = base_url

    @property
    def name(self) -> str:
        return "openai"

    def _request(self, messages: list[ChatMessage], options: ChatOptions) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": options.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        if options.stop:
            request["stop"] = options.stop
        return request

    async def chat(self, messages: list[ChatMessage], options: ChatOptions) -> ChatResponse:
        response = await self.client.chat.completions.create(**self._request(messages, options))

        choice = response.choices[0]
        usage = TokenUsage(
            prompt_tokens=response.usage.prompt_tokens if response.usage else 0,
            completion_tokens=response.usage.completion_tokens if response.usage else 0,
            total_tokens=response.usage.total_tokens if response.usage else 0,
        )
        logger.debug(f"{self.name} response: model={response.model}, tokens={usage.total_tokens}")
        return ChatResponse(
            content=choice.message.content or "",
            model=response.model or options.model,
            usage=usage,
            finish_reason=choice.finish_reason,
        )

    async def stream(self, messages: list[ChatMessage], options: ChatOptions) -> AsyncIterator[ChatChunk]:
        response = await self.client.chat.completions.create(**self._request(messages, options), stream=True)
        async for chunk in response:
            if chunk.choices and chunk.choices[0].delta.content:
                yield ChatChunk(content=chunk.choices[0].delta.content)
        yield ChatChunk(content="", done=True)


class DeepSeekAdapter(OpenAIAdapter):
    """DeepSeek through its OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(api_key, base_url or DEEPSEEK_BASE_URL, client)

    @property
    def name(self) -> str:
        return "deepseek"


class MockAdapter(LLMAdapter):
    """Deterministic adapter for tests and offline runs.

    Args:
        responses: Replies returned in order; the last one repeats
        responder: Alternative to ``responses``: builds a reply from the
            request messages
    """

    def __init__(
        self,
        responses: list[str] | None = None,
        responder: Callable[[list[ChatMessage]], str] | None = None,
        model: str = "mock-model",
    ) -> None:
        self._responses = list(responses or ["mock response"])
        self._responder = responder
        self._model = model
        self.calls: list[tuple[list[ChatMessage], ChatOptions]] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def _next_reply(self, messages: list[ChatMessage]) -> str:
        if self._responder is not None:
            return self._responder(messages)
        index = min(len(self.calls) - 1, len(self._responses) - 1)
        return self._responses[index]

    async def chat(self, messages: list[ChatMessage], options: ChatOptions) -> ChatResponse:
        self.calls.append((messages, options))
        content = self._next_reply(messages)
        tokens = len(content.split())
        return ChatResponse(
            content=content,
            model=options.model or self._model,
            usage=TokenUsage(prompt_tokens=0, completion_tokens=tokens, total_tokens=tokens),
            finish_reason="stop",
        )

    async def stream(self, messages: list[ChatMessage], options: ChatOptions) -> AsyncIterator[ChatChunk]:
        self.calls.append((messages, options))
        for word in self._next_reply(messages).split(" "):
            yield ChatChunk(content=word + " ")
        yield ChatChunk(content="", done=True)


def create_adapter(config: LLMConfig) -> LLMAdapter:
    """Build the adapter named by ``config.provider``.

    Raises:
        UnsupportedProviderError: For planned or unknown providers
    """
    provider = config.provider.lower()
    if provider == "openai":
        return OpenAIAdapter(config.api_key, config.base_url)
    if provider == "deepseek":
        return DeepSeekAdapter(config.api_key, config.base_url)
    if provider == "mock":
        return MockAdapter()
    if provider in PLANNED_PROVIDERS:
        raise UnsupportedProviderError(provider, f"LLM provider '{provider}' is not yet implemented")
    raise UnsupportedProviderError(provider, f"Unknown LLM provider: {config.provider}")
