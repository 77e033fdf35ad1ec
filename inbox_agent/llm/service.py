"""
LLM Service: the single choke point for model calls.

Request path for ``chat``:
1. Build a cache key from (messages, options)
2. Return the cached response if it is younger than the TTL
3. Otherwise wait for a rate limiter slot, call the adapter, cache the result

Usage:
    service = LLMService.from_config(config.llm)
    reply = await service.ask("Summarize this email", system="You are terse")
"""

import logging
from collections.abc import AsyncIterator
from dataclasses import replace

from inbox_agent.config import LLMConfig
from inbox_agent.exceptions import (
    LLMAuthenticationError,
    LLMRateLimitError,
    LLMServiceUnavailableError,
)
from inbox_agent.llm.adapters import create_adapter
from inbox_agent.llm.base import LLMAdapter
from inbox_agent.llm.cache import ResponseCache, make_cache_key
from inbox_agent.llm.rate_limiter import SlidingWindowRateLimiter
from inbox_agent.models import ChatChunk, ChatMessage, ChatOptions, ChatResponse

logger = logging.getLogger(__name__)


def _status_code(error: Exception) -> int | None:
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def translate_error(error: Exception) -> Exception:
    """Map provider HTTP failures to the three user-facing categories.

    Anything else is returned unchanged.
    """
    status = _status_code(error)
    if status == 429:
        return LLMRateLimitError()
    if status == 401:
        return LLMAuthenticationError()
    if status is not None and 500 <= status < 600:
        return LLMServiceUnavailableError(status_code=status)
    return error


class LLMService:
    """Cached, rate-limited access to one chat adapter.

    Args:
        adapter: Chat adapter that performs the calls
        config: Default model options and cache/limit settings
        cache: Override for the response cache
        rate_limiter: Override for the rate limiter
    """

    def __init__(
        self,
        adapter: LLMAdapter,
        config: LLMConfig | None = None,
        *,
        cache: ResponseCache | None = None,
        rate_limiter: SlidingWindowRateLimiter | None = None,
    ) -> None:
        self.adapter = adapter
        self.config = config or LLMConfig()
        self.cache = cache or ResponseCache(self.config.cache_ttl_seconds)
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(
            self.config.max_requests_per_minute, 60.0
        )

    @classmethod
    def from_config(cls, config: LLMConfig) -> "LLMService":
        return cls(create_adapter(config), config)

    def _resolve(self, options: ChatOptions) -> ChatOptions:
        return replace(
            options,
            model=options.model or self.config.model,
            temperature=self.config.temperature if options.temperature is None else options.temperature,
            max_tokens=options.max_tokens or self.config.max_tokens,
        )

    async def chat(self, messages: list[ChatMessage], options: ChatOptions | None = None) -> ChatResponse:
        """Send a chat request, served from cache when possible.

        Raises:
            LLMRateLimitError: Provider returned 429
            LLMAuthenticationError: Provider returned 401
            LLMServiceUnavailableError: Provider returned 5xx
        """
        options = options or ChatOptions()
        key = make_cache_key(messages, options)

        if self.config.enable_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("LLM cache hit")
                return cached

        await self.rate_limiter.acquire()
        try:
            response = await self.adapter.chat(messages, self._resolve(options))
        except Exception as e:
            translated = translate_error(e)
            if translated is e:
                raise
            logger.error(f"{self.adapter.name} call failed: {translated}")
            raise translated from e

        if self.config.enable_cache:
            self.cache.set(key, response)
        return response

    async def stream(
        self, messages: list[ChatMessage], options: ChatOptions | None = None
    ) -> AsyncIterator[ChatChunk]:
        """Stream a reply chunk by chunk. Streams are never cached."""
        options = self._resolve(options or ChatOptions())
        await self.rate_limiter.acquire()
        try:
            async for chunk in self.adapter.stream(messages, options):
                yield chunk
        except Exception as e:
            translated = translate_error(e)
            if translated is e:
                raise
            raise translated from e

    async def ask(self, prompt: str, system: str | None = None, **options) -> str:
        """Single-turn convenience wrapper returning only the reply text."""
        messages = [ChatMessage("system", system)] if system else []
        messages.append(ChatMessage("user", prompt))
        response = await self.chat(messages, ChatOptions(**options))
        return response.content

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("LLM response cache cleared")
