"""
Chat adapter interface.

Each adapter wraps one vendor chat API. The ``LLMService`` is the only caller;
it adds caching, rate limiting and error translation on top.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from inbox_agent.models import ChatChunk, ChatMessage, ChatOptions, ChatResponse


class LLMAdapter(ABC):
    """Abstract base class for chat model adapters."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in configuration (e.g. "openai")."""
        pass

    @abstractmethod
    async def chat(self, messages: list[ChatMessage], options: ChatOptions) -> ChatResponse:
        """Generate one completion.

        ``options`` arrives fully resolved: model, temperature and
        max_tokens are never None.
        """
        pass

    @abstractmethod
    def stream(self, messages: list[ChatMessage], options: ChatOptions) -> AsyncIterator[ChatChunk]:
        """Yield content chunks; the last chunk has ``done=True``."""
        pass
