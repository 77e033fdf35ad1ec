"""Provider-pluggable chat access with caching and rate limiting."""

from inbox_agent.llm.adapters import DeepSeekAdapter, MockAdapter, OpenAIAdapter, create_adapter
from inbox_agent.llm.base import LLMAdapter
from inbox_agent.llm.cache import ResponseCache, make_cache_key
from inbox_agent.llm.rate_limiter import SlidingWindowRateLimiter
from inbox_agent.llm.service import LLMService, translate_error

__all__ = [
    "DeepSeekAdapter",
    "LLMAdapter",
    "LLMService",
    "MockAdapter",
    "OpenAIAdapter",
    "ResponseCache",
    "SlidingWindowRateLimiter",
    "create_adapter",
    "make_cache_key",
    "translate_error",
]
