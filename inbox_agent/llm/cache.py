"""Time-bounded response cache for the LLM service."""

import json
import time
from collections.abc import Callable

from inbox_agent.models import ChatMessage, ChatOptions, ChatResponse


def make_cache_key(messages: list[ChatMessage], options: ChatOptions) -> str:
    """Deterministic serialization of a chat request."""
    return json.dumps(
        {"messages": [m.to_dict() for m in messages], "options": options.to_dict()},
        sort_keys=True,
    )


class ResponseCache:
    """Cache of chat responses that expire ``ttl_seconds`` after being stored.

    Args:
        ttl_seconds: Entry lifetime
        clock: Monotonic clock in seconds, injectable for tests
    """

    def __init__(self, ttl_seconds: float = 3600, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[ChatResponse, float]] = {}

    def get(self, key: str) -> ChatResponse | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        response, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return response

    def set(self, key: str, response: ChatResponse) -> None:
        self._entries[key] = (response, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
