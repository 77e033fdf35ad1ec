"""Tests for inbox_agent/llm - adapters, factory and LLMService."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from inbox_agent.config import LLMConfig
from inbox_agent.exceptions import (
    LLMAuthenticationError,
    LLMRateLimitError,
    LLMServiceUnavailableError,
    UnsupportedProviderError,
)
from inbox_agent.llm import (
    DeepSeekAdapter,
    LLMService,
    MockAdapter,
    OpenAIAdapter,
    ResponseCache,
    create_adapter,
)
from inbox_agent.llm.service import translate_error
from inbox_agent.models import ChatMessage, ChatOptions


class StatusError(Exception):
    """Stand-in for an SDK error carrying an HTTP status."""

    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class FailingAdapter(MockAdapter):
    def __init__(self, error):
        super().__init__()
        self.error = error

    async def chat(self, messages, options):
        self.calls.append((messages, options))
        raise self.error


def user(text):
    return [ChatMessage("user", text)]


class TestCreateAdapter:
    """Tests for the adapter factory."""

    def test_openai(self):
        adapter = create_adapter(LLMConfig(provider="openai", api_key="sk-test"))
        assert isinstance(adapter, OpenAIAdapter)
        assert adapter.name == "openai"

    def test_deepseek_uses_its_endpoint(self):
        adapter = create_adapter(LLMConfig(provider="deepseek", api_key="sk-test"))
        assert isinstance(adapter, DeepSeekAdapter)
        assert adapter.base_url == "https://api.deepseek.com"

    def test_mock(self):
        assert isinstance(create_adapter(LLMConfig(provider="mock")), MockAdapter)

    @pytest.mark.parametrize("provider", ["anthropic", "ollama"])
    def test_planned_providers_not_implemented(self, provider):
        with pytest.raises(UnsupportedProviderError, match="not yet implemented"):
            create_adapter(LLMConfig(provider=provider))

    def test_unknown_provider(self):
        with pytest.raises(UnsupportedProviderError, match="Unknown LLM provider"):
            create_adapter(LLMConfig(provider="bogus"))


class TestMockAdapter:
    @pytest.mark.asyncio
    async def test_responses_in_order_last_repeats(self):
        adapter = MockAdapter(responses=["one", "two"])
        options = ChatOptions(model="m")
        replies = [(await adapter.chat(user("x"), options)).content for _ in range(3)]
        assert replies == ["one", "two", "two"]
        assert adapter.call_count == 3

    @pytest.mark.asyncio
    async def test_stream_ends_with_done(self):
        adapter = MockAdapter(responses=["hello world"])
        chunks = [c async for c in adapter.stream(user("x"), ChatOptions(model="m"))]
        assert chunks[-1].done
        assert "".join(c.content for c in chunks).strip() == "hello world"


class TestOpenAIAdapter:
    """Tests for the OpenAI SDK adapter."""

    @pytest.mark.asyncio
    async def test_chat_maps_response(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content="Hi"), finish_reason="stop")],
                usage=SimpleNamespace(prompt_tokens=5, completion_tokens=1, total_tokens=6),
                model="gpt-4",
            )
        )
        adapter = OpenAIAdapter("sk-test", client=client)

        response = await adapter.chat(
            user("Hello"), ChatOptions(model="gpt-4", temperature=0.2, max_tokens=50, stop=["\n"])
        )

        assert response.content == "Hi"
        assert response.usage.total_tokens == 6
        assert response.finish_reason == "stop"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Hello"}]
        assert kwargs["stop"] == ["\n"]
        assert kwargs["max_tokens"] == 50

    @pytest.mark.asyncio
    async def test_stream_yields_deltas(self):
        async def events():
            for text in ["Hel", None, "lo"]:
                yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])

        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=events())
        adapter = OpenAIAdapter("sk-test", client=client)

        chunks = [c async for c in adapter.stream(user("x"), ChatOptions(model="gpt-4"))]

        assert [c.content for c in chunks] == ["Hel", "lo", ""]
        assert chunks[-1].done
        assert client.chat.completions.create.call_args.kwargs["stream"] is True


class TestTranslateError:
    """Tests for mapping provider failures to user-facing errors."""

    def test_status_mapping(self):
        assert isinstance(translate_error(StatusError(429)), LLMRateLimitError)
        assert isinstance(translate_error(StatusError(401)), LLMAuthenticationError)
        assert isinstance(translate_error(StatusError(503)), LLMServiceUnavailableError)

    def test_status_on_response(self):
        error = Exception("wrapped")
        error.response = SimpleNamespace(status_code=429)
        assert isinstance(translate_error(error), LLMRateLimitError)

    def test_other_errors_unchanged(self):
        error = ValueError("bad")
        assert translate_error(error) is error
        bad_request = StatusError(400)
        assert translate_error(bad_request) is bad_request


class TestLLMService:
    """Tests for caching, defaults and error handling in LLMService."""

    @pytest.mark.asyncio
    async def test_identical_requests_hit_cache(self):
        adapter = MockAdapter(responses=["first", "second"])
        service = LLMService(adapter, LLMConfig(provider="mock"))

        a = await service.chat(user("same"))
        b = await service.chat(user("same"))

        assert a.content == b.content == "first"
        assert adapter.call_count == 1

    @pytest.mark.asyncio
    async def test_different_options_miss_cache(self):
        adapter = MockAdapter()
        service = LLMService(adapter, LLMConfig(provider="mock"))

        await service.chat(user("same"), ChatOptions(temperature=0.1))
        await service.chat(user("same"), ChatOptions(temperature=0.9))

        assert adapter.call_count == 2

    @pytest.mark.asyncio
    async def test_cache_disabled(self):
        adapter = MockAdapter()
        service = LLMService(adapter, LLMConfig(provider="mock", enable_cache=False))

        await service.chat(user("same"))
        await service.chat(user("same"))

        assert adapter.call_count == 2

    @pytest.mark.asyncio
    async def test_expired_entries_refetched(self):
        now = [0.0]
        adapter = MockAdapter()
        service = LLMService(
            adapter, LLMConfig(provider="mock"), cache=ResponseCache(10, clock=lambda: now[0])
        )

        await service.chat(user("q"))
        now[0] = 11.0
        await service.chat(user("q"))

        assert adapter.call_count == 2

    @pytest.mark.asyncio
    async def test_defaults_filled_from_config(self):
        adapter = MockAdapter()
        service = LLMService(
            adapter, LLMConfig(provider="mock", model="gpt-x", temperature=0.3, max_tokens=77)
        )

        await service.chat(user("q"), ChatOptions(temperature=0.0))

        _, options = adapter.calls[0]
        assert options.model == "gpt-x"
        assert options.temperature == 0.0
        assert options.max_tokens == 77

    @pytest.mark.asyncio
    async def test_errors_translated(self):
        service = LLMService(FailingAdapter(StatusError(429)), LLMConfig(provider="mock"))
        with pytest.raises(LLMRateLimitError) as exc_info:
            await service.chat(user("q"))
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_failures_not_cached(self):
        adapter = FailingAdapter(StatusError(500))
        service = LLMService(adapter, LLMConfig(provider="mock"))
        for _ in range(2):
            with pytest.raises(LLMServiceUnavailableError):
                await service.chat(user("q"))
        assert adapter.call_count == 2

    @pytest.mark.asyncio
    async def test_untranslated_errors_propagate(self):
        service = LLMService(FailingAdapter(ValueError("broken")), LLMConfig(provider="mock"))
        with pytest.raises(ValueError):
            await service.chat(user("q"))

    @pytest.mark.asyncio
    async def test_ask_adds_system_prompt(self):
        adapter = MockAdapter(responses=["ok"])
        service = LLMService(adapter, LLMConfig(provider="mock"))

        reply = await service.ask("Hello", system="Be brief", temperature=0.1)

        messages, options = adapter.calls[0]
        assert reply == "ok"
        assert [m.role for m in messages] == ["system", "user"]
        assert options.temperature == 0.1

    @pytest.mark.asyncio
    async def test_stream_never_cached(self):
        adapter = MockAdapter(responses=["a b"])
        service = LLMService(adapter, LLMConfig(provider="mock"))

        for _ in range(2):
            chunks = [c async for c in service.stream(user("q"))]
            assert chunks[-1].done

        assert adapter.call_count == 2
        assert len(service.cache) == 0

    @pytest.mark.asyncio
    async def test_clear_cache(self):
        adapter = MockAdapter()
        service = LLMService(adapter, LLMConfig(provider="mock"))
        await service.chat(user("q"))

        service.clear_cache()
        await service.chat(user("q"))

        assert adapter.call_count == 2
