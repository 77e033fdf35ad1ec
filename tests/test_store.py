"""Tests for inbox_agent/storage.py - AssistantStore on SQLite."""

from datetime import timedelta

import pytest
import pytest_asyncio
from conftest import NOW, make_account, make_message

from inbox_agent.exceptions import NotInitializedError
from inbox_agent.models import (
    ActionItem,
    EmailAnalysis,
    Entity,
    EntityType,
    PriorityLevel,
    ProviderType,
    Sentiment,
    record_key,
)
from inbox_agent.storage import AssistantStore, async_database_url, pack_vector, unpack_vector


@pytest_asyncio.fixture
async def store(tmp_path):
    store = AssistantStore(f"sqlite:///{tmp_path / 'data' / 'assistant.db'}")
    await store.initialize()
    yield store
    await store.close()


def make_analysis(email_id="m1", level=PriorityLevel.HIGH):
    return EmailAnalysis(
        email_id=email_id,
        priority_level=level,
        priority_reason="Email from VIP sender",
        entities=[Entity("Acme", EntityType.COMPANY, 0.8)],
        action_items=[ActionItem("Send numbers", PriorityLevel.HIGH, due_date=NOW + timedelta(days=2))],
        sentiment=Sentiment.POSITIVE,
        summary="Numbers needed.",
        related_note_ids=["n1", "n2"],
        deadline=NOW + timedelta(days=2),
        analyzed_at=NOW,
    )


class TestMessages:
    """Tests for message persistence."""

    @pytest.mark.asyncio
    async def test_creates_database_directory(self, tmp_path, store):
        assert (tmp_path / "data" / "assistant.db").exists()

    @pytest.mark.asyncio
    async def test_save_and_get(self, store):
        message = make_message(to=[], provider_metadata={"labels": ["INBOX"]})

        await store.save_message(message)
        loaded = await store.get_message(message.key)

        assert loaded == message

    @pytest.mark.asyncio
    async def test_same_id_in_two_accounts(self, store):
        first = make_message("same", account=make_account("google-1"), subject="First")
        second = make_message("same", account=make_account("google-2"), subject="Second")

        await store.save_message(first)
        await store.save_message(second)

        assert (await store.get_message(first.key)).subject == "First"
        assert (await store.get_message(second.key)).subject == "Second"

    @pytest.mark.asyncio
    async def test_save_replaces(self, store):
        await store.save_message(make_message(subject="Old"))
        await store.save_message(make_message(subject="New"))

        loaded = await store.get_message(make_message().key)

        assert loaded.subject == "New"

    @pytest.mark.asyncio
    async def test_missing_message(self, store):
        assert await store.get_message(record_key(ProviderType.GOOGLE, "google-1", "nope")) is None


class TestAnalyses:
    """Tests for analysis persistence."""

    @pytest.mark.asyncio
    async def test_round_trip(self, store):
        key = make_message().key
        analysis = make_analysis()

        await store.save_analysis(key, analysis)
        loaded = await store.get_analysis(key)

        assert loaded == analysis

    @pytest.mark.asyncio
    async def test_replaced_wholesale(self, store):
        key = make_message().key
        await store.save_analysis(key, make_analysis())
        await store.save_analysis(key, make_analysis(level=PriorityLevel.LOW))

        loaded = await store.get_analysis(key)

        assert loaded.priority_level is PriorityLevel.LOW


class TestAccountsAndEmbeddings:
    """Tests for account records and note embeddings."""

    @pytest.mark.asyncio
    async def test_accounts(self, store):
        google = make_account("google-1")
        microsoft = make_account("microsoft-1", ProviderType.MICROSOFT)
        await store.save_account(google)
        await store.save_account(microsoft)

        await store.delete_account("google-1")
        await store.delete_account("unknown")

        assert await store.list_accounts() == [microsoft]

    @pytest.mark.asyncio
    async def test_embedding(self, store):
        key = record_key("microsoft", "microsoft-1", "n1")

        await store.save_embedding(key, [0.5, -0.25, 1.0])

        assert await store.get_embedding(key) == [0.5, -0.25, 1.0]
        assert await store.get_embedding(record_key("microsoft", "microsoft-1", "n2")) is None

    def test_vector_packing(self):
        blob = pack_vector([1.0, 2.0])
        assert len(blob) == 8
        assert unpack_vector(blob, 2) == [1.0, 2.0]


class TestRetention:
    """Tests for clear_cache retention."""

    @pytest.mark.asyncio
    async def test_recent_rows_kept(self, store):
        await store.save_message(make_message())
        await store.save_embedding(record_key("google", "google-1", "n1"), [1.0])

        assert await store.clear_cache() == 0
        assert await store.get_message(make_message().key) is not None

    @pytest.mark.asyncio
    async def test_stale_rows_removed(self, store):
        await store.save_message(make_message())
        await store.save_embedding(record_key("google", "google-1", "n1"), [1.0])
        await store.save_analysis(make_message().key, make_analysis())

        removed = await store.clear_cache(retention=timedelta(days=-1))

        assert removed == 2
        assert await store.get_message(make_message().key) is None
        assert await store.get_analysis(make_message().key) is not None


@pytest.mark.asyncio
async def test_requires_initialize():
    store = AssistantStore("sqlite://")
    with pytest.raises(NotInitializedError):
        await store.get_message(record_key("google", "google-1", "m1"))


class TestEngine:
    """Tests for async engine setup and teardown."""

    def test_sqlite_urls_use_async_driver(self):
        assert async_database_url("sqlite:///data/assistant.db") == "sqlite+aiosqlite:///data/assistant.db"
        assert async_database_url("sqlite://") == "sqlite+aiosqlite://"
        assert async_database_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"

    @pytest.mark.asyncio
    async def test_in_memory_store_shared_across_sessions(self):
        store = AssistantStore("sqlite://")
        await store.initialize()
        try:
            await store.save_message(make_message())
            assert await store.get_message(make_message().key) is not None
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_closed_store_rejects_calls(self, tmp_path):
        store = AssistantStore(f"sqlite:///{tmp_path / 'assistant.db'}")
        await store.initialize()
        await store.close()
        await store.close()

        with pytest.raises(NotInitializedError):
            await store.list_accounts()

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'assistant.db'}"
        first = AssistantStore(url)
        await first.initialize()
        await first.save_account(make_account("google-1"))
        await first.close()

        second = AssistantStore(url)
        await second.initialize()
        try:
            assert [a.id for a in await second.list_accounts()] == ["google-1"]
        finally:
            await second.close()
