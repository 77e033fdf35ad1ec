"""
Embedded datastore for messages, analyses, accounts and note embeddings.

SQLite through SQLModel on an async engine (aiosqlite), so persistence never
blocks the event loop. Every record is keyed by (provider_type, account_id,
id) because vendor ids are only unique inside one account. Payloads are
stored as JSON so the schema does not follow every model field.

Example:
    >>> store = AssistantStore("sqlite:///assistant.db")
    >>> await store.initialize()
    >>> await store.save_message(message)
    >>> await store.get_message(message.key)
"""

import json
import logging
import struct
from datetime import UTC, datetime, timedelta
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from inbox_agent.exceptions import NotInitializedError
from inbox_agent.models import AccountInfo, EmailAnalysis, Message, RecordKey

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=7)


def _utcnow() -> datetime:
    # SQLite DateTime columns are naive; everything stored is UTC
    return datetime.now(UTC).replace(tzinfo=None)


class StoredMessage(SQLModel, table=True):
    """Raw message as fetched from a provider."""

    __tablename__ = "emails"

    provider_type: str = Field(primary_key=True)
    account_id: str = Field(primary_key=True)
    message_id: str = Field(primary_key=True)
    subject: str = ""
    sender: str = Field(default="", index=True)
    received_at: datetime
    payload: str
    stored_at: datetime = Field(default_factory=_utcnow, index=True)


class StoredAnalysis(SQLModel, table=True):
    __tablename__ = "email_analysis"

    provider_type: str = Field(primary_key=True)
    account_id: str = Field(primary_key=True)
    email_id: str = Field(primary_key=True)
    priority_level: str = Field(index=True)
    payload: str
    analyzed_at: datetime


class StoredAccount(SQLModel, table=True):
    __tablename__ = "accounts"

    account_id: str = Field(primary_key=True)
    provider_type: str
    email: str
    name: str = ""
    avatar_url: str | None = None
    updated_at: datetime = Field(default_factory=_utcnow)


class NoteEmbedding(SQLModel, table=True):
    """Embedding vector of a note, packed as little-endian float32."""

    __tablename__ = "embeddings"

    provider_type: str = Field(primary_key=True)
    account_id: str = Field(primary_key=True)
    note_id: str = Field(primary_key=True)
    dimensions: int
    vector: bytes
    created_at: datetime = Field(default_factory=_utcnow, index=True)


def pack_vector(vector: list[float]) -> bytes:
    return struct.pack(f"<{len(vector)}f", *vector)


def unpack_vector(blob: bytes, dimensions: int) -> list[float]:
    return list(struct.unpack(f"<{dimensions}f", blob))


def async_database_url(database_url: str) -> str:
    """Select the aiosqlite driver for plain ``sqlite://`` URLs."""
    if database_url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + database_url.removeprefix("sqlite://")
    return database_url


class AssistantStore:
    """Key-value style access to the embedded database.

    Args:
        database_url: SQLAlchemy URL, normally ``sqlite:///<path>``; a bare
            ``sqlite://`` is an in-memory database
    """

    def __init__(self, database_url: str = "sqlite://") -> None:
        self.database_url = async_database_url(database_url)
        self.engine: AsyncEngine | None = None
        self._session_maker = None

    async def initialize(self) -> None:
        if self.database_url in ("sqlite+aiosqlite://", "sqlite+aiosqlite:///:memory:"):
            # An in-memory database lives on one connection, so every session shares it
            self.engine = create_async_engine(
                self.database_url,
                echo=False,
                future=True,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            if self.database_url.startswith("sqlite+aiosqlite:///"):
                database_path = Path(self.database_url.removeprefix("sqlite+aiosqlite:///"))
                database_path.parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_async_engine(self.database_url, echo=False, future=True)
        self._session_maker = sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Assistant store initialized")

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self._session_maker = None

    def _get_session(self) -> AsyncSession:
        if self._session_maker is None:
            raise NotInitializedError("AssistantStore.initialize() has not been called")
        return self._session_maker()

    async def save_message(self, message: Message) -> None:
        provider_type, account_id, message_id = message.key
        async with self._get_session() as session:
            row = await session.get(StoredMessage, (provider_type, account_id, message_id))
            if row is None:
                row = StoredMessage(
                    provider_type=provider_type,
                    account_id=account_id,
                    message_id=message_id,
                    received_at=message.received_at,
                    payload="",
                )
            row.subject = message.subject
            row.sender = message.sender.address.lower()
            row.received_at = message.received_at.astimezone(UTC).replace(tzinfo=None)
            row.payload = json.dumps(message.to_dict())
            row.stored_at = _utcnow()
            session.add(row)
            await session.commit()

    async def get_message(self, key: RecordKey) -> Message | None:
        async with self._get_session() as session:
            row = await session.get(StoredMessage, key)
            return Message.from_dict(json.loads(row.payload)) if row else None

    async def save_analysis(self, key: RecordKey, analysis: EmailAnalysis) -> None:
        provider_type, account_id, email_id = key
        async with self._get_session() as session:
            row = await session.get(StoredAnalysis, key) or StoredAnalysis(
                provider_type=provider_type,
                account_id=account_id,
                email_id=email_id,
                priority_level=analysis.priority_level.value,
                payload="",
                analyzed_at=_utcnow(),
            )
            row.priority_level = analysis.priority_level.value
            row.payload = json.dumps(analysis.to_dict())
            row.analyzed_at = analysis.analyzed_at.astimezone(UTC).replace(tzinfo=None)
            session.add(row)
            await session.commit()

    async def get_analysis(self, key: RecordKey) -> EmailAnalysis | None:
        async with self._get_session() as session:
            row = await session.get(StoredAnalysis, key)
            return EmailAnalysis.from_dict(json.loads(row.payload)) if row else None

    async def save_account(self, account: AccountInfo) -> None:
        async with self._get_session() as session:
            row = await session.get(StoredAccount, account.id) or StoredAccount(
                account_id=account.id,
                provider_type=account.provider_type.value,
                email=account.email,
            )
            row.provider_type = account.provider_type.value
            row.email = account.email
            row.name = account.name
            row.avatar_url = account.avatar_url
            row.updated_at = _utcnow()
            session.add(row)
            await session.commit()

    async def list_accounts(self) -> list[AccountInfo]:
        async with self._get_session() as session:
            rows = (await session.exec(select(StoredAccount))).all()
            return [
                AccountInfo.from_dict(
                    {
                        "id": row.account_id,
                        "email": row.email,
                        "name": row.name,
                        "provider_type": row.provider_type,
                        "avatar_url": row.avatar_url,
                    }
                )
                for row in rows
            ]

    async def delete_account(self, account_id: str) -> None:
        async with self._get_session() as session:
            row = await session.get(StoredAccount, account_id)
            if row is not None:
                await session.delete(row)
                await session.commit()

    async def save_embedding(self, key: RecordKey, vector: list[float]) -> None:
        provider_type, account_id, note_id = key
        async with self._get_session() as session:
            row = await session.get(NoteEmbedding, key) or NoteEmbedding(
                provider_type=provider_type,
                account_id=account_id,
                note_id=note_id,
                dimensions=len(vector),
                vector=b"",
            )
            row.dimensions = len(vector)
            row.vector = pack_vector(vector)
            row.created_at = _utcnow()
            session.add(row)
            await session.commit()

    async def get_embedding(self, key: RecordKey) -> list[float] | None:
        async with self._get_session() as session:
            row = await session.get(NoteEmbedding, key)
            return unpack_vector(row.vector, row.dimensions) if row else None

    async def clear_cache(self, retention: timedelta = DEFAULT_RETENTION) -> int:
        """Delete messages and embeddings stored before ``now - retention``.

        Returns:
            Number of rows removed
        """
        cutoff = _utcnow() - retention
        removed = 0
        async with self._get_session() as session:
            stale_messages = (await session.exec(select(StoredMessage).where(StoredMessage.stored_at < cutoff))).all()
            stale_embeddings = (
                await session.exec(select(NoteEmbedding).where(NoteEmbedding.created_at < cutoff))
            ).all()
            for row in [*stale_messages, *stale_embeddings]:
                await session.delete(row)
                removed += 1
            await session.commit()
        logger.info(f"Removed {removed} cached rows older than {retention.days} days")
        return removed
