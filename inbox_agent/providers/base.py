"""
Capability interfaces implemented by every vendor adapter.

Each account contributes up to four providers (auth, email, calendar, notes).
The ``ProviderManager`` only talks to these interfaces, so a new vendor is
added by implementing them and registering the instances.

Example:
    class ExchangeEmailProvider(EmailProvider):
        async def get_recent_emails(self, count=50):
            ...

    manager.register_email_provider(account_id, ExchangeEmailProvider(...))
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from inbox_agent.models import (
    AccountInfo,
    Attendee,
    AuthResult,
    Meeting,
    Message,
    Note,
    NoteContent,
    Notebook,
    ProviderType,
    TimeSlot,
)

EmailCallback = Callable[[Message], Awaitable[Any] | Any]


class AuthProvider(ABC):
    """Token acquisition, refresh and persistence for one account."""

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        pass

    @property
    @abstractmethod
    def account_id(self) -> str:
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Load persisted credentials if present."""
        pass

    @abstractmethod
    async def login(self) -> AuthResult:
        """Run the vendor's interactive login flow."""
        pass

    async def handle_auth_code(self, code: str) -> AuthResult:
        """Complete a redirect-based login. Device code flows do not support it."""
        raise NotImplementedError(f"{type(self).__name__} does not use authorization codes")

    @abstractmethod
    async def logout(self) -> None:
        """Revoke remote tokens (best-effort) and delete local credentials."""
        pass

    @abstractmethod
    async def get_access_token(self, scopes: list[str] | None = None) -> str:
        """Return a valid bearer token, refreshing it when close to expiry."""
        pass

    @abstractmethod
    async def refresh_token(self) -> None:
        pass

    @abstractmethod
    def is_authenticated(self) -> bool:
        """Local check only. Never touches the network."""
        pass

    @abstractmethod
    async def get_account_info(self) -> AccountInfo:
        pass


class EmailProvider(ABC):
    """Read access and change monitoring for one mailbox."""

    @abstractmethod
    async def start_monitoring(self) -> None:
        pass

    @abstractmethod
    async def stop_monitoring(self) -> None:
        """Stop polling. Idempotent; no callback fires after it returns."""
        pass

    @abstractmethod
    async def get_recent_emails(self, count: int = 50) -> list[Message]:
        pass

    @abstractmethod
    async def get_email_by_id(self, email_id: str) -> Message:
        pass

    @abstractmethod
    async def search_emails(self, query: str) -> list[Message]:
        pass

    @abstractmethod
    def subscribe_to_changes(self, callback: EmailCallback) -> None:
        pass

    @abstractmethod
    def clear_cache(self) -> None:
        pass


class CalendarProvider(ABC):
    """Read access to one account's primary calendar."""

    @abstractmethod
    async def get_upcoming_meetings(self, days: int = 7) -> list[Meeting]:
        pass

    @abstractmethod
    async def get_meeting_by_id(self, meeting_id: str) -> Meeting:
        pass

    @abstractmethod
    async def get_meetings_between(self, start: datetime, end: datetime) -> list[Meeting]:
        pass

    @abstractmethod
    async def find_available_slots(self, duration_minutes: int, days: int = 7) -> list[TimeSlot]:
        pass

    async def get_meeting_attendees(self, meeting_id: str) -> list[Attendee]:
        meeting = await self.get_meeting_by_id(meeting_id)
        return meeting.attendees

    @abstractmethod
    def clear_cache(self) -> None:
        pass


class NotesProvider(ABC):
    """Read access to one account's notes."""

    @abstractmethod
    async def get_notebooks(self) -> list[Notebook]:
        pass

    @abstractmethod
    async def search_notes(self, query: str) -> list[Note]:
        pass

    @abstractmethod
    async def get_note_content(self, note_id: str) -> NoteContent:
        pass

    async def find_notes_by_entity(self, entity_name: str, entity_type: str) -> list[Note]:
        """Notes mentioning an entity. Falls back to a plain text search."""
        return await self.search_notes(entity_name)

    @abstractmethod
    def clear_cache(self) -> None:
        pass
