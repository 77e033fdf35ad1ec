"""
Provider Manager.

Holds the providers of every connected account, keyed by account id, and
fans operations out across them. A failing account is logged and left out
of the merged result; it never fails the whole call.

Usage:
    manager = ProviderManager()
    manager.register_auth_provider("google-1", google_auth)
    manager.register_email_provider("google-1", gmail)

    emails = await manager.get_all_recent_emails(20)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from inbox_agent.exceptions import ProviderError, ProviderErrorType
from inbox_agent.models import AccountInfo, Meeting, Message, Note, ProviderType
from inbox_agent.providers.base import (
    AuthProvider,
    CalendarProvider,
    EmailCallback,
    EmailProvider,
    NotesProvider,
)

logger = logging.getLogger(__name__)

P = TypeVar("P")
T = TypeVar("T")


class ProviderManager:
    """Registry of per-account providers with fan-out and merge.

    The manager only references providers; their lifecycles belong to the
    account that created them.
    """

    def __init__(self) -> None:
        self._auth: dict[str, AuthProvider] = {}
        self._email: dict[str, EmailProvider] = {}
        self._calendar: dict[str, CalendarProvider] = {}
        self._notes: dict[str, NotesProvider] = {}

    # Registration

    def _register(self, registry: dict[str, Any], kind: str, account_id: str, provider: Any) -> None:
        if account_id in registry:
            logger.warning(f"Replacing {kind} provider for {account_id}", extra={"account_id": account_id})
        registry[account_id] = provider
        logger.info(f"Registered {kind} provider for {account_id}", extra={"account_id": account_id})

    def register_auth_provider(self, account_id: str, provider: AuthProvider) -> None:
        self._register(self._auth, "auth", account_id, provider)

    def register_email_provider(self, account_id: str, provider: EmailProvider) -> None:
        self._register(self._email, "email", account_id, provider)

    def register_calendar_provider(self, account_id: str, provider: CalendarProvider) -> None:
        self._register(self._calendar, "calendar", account_id, provider)

    def register_notes_provider(self, account_id: str, provider: NotesProvider) -> None:
        self._register(self._notes, "notes", account_id, provider)

    def remove_account(self, account_id: str) -> None:
        """Drop every provider registered for ``account_id``."""
        for registry in (self._auth, self._email, self._calendar, self._notes):
            registry.pop(account_id, None)
        logger.info(f"Removed account {account_id}", extra={"account_id": account_id})

    def get_auth_provider(self, account_id: str) -> AuthProvider | None:
        return self._auth.get(account_id)

    def get_email_provider(self, account_id: str) -> EmailProvider | None:
        return self._email.get(account_id)

    def get_calendar_provider(self, account_id: str) -> CalendarProvider | None:
        return self._calendar.get(account_id)

    def get_notes_provider(self, account_id: str) -> NotesProvider | None:
        return self._notes.get(account_id)

    def email_providers(self) -> dict[str, EmailProvider]:
        return dict(self._email)

    def calendar_providers(self) -> dict[str, CalendarProvider]:
        return dict(self._calendar)

    def notes_providers(self) -> dict[str, NotesProvider]:
        return dict(self._notes)

    # Fan-out

    async def _fan_out(
        self,
        registry: dict[str, P],
        operation: str,
        call: Callable[[P], Awaitable[T]],
    ) -> list[tuple[str, T]]:
        """Run ``call`` on every provider concurrently, dropping failures."""
        account_ids = list(registry)
        results = await asyncio.gather(
            *(call(registry[account_id]) for account_id in account_ids), return_exceptions=True
        )
        succeeded = []
        for account_id, result in zip(account_ids, results):
            if isinstance(result, Exception):
                logger.warning(
                    f"{operation} failed for {account_id}: {result}",
                    extra={"account_id": account_id},
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                succeeded.append((account_id, result))
        return succeeded

    @staticmethod
    def _flatten(results: Iterable[tuple[str, list[T]]]) -> list[T]:
        return [item for _, items in results for item in items]

    async def get_all_recent_emails(self, count: int = 50) -> list[Message]:
        """Most recent ``count`` messages across every account, newest first."""
        results = await self._fan_out(self._email, "get_recent_emails", lambda p: p.get_recent_emails(count))
        merged = sorted(self._flatten(results), key=lambda m: m.received_at, reverse=True)
        return merged[:count]

    async def search_all_emails(self, query: str) -> list[Message]:
        results = await self._fan_out(self._email, "search_emails", lambda p: p.search_emails(query))
        return sorted(self._flatten(results), key=lambda m: m.received_at, reverse=True)

    async def get_all_upcoming_meetings(self, days: int = 7) -> list[Meeting]:
        """Meetings in the next ``days`` across every calendar, soonest first."""
        results = await self._fan_out(
            self._calendar, "get_upcoming_meetings", lambda p: p.get_upcoming_meetings(days)
        )
        return sorted(self._flatten(results), key=lambda m: m.start)

    async def get_all_meetings_between(self, start: datetime, end: datetime) -> list[Meeting]:
        results = await self._fan_out(
            self._calendar, "get_meetings_between", lambda p: p.get_meetings_between(start, end)
        )
        return sorted(self._flatten(results), key=lambda m: m.start)

    async def search_all_notes(self, query: str) -> list[Note]:
        results = await self._fan_out(self._notes, "search_notes", lambda p: p.search_notes(query))
        return sorted(self._flatten(results), key=lambda n: n.last_modified_at, reverse=True)

    async def find_all_notes_by_entity(self, entity_name: str, entity_type: str) -> list[Note]:
        results = await self._fan_out(
            self._notes,
            "find_notes_by_entity",
            lambda p: p.find_notes_by_entity(entity_name, entity_type),
        )
        return sorted(self._flatten(results), key=lambda n: n.last_modified_at, reverse=True)

    async def get_meeting(self, meeting_id: str, account_id: str | None = None) -> Meeting:
        """Look a meeting up by id, in one account or across all of them.

        Raises:
            ProviderError: RESOURCE_NOT_FOUND when no calendar has it
        """
        if account_id is not None:
            provider = self._calendar.get(account_id)
            if provider is None:
                raise ProviderError(
                    ProviderErrorType.RESOURCE_NOT_FOUND,
                    f"No calendar registered for {account_id}",
                    provider_type="all",
                )
            return await provider.get_meeting_by_id(meeting_id)

        for candidate_id, provider in self._calendar.items():
            try:
                return await provider.get_meeting_by_id(meeting_id)
            except ProviderError as e:
                if e.error_type is not ProviderErrorType.RESOURCE_NOT_FOUND:
                    logger.warning(
                        f"Meeting lookup failed for {candidate_id}: {e}",
                        extra={"account_id": candidate_id},
                    )
        raise ProviderError(
            ProviderErrorType.RESOURCE_NOT_FOUND,
            f"Meeting {meeting_id} not found",
            provider_type="all",
        )

    async def check_upcoming_meetings(self, hours: int = 24) -> list[Meeting]:
        """Meetings starting within the next ``hours``."""
        now = datetime.now(UTC)
        meetings = await self.get_all_meetings_between(now, now + timedelta(hours=hours))
        return [m for m in meetings if m.start >= now]

    # Accounts

    async def get_accounts(self) -> list[AccountInfo]:
        """Accounts whose auth provider is currently authenticated."""
        accounts = []
        for account_id, auth in self._auth.items():
            if not auth.is_authenticated():
                continue
            try:
                accounts.append(await auth.get_account_info())
            except ProviderError as e:
                logger.warning(f"Account info unavailable for {account_id}: {e}", extra={"account_id": account_id})
        return accounts

    async def get_accounts_by_provider(self, provider_type: ProviderType) -> list[AccountInfo]:
        return [a for a in await self.get_accounts() if a.provider_type is provider_type]

    async def get_primary_account(self) -> AccountInfo | None:
        accounts = await self.get_accounts()
        return accounts[0] if accounts else None

    def has_authenticated_provider(self) -> bool:
        return any(auth.is_authenticated() for auth in self._auth.values())

    def get_provider_stats(self) -> dict[str, int]:
        by_type = [auth.provider_type for auth in self._auth.values()]
        return {
            "total_accounts": len(self._auth),
            "microsoft_accounts": by_type.count(ProviderType.MICROSOFT),
            "google_accounts": by_type.count(ProviderType.GOOGLE),
            "email_providers": len(self._email),
            "calendar_providers": len(self._calendar),
            "notes_providers": len(self._notes),
        }

    # Monitoring

    def subscribe_all(self, callback: EmailCallback) -> None:
        for provider in self._email.values():
            provider.subscribe_to_changes(callback)

    async def start_all_monitoring(self) -> None:
        results = await self._fan_out(self._email, "start_monitoring", lambda p: p.start_monitoring())
        logger.info(f"Monitoring started for {len(results)}/{len(self._email)} mailboxes")

    async def stop_all_monitoring(self) -> None:
        await self._fan_out(self._email, "stop_monitoring", lambda p: p.stop_monitoring())
        logger.info("Monitoring stopped for all mailboxes")

    def clear_all_caches(self) -> None:
        for registry in (self._email, self._calendar, self._notes):
            for provider in registry.values():
                provider.clear_cache()
