"""Gmail adapter with history-based change detection."""

import asyncio
import base64
import logging
from datetime import UTC, datetime
from email.utils import getaddresses
from typing import Any

from inbox_agent.exceptions import ProviderError, ProviderErrorType
from inbox_agent.models import AccountInfo, EmailAddress, Importance, Message
from inbox_agent.providers.google.client import GMAIL_API, GoogleApiClient
from inbox_agent.providers.monitoring import DEFAULT_POLL_INTERVAL, PollingEmailProvider

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50

# Concurrent message fetches per list call
FETCH_CONCURRENCY = 10


def _decode_body(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def _headers(payload: dict[str, Any]) -> dict[str, str]:
    return {h["name"].lower(): h["value"] for h in payload.get("headers", [])}


def _addresses(value: str) -> list[EmailAddress]:
    return [EmailAddress(address=addr, name=name) for name, addr in getaddresses([value]) if addr]


def _walk_parts(payload: dict[str, Any]):
    yield payload
    for part in payload.get("parts", []) or []:
        yield from _walk_parts(part)


def extract_body(payload: dict[str, Any]) -> str:
    """Plain-text body, falling back to HTML when no text part exists."""
    parts = list(_walk_parts(payload))
    for mime_type in ("text/plain", "text/html"):
        for part in parts:
            data = (part.get("body") or {}).get("data")
            if part.get("mimeType") == mime_type and data:
                return _decode_body(data)
    data = (payload.get("body") or {}).get("data")
    return _decode_body(data) if data else ""


class GmailEmailProvider(PollingEmailProvider):
    """Mailbox access through the Gmail API."""

    def __init__(
        self, client: GoogleApiClient, account: AccountInfo, poll_interval: float = DEFAULT_POLL_INTERVAL
    ) -> None:
        super().__init__(account, poll_interval)
        self.client = client
        self._cache: dict[str, Message] = {}
        self._history_id: str | None = None
        self._fetch_limit = asyncio.Semaphore(FETCH_CONCURRENCY)

    def map_message(self, data: dict[str, Any]) -> Message:
        payload = data.get("payload") or {}
        headers = _headers(payload)
        labels = data.get("labelIds", [])
        senders = _addresses(headers.get("from", ""))
        attachments = [p["filename"] for p in _walk_parts(payload) if p.get("filename")]
        message = Message(
            id=data["id"],
            subject=headers.get("subject", ""),
            sender=senders[0] if senders else EmailAddress(address=""),
            received_at=datetime.fromtimestamp(int(data["internalDate"]) / 1000, UTC),
            provider_type=self.account.provider_type,
            account_id=self.account.id,
            account_email=self.account.email,
            to=_addresses(headers.get("to", "")),
            cc=_addresses(headers.get("cc", "")),
            body=extract_body(payload),
            has_attachments=bool(attachments),
            importance=Importance.HIGH if "IMPORTANT" in labels else Importance.NORMAL,
            is_read="UNREAD" not in labels,
            conversation_id=data.get("threadId"),
            provider_metadata={
                "labels": labels,
                "thread_id": data.get("threadId"),
                "snippet": data.get("snippet", ""),
                "attachments": attachments,
            },
        )
        self._cache[message.id] = message
        return message

    async def _fetch_full(self, message_id: str) -> Message:
        async with self._fetch_limit:
            data = await self.client.get(f"{GMAIL_API}/messages/{message_id}", params={"format": "full"})
        return self.map_message(data)

    async def _fetch_many(self, message_ids: list[str]) -> list[Message]:
        return list(await asyncio.gather(*(self.get_email_by_id(mid) for mid in message_ids)))

    async def get_recent_emails(self, count: int = 50) -> list[Message]:
        refs = await self.client.get_pages(
            f"{GMAIL_API}/messages", {"maxResults": min(count, 500)}, "messages", limit=count
        )
        return await self._fetch_many([ref["id"] for ref in refs])

    async def get_email_by_id(self, email_id: str) -> Message:
        if email_id in self._cache:
            return self._cache[email_id]
        return await self._fetch_full(email_id)

    async def search_emails(self, query: str) -> list[Message]:
        refs = await self.client.get_pages(
            f"{GMAIL_API}/messages", {"q": query, "maxResults": SEARCH_LIMIT}, "messages", limit=SEARCH_LIMIT
        )
        return await self._fetch_many([ref["id"] for ref in refs])

    def clear_cache(self) -> None:
        self._cache.clear()

    async def _establish_baseline(self) -> None:
        profile = await self.client.get(f"{GMAIL_API}/profile")
        self._history_id = str(profile["historyId"])
        logger.info(
            f"Gmail history baseline for {self.account.email}: {self._history_id}",
            extra={"account_id": self.account.id},
        )

    async def _fetch_changes(self) -> list[Message]:
        if self._history_id is None:
            await self._establish_baseline()
            return []

        params: dict[str, Any] = {"startHistoryId": self._history_id, "historyTypes": "messageAdded"}
        added: list[str] = []
        try:
            while True:
                page = await self.client.get(f"{GMAIL_API}/history", params=params)
                for record in page.get("history", []):
                    for entry in record.get("messagesAdded", []):
                        message_id = entry["message"]["id"]
                        if message_id not in added:
                            added.append(message_id)
                if page.get("historyId"):
                    self._history_id = str(page["historyId"])
                token = page.get("nextPageToken")
                if not token:
                    break
                params["pageToken"] = token
        except ProviderError as e:
            if e.error_type is not ProviderErrorType.RESOURCE_NOT_FOUND:
                raise
            logger.warning(
                f"Gmail history {self._history_id} expired, resetting baseline",
                extra={"account_id": self.account.id},
            )
            await self._establish_baseline()
            return []

        messages = []
        for message_id in added:
            try:
                messages.append(await self.get_email_by_id(message_id))
            except ProviderError as e:
                if e.error_type is not ProviderErrorType.RESOURCE_NOT_FOUND:
                    raise
                # deleted between the history record and the fetch
        return messages
