"""Outlook mail adapter backed by Graph."""

import logging
from typing import Any

from inbox_agent.models import AccountInfo, EmailAddress, Importance, Message
from inbox_agent.providers.http import parse_timestamp
from inbox_agent.providers.microsoft.client import GraphClient
from inbox_agent.providers.monitoring import DEFAULT_POLL_INTERVAL, PollingEmailProvider

logger = logging.getLogger(__name__)

MESSAGE_FIELDS = ",".join(
    [
        "id",
        "subject",
        "from",
        "toRecipients",
        "ccRecipients",
        "body",
        "receivedDateTime",
        "hasAttachments",
        "importance",
        "isRead",
        "conversationId",
        "categories",
        "webLink",
    ]
)

DELTA_PATH = "/me/mailFolders/inbox/messages/delta"
DELTA_PREFER = 'outlook.timezone="UTC", odata.maxpagesize=50'
SEARCH_LIMIT = 50

_IMPORTANCE = {i.value: i for i in Importance}


def _address(data: dict[str, Any] | None) -> EmailAddress:
    email = (data or {}).get("emailAddress") or {}
    return EmailAddress(address=email.get("address", ""), name=email.get("name", ""))


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class OutlookEmailProvider(PollingEmailProvider):
    """Mailbox access through Graph with delta-query change detection."""

    def __init__(
        self, client: GraphClient, account: AccountInfo, poll_interval: float = DEFAULT_POLL_INTERVAL
    ) -> None:
        super().__init__(account, poll_interval)
        self.client = client
        self._cache: dict[str, Message] = {}
        self._delta_link: str | None = None

    def map_message(self, data: dict[str, Any]) -> Message:
        body = data.get("body") or {}
        importance = data.get("importance", "normal").lower()
        message = Message(
            id=data["id"],
            subject=data.get("subject") or "",
            sender=_address(data.get("from")),
            received_at=parse_timestamp(data["receivedDateTime"]),
            provider_type=self.account.provider_type,
            account_id=self.account.id,
            account_email=self.account.email,
            to=[_address(r) for r in data.get("toRecipients", [])],
            cc=[_address(r) for r in data.get("ccRecipients", [])],
            body=body.get("content", ""),
            has_attachments=bool(data.get("hasAttachments")),
            importance=_IMPORTANCE.get(importance, Importance.NORMAL),
            is_read=bool(data.get("isRead")),
            conversation_id=data.get("conversationId"),
            provider_metadata={
                "categories": data.get("categories", []),
                "body_content_type": body.get("contentType", "text"),
                "web_link": data.get("webLink"),
            },
        )
        self._cache[message.id] = message
        return message

    async def get_recent_emails(self, count: int = 50) -> list[Message]:
        items = await self.client.get_all(
            "/me/messages",
            params={
                "$top": min(count, 100),
                "$orderby": "receivedDateTime DESC",
                "$select": MESSAGE_FIELDS,
            },
            limit=count,
        )
        return [self.map_message(item) for item in items]

    async def get_email_by_id(self, email_id: str) -> Message:
        if email_id in self._cache:
            return self._cache[email_id]
        data = await self.client.get(f"/me/messages/{email_id}", params={"$select": MESSAGE_FIELDS})
        return self.map_message(data)

    async def search_emails(self, query: str) -> list[Message]:
        items = await self.client.get_all(
            "/me/messages",
            params={"$search": f'"{_quote(query)}"', "$top": SEARCH_LIMIT, "$select": MESSAGE_FIELDS},
            limit=SEARCH_LIMIT,
        )
        return [self.map_message(item) for item in items]

    def clear_cache(self) -> None:
        self._cache.clear()

    async def _drain_delta(self, url: str, params: dict[str, Any] | None) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        while next_url:
            page = await self.client.get(next_url, params=params, headers={"Prefer": DELTA_PREFER})
            items.extend(page.get("value", []))
            params = None
            if "@odata.deltaLink" in page:
                self._delta_link = page["@odata.deltaLink"]
                break
            next_url = page.get("@odata.nextLink")
        return items

    async def _establish_baseline(self) -> None:
        items = await self._drain_delta(DELTA_PATH, {"$select": MESSAGE_FIELDS})
        for item in items:
            self._mark_seen(item["id"])
        logger.info(
            f"Delta baseline for {self.account.email}: {len(items)} existing messages",
            extra={"account_id": self.account.id},
        )

    async def _fetch_changes(self) -> list[Message]:
        if self._delta_link is None:
            await self._establish_baseline()
            return []
        items = await self._drain_delta(self._delta_link, None)
        return [self.map_message(item) for item in items if "@removed" not in item and "receivedDateTime" in item]
