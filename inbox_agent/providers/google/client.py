"""Google REST client shared by the Gmail, Calendar, Drive and Docs adapters."""

from typing import Any

from inbox_agent.providers.base import AuthProvider
from inbox_agent.providers.http import RestClient

GOOGLE_API_BASE_URL = "https://www.googleapis.com"
GMAIL_API = "https://gmail.googleapis.com/gmail/v1/users/me"
CALENDAR_API = f"{GOOGLE_API_BASE_URL}/calendar/v3"
DRIVE_API = f"{GOOGLE_API_BASE_URL}/drive/v3"
DOCS_API = "https://docs.googleapis.com/v1"


class GoogleApiClient(RestClient):
    """Client for Google APIs. Paths are absolute URLs built from the constants above."""

    def __init__(self, auth: AuthProvider, **kwargs: Any) -> None:
        super().__init__(auth, GOOGLE_API_BASE_URL, **kwargs)

    async def get_pages(
        self, url: str, params: dict[str, Any], items_key: str, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """Collect ``items_key`` across ``nextPageToken`` pages."""
        items: list[dict[str, Any]] = []
        params = dict(params)
        while True:
            page = await self.get(url, params=params)
            items.extend(page.get(items_key, []))
            if limit is not None and len(items) >= limit:
                return items[:limit]
            token = page.get("nextPageToken")
            if not token:
                return items
            params["pageToken"] = token
