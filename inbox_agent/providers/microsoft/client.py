"""Microsoft Graph REST client."""

from typing import Any

from inbox_agent.providers.base import AuthProvider
from inbox_agent.providers.http import RestClient

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

GRAPH_SCOPES = ["User.Read", "Mail.Read", "Notes.Read", "Calendars.Read"]


class GraphClient(RestClient):
    """Graph client returning times in UTC and following ``@odata.nextLink``."""

    def __init__(self, auth: AuthProvider, **kwargs: Any) -> None:
        headers = {"Prefer": 'outlook.timezone="UTC"', **kwargs.pop("default_headers", {})}
        super().__init__(auth, GRAPH_BASE_URL, scopes=GRAPH_SCOPES, default_headers=headers, **kwargs)

    async def get_all(
        self, path: str, params: dict[str, Any] | None = None, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """Collect ``value`` items across pages, stopping at ``limit``."""
        items: list[dict[str, Any]] = []
        url: str | None = path
        while url:
            page = await self.get(url, params=params)
            items.extend(page.get("value", []))
            if limit is not None and len(items) >= limit:
                return items[:limit]
            url = page.get("@odata.nextLink")
            # nextLink already carries the query string
            params = None
        return items
