"""OneNote adapter backed by Graph."""

import logging
from typing import Any

from inbox_agent.models import AccountInfo, Note, NoteContent, Notebook, Section
from inbox_agent.providers.base import NotesProvider
from inbox_agent.providers.html import extract_images, html_to_text
from inbox_agent.providers.http import parse_timestamp
from inbox_agent.providers.microsoft.client import GraphClient

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50


def _odata_literal(value: str) -> str:
    return value.replace("'", "''")


class OneNoteProvider(NotesProvider):
    def __init__(self, client: GraphClient, account: AccountInfo) -> None:
        self.client = client
        self.account = account
        self._notebooks: list[Notebook] | None = None
        self._cache: dict[str, Note] = {}

    def map_page(self, data: dict[str, Any]) -> Note:
        section = data.get("parentSection") or {}
        notebook = data.get("parentNotebook") or {}
        links = data.get("links") or {}
        note = Note(
            id=data["id"],
            title=data.get("title") or "",
            content="",
            created_at=parse_timestamp(data["createdDateTime"]),
            last_modified_at=parse_timestamp(data.get("lastModifiedDateTime") or data["createdDateTime"]),
            provider_type=self.account.provider_type,
            account_id=self.account.id,
            account_email=self.account.email,
            section_id=section.get("id"),
            notebook_id=notebook.get("id"),
            provider_metadata={
                "section_name": section.get("displayName"),
                "notebook_name": notebook.get("displayName"),
                "web_url": (links.get("oneNoteWebUrl") or {}).get("href"),
            },
        )
        self._cache[note.id] = note
        return note

    async def get_notebooks(self) -> list[Notebook]:
        if self._notebooks is not None:
            return self._notebooks
        items = await self.client.get_all("/me/onenote/notebooks", params={"$expand": "sections"})
        self._notebooks = [
            Notebook(
                id=item["id"],
                display_name=item.get("displayName", ""),
                sections=[
                    Section(id=s["id"], display_name=s.get("displayName", ""), parent_notebook_id=item["id"])
                    for s in item.get("sections", [])
                ],
            )
            for item in items
        ]
        return self._notebooks

    async def search_notes(self, query: str) -> list[Note]:
        items = await self.client.get_all(
            "/me/onenote/pages",
            params={
                "$filter": f"contains(tolower(title),'{_odata_literal(query.lower())}')",
                "$top": SEARCH_LIMIT,
                "$expand": "parentSection,parentNotebook",
                "$orderby": "lastModifiedDateTime desc",
            },
            limit=SEARCH_LIMIT,
        )
        return [self.map_page(item) for item in items]

    async def get_note_content(self, note_id: str) -> NoteContent:
        markup = await self.client.get_text(f"/me/onenote/pages/{note_id}/content")
        return NoteContent(html=markup, plain_text=html_to_text(markup), images=extract_images(markup))

    def clear_cache(self) -> None:
        self._notebooks = None
        self._cache.clear()
