"""Google Docs as notes: Drive folders are notebooks, documents are notes."""

import html
import logging
from typing import Any

from inbox_agent.models import AccountInfo, Note, NoteContent, NoteImage, Notebook
from inbox_agent.providers.base import NotesProvider
from inbox_agent.providers.google.client import DOCS_API, DRIVE_API, GoogleApiClient
from inbox_agent.providers.http import parse_timestamp

logger = logging.getLogger(__name__)

DOCUMENT_MIME_TYPE = "application/vnd.google-apps.document"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = "nextPageToken,files(id,name,createdTime,modifiedTime,parents,mimeType,webViewLink)"
SEARCH_LIMIT = 50


def _drive_literal(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _document_text(document: dict[str, Any]) -> list[str]:
    paragraphs = []
    for element in (document.get("body") or {}).get("content", []):
        paragraph = element.get("paragraph")
        if not paragraph:
            continue
        text = "".join(
            (run.get("textRun") or {}).get("content", "") for run in paragraph.get("elements", [])
        )
        if text.strip():
            paragraphs.append(text.rstrip("\n"))
    return paragraphs


def _document_images(document: dict[str, Any]) -> list[NoteImage]:
    images = []
    for obj in (document.get("inlineObjects") or {}).values():
        embedded = (obj.get("inlineObjectProperties") or {}).get("embeddedObject") or {}
        uri = (embedded.get("imageProperties") or {}).get("contentUri")
        if uri:
            images.append(NoteImage(url=uri, alt=embedded.get("title") or embedded.get("description") or ""))
    return images


class GoogleDocsNotesProvider(NotesProvider):
    def __init__(self, client: GoogleApiClient, account: AccountInfo) -> None:
        self.client = client
        self.account = account
        self._notebooks: list[Notebook] | None = None
        self._cache: dict[str, Note] = {}

    def map_file(self, data: dict[str, Any]) -> Note:
        parents = data.get("parents") or []
        note = Note(
            id=data["id"],
            title=data.get("name", ""),
            content="",
            created_at=parse_timestamp(data["createdTime"]),
            last_modified_at=parse_timestamp(data.get("modifiedTime") or data["createdTime"]),
            provider_type=self.account.provider_type,
            account_id=self.account.id,
            account_email=self.account.email,
            notebook_id=parents[0] if parents else None,
            provider_metadata={
                "document_id": data["id"],
                "mime_type": data.get("mimeType"),
                "web_view_link": data.get("webViewLink"),
            },
        )
        self._cache[note.id] = note
        return note

    async def get_notebooks(self) -> list[Notebook]:
        if self._notebooks is not None:
            return self._notebooks
        files = await self.client.get_pages(
            f"{DRIVE_API}/files",
            {"q": f"mimeType='{FOLDER_MIME_TYPE}' and trashed=false", "fields": "nextPageToken,files(id,name)"},
            "files",
        )
        self._notebooks = [Notebook(id=f["id"], display_name=f.get("name", "")) for f in files]
        return self._notebooks

    async def search_notes(self, query: str) -> list[Note]:
        files = await self.client.get_pages(
            f"{DRIVE_API}/files",
            {
                "q": (
                    f"mimeType='{DOCUMENT_MIME_TYPE}' and fullText contains '{_drive_literal(query)}' "
                    "and trashed=false"
                ),
                "orderBy": "modifiedTime desc",
                "pageSize": SEARCH_LIMIT,
                "fields": FILE_FIELDS,
            },
            "files",
            limit=SEARCH_LIMIT,
        )
        return [self.map_file(f) for f in files]

    async def get_note_content(self, note_id: str) -> NoteContent:
        document = await self.client.get(f"{DOCS_API}/documents/{note_id}")
        paragraphs = _document_text(document)
        markup = "".join(f"<p>{html.escape(p)}</p>" for p in paragraphs)
        return NoteContent(html=markup, plain_text="\n".join(paragraphs), images=_document_images(document))

    def clear_cache(self) -> None:
        self._notebooks = None
        self._cache.clear()
