"""Tests for the Outlook mail, Outlook calendar and OneNote adapters."""

from datetime import UTC, datetime, timedelta

import pytest
from conftest import NOW, FakeAuthProvider, Router, make_account, no_sleep

from inbox_agent.models import Importance, ParticipationType, ProviderType, ResponseStatus
from inbox_agent.providers.microsoft import (
    GraphClient,
    OneNoteProvider,
    OutlookCalendarProvider,
    OutlookEmailProvider,
)

GRAPH = "/v1.0"
DELTA = f"{GRAPH}/me/mailFolders/inbox/messages/delta"
NEXT_LINK = "https://graph.microsoft.com/v1.0/me/messages?$skip=2"
DELTA_LINK = "https://graph.microsoft.com/v1.0/me/mailFolders/inbox/messages/delta?$deltatoken=abc"


def graph_time(value):
    return value.strftime("%Y-%m-%dT%H:%M:%S.0000000")


def graph_message(message_id="m1", received=NOW, **overrides):
    data = {
        "id": message_id,
        "subject": "Contract",
        "from": {"emailAddress": {"address": "dana@contoso.com", "name": "Dana"}},
        "toRecipients": [{"emailAddress": {"address": "me@contoso.com", "name": "Me"}}],
        "ccRecipients": [],
        "body": {"contentType": "html", "content": "<p>Please sign</p>"},
        "receivedDateTime": received.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "hasAttachments": True,
        "importance": "high",
        "isRead": False,
        "conversationId": "c1",
        "categories": ["Legal"],
    }
    data.update(overrides)
    return data


def graph_client(router):
    account = make_account("microsoft-1", ProviderType.MICROSOFT)
    return GraphClient(FakeAuthProvider(account), http_client=router.client(), sleep=no_sleep), account


class TestOutlookMail:
    """Tests for the Outlook mail adapter."""

    def test_map_message(self):
        client, account = graph_client(Router())
        message = OutlookEmailProvider(client, account).map_message(graph_message())

        assert message.sender.address == "dana@contoso.com"
        assert message.to[0].name == "Me"
        assert message.received_at == NOW
        assert message.body == "<p>Please sign</p>"
        assert message.importance is Importance.HIGH
        assert message.has_attachments
        assert not message.is_read
        assert message.conversation_id == "c1"
        assert message.provider_metadata["categories"] == ["Legal"]
        assert message.provider_metadata["body_content_type"] == "html"
        assert message.provider_type is ProviderType.MICROSOFT

    def test_unknown_importance_is_normal(self):
        client, account = graph_client(Router())
        message = OutlookEmailProvider(client, account).map_message(graph_message(importance="weird"))
        assert message.importance is Importance.NORMAL

    @pytest.mark.asyncio
    async def test_recent_emails_follow_next_link(self):
        router = Router().add(
            "GET",
            f"{GRAPH}/me/messages",
            (200, {"value": [graph_message("m1"), graph_message("m2")], "@odata.nextLink": NEXT_LINK}),
            (200, {"value": [graph_message("m3")]}),
        )
        client, account = graph_client(router)

        messages = await OutlookEmailProvider(client, account).get_recent_emails(10)

        assert [m.id for m in messages] == ["m1", "m2", "m3"]
        first, second = router.sent(f"{GRAPH}/me/messages")
        assert first.url.params["$orderby"] == "receivedDateTime DESC"
        assert first.headers["Prefer"] == 'outlook.timezone="UTC"'
        assert second.url.params["$skip"] == "2"
        assert "$orderby" not in second.url.params

    @pytest.mark.asyncio
    async def test_recent_emails_stop_at_count(self):
        router = Router().add(
            "GET",
            f"{GRAPH}/me/messages",
            (200, {"value": [graph_message("m1"), graph_message("m2")], "@odata.nextLink": NEXT_LINK}),
        )
        client, account = graph_client(router)

        messages = await OutlookEmailProvider(client, account).get_recent_emails(1)

        assert [m.id for m in messages] == ["m1"]
        assert len(router.requests) == 1

    @pytest.mark.asyncio
    async def test_search_quotes_query(self):
        router = Router().add("GET", f"{GRAPH}/me/messages", (200, {"value": []}))
        client, account = graph_client(router)

        await OutlookEmailProvider(client, account).search_emails('say "hi"')

        assert router.requests[0].url.params["$search"] == '"say \\"hi\\""'

    @pytest.mark.asyncio
    async def test_delta_baseline_then_changes(self):
        router = Router().add(
            "GET",
            DELTA,
            (200, {"value": [graph_message("old")], "@odata.nextLink": f"https://graph.microsoft.com{DELTA}?$skiptoken=x"}),
            (200, {"value": [graph_message("old2")], "@odata.deltaLink": DELTA_LINK}),
            (
                200,
                {
                    "value": [
                        graph_message("old"),
                        graph_message("new"),
                        {"id": "gone", "@removed": {"reason": "deleted"}},
                        {"id": "flagged", "isRead": True},
                    ],
                    "@odata.deltaLink": DELTA_LINK,
                },
            ),
        )
        client, account = graph_client(router)
        provider = OutlookEmailProvider(client, account, poll_interval=3600)
        received = []
        provider.subscribe_to_changes(received.append)

        await provider.start_monitoring()
        try:
            delivered = await provider.poll_once()
        finally:
            await provider.stop_monitoring()

        assert delivered == 1
        assert [m.id for m in received] == ["new"]
        requests = router.sent(DELTA)
        assert len(requests) == 3
        assert requests[0].headers["Prefer"].startswith('outlook.timezone="UTC"')
        assert "odata.maxpagesize=50" in requests[0].headers["Prefer"]
        assert requests[2].url.params["$deltatoken"] == "abc"


class TestOutlookCalendar:
    """Tests for the Outlook calendar adapter."""

    def event(self, event_id, start, minutes=60, **overrides):
        data = {
            "id": event_id,
            "subject": "Review",
            "start": {"dateTime": graph_time(start), "timeZone": "UTC"},
            "end": {"dateTime": graph_time(start + timedelta(minutes=minutes)), "timeZone": "UTC"},
            "organizer": {"emailAddress": {"address": "boss@contoso.com"}},
            "showAs": "busy",
        }
        data.update(overrides)
        return data

    def test_map_event(self):
        client, account = graph_client(Router())
        meeting = OutlookCalendarProvider(client, account).map_event(
            self.event(
                "e1",
                NOW,
                attendees=[
                    {"emailAddress": {"address": "a@x.com"}, "type": "required", "status": {"response": "accepted"}},
                    {"emailAddress": {"address": "b@x.com"}, "type": "optional", "status": {"response": "tentativelyAccepted"}},
                    {"emailAddress": {"address": "c@x.com"}, "type": "resource", "status": {"response": "none"}},
                    {"emailAddress": {"address": "d@x.com"}, "type": "required", "status": {"response": "declined"}},
                ],
                location={"displayName": "Room 4"},
                isOnlineMeeting=True,
                onlineMeeting={"joinUrl": "https://teams/join"},
            )
        )

        assert meeting.start == NOW
        assert meeting.end == NOW + timedelta(hours=1)
        assert meeting.location == "Room 4"
        assert meeting.online_meeting_url == "https://teams/join"
        assert [a.response_status for a in meeting.attendees] == [
            ResponseStatus.ACCEPTED,
            ResponseStatus.TENTATIVE,
            ResponseStatus.NONE,
            ResponseStatus.DECLINED,
        ]
        assert meeting.attendees[1].participation_type is ParticipationType.OPTIONAL
        assert meeting.attendees[2].participation_type is ParticipationType.RESOURCE

    @pytest.mark.asyncio
    async def test_free_slots_ignore_free_and_cancelled(self):
        base = datetime.now(UTC).replace(microsecond=0)
        router = Router().add(
            "GET",
            f"{GRAPH}/me/calendarView",
            (
                200,
                {
                    "value": [
                        self.event("busy", base + timedelta(hours=2)),
                        self.event("free", base + timedelta(hours=5), showAs="free"),
                        self.event("off", base + timedelta(hours=7), isCancelled=True),
                    ]
                },
            ),
        )
        client, account = graph_client(router)

        slots = await OutlookCalendarProvider(client, account).find_available_slots(60, days=1)

        assert len(slots) == 2
        assert slots[0].end == base + timedelta(hours=2)
        assert slots[1].start == base + timedelta(hours=3)
        assert slots[1].end - slots[1].start > timedelta(hours=20)

    @pytest.mark.asyncio
    async def test_zero_duration_rejected_before_fetch(self):
        router = Router()
        client, account = graph_client(router)

        with pytest.raises(ValueError):
            await OutlookCalendarProvider(client, account).find_available_slots(0)

        assert router.requests == []

    @pytest.mark.asyncio
    async def test_get_meeting_by_id(self):
        router = Router().add("GET", f"{GRAPH}/me/events/e9", (200, self.event("e9", NOW)))
        client, account = graph_client(router)
        provider = OutlookCalendarProvider(client, account)

        meeting = await provider.get_meeting_by_id("e9")
        await provider.get_meeting_by_id("e9")

        assert meeting.id == "e9"
        assert len(router.requests) == 1


class TestOneNote:
    """Tests for the OneNote adapter."""

    @pytest.mark.asyncio
    async def test_search_escapes_filter(self):
        page = {
            "id": "p1",
            "title": "O'Neil sync",
            "createdDateTime": "2025-03-01T09:00:00Z",
            "lastModifiedDateTime": "2025-03-08T09:00:00Z",
            "parentSection": {"id": "s1", "displayName": "Meetings"},
            "parentNotebook": {"id": "nb1", "displayName": "Work"},
        }
        router = Router().add("GET", f"{GRAPH}/me/onenote/pages", (200, {"value": [page]}))
        client, account = graph_client(router)

        notes = await OneNoteProvider(client, account).search_notes("O'Neil")

        assert router.requests[0].url.params["$filter"] == "contains(tolower(title),'o''neil')"
        assert notes[0].section_id == "s1"
        assert notes[0].notebook_id == "nb1"
        assert notes[0].provider_metadata["section_name"] == "Meetings"

    @pytest.mark.asyncio
    async def test_note_content(self):
        markup = (
            "<html><head><style>p {}</style></head><body>"
            "<h1>Kickoff</h1><p>Budget &amp; scope</p>"
            '<img src="https://graph/thumb" data-fullres-src="https://graph/full" alt="Whiteboard" />'
            '<img src="https://graph/other" />'
            "</body></html>"
        )
        router = Router().add("GET", f"{GRAPH}/me/onenote/pages/p1/content", (200, markup))
        client, account = graph_client(router)

        content = await OneNoteProvider(client, account).get_note_content("p1")

        assert content.html == markup
        assert content.plain_text == "Kickoff\nBudget & scope"
        assert [(i.url, i.alt) for i in content.images] == [
            ("https://graph/full", "Whiteboard"),
            ("https://graph/other", ""),
        ]

    @pytest.mark.asyncio
    async def test_notebooks_with_sections(self):
        router = Router().add(
            "GET",
            f"{GRAPH}/me/onenote/notebooks",
            (200, {"value": [{"id": "nb1", "displayName": "Work", "sections": [{"id": "s1", "displayName": "1:1s"}]}]}),
        )
        client, account = graph_client(router)

        notebooks = await OneNoteProvider(client, account).get_notebooks()

        assert notebooks[0].sections[0].parent_notebook_id == "nb1"
        assert router.requests[0].url.params["$expand"] == "sections"
