"""
Pytest configuration and shared fixtures.

Provides in-memory fakes of the provider capability interfaces and factories
for model records, so tests never touch the network.
"""

from datetime import UTC, datetime, timedelta

import httpx
import pytest

from inbox_agent.exceptions import ProviderError, ProviderErrorType
from inbox_agent.models import (
    AccountInfo,
    AuthResult,
    EmailAddress,
    Meeting,
    Message,
    Note,
    NoteContent,
    Notebook,
    ProviderType,
    TimeSlot,
)
from inbox_agent.providers.base import AuthProvider, CalendarProvider, EmailProvider, NotesProvider

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


def make_account(account_id="google-1", provider_type=ProviderType.GOOGLE, email=None):
    return AccountInfo(
        id=account_id,
        email=email or f"{account_id}@example.com",
        name=account_id.title(),
        provider_type=provider_type,
    )


def make_message(
    message_id="m1",
    account=None,
    subject="Quarterly report",
    sender="alice@acme.com",
    sender_name="Alice Smith",
    body="Please review the attached numbers.",
    received_at=None,
    **kwargs,
):
    account = account or make_account()
    return Message(
        id=message_id,
        subject=subject,
        sender=EmailAddress(address=sender, name=sender_name),
        received_at=received_at or NOW,
        provider_type=account.provider_type,
        account_id=account.id,
        account_email=account.email,
        body=body,
        **kwargs,
    )


def make_meeting(meeting_id="e1", account=None, start=None, minutes=60, subject="Sync", attendees=None):
    account = account or make_account()
    start = start or NOW + timedelta(hours=2)
    return Meeting(
        id=meeting_id,
        subject=subject,
        start=start,
        end=start + timedelta(minutes=minutes),
        organizer=EmailAddress(address=account.email),
        provider_type=account.provider_type,
        account_id=account.id,
        account_email=account.email,
        attendees=attendees or [],
    )


def make_note(note_id="n1", account=None, title="Acme notes", modified=None):
    account = account or make_account()
    modified = modified or NOW - timedelta(days=1)
    return Note(
        id=note_id,
        title=title,
        content="",
        created_at=modified - timedelta(days=1),
        last_modified_at=modified,
        provider_type=account.provider_type,
        account_id=account.id,
        account_email=account.email,
    )


def not_found(provider_type="google"):
    return ProviderError(ProviderErrorType.RESOURCE_NOT_FOUND, "not found", provider_type=provider_type)


class FakeAuthProvider(AuthProvider):
    def __init__(self, account: AccountInfo, authenticated: bool = True):
        self.account = account
        self.authenticated = authenticated
        self.logged_out = False

    @property
    def provider_type(self):
        return self.account.provider_type

    @property
    def account_id(self):
        return self.account.id

    async def initialize(self):
        pass

    async def login(self):
        self.authenticated = True
        return AuthResult(success=True, account_info=self.account)

    async def logout(self):
        self.authenticated = False
        self.logged_out = True

    async def get_access_token(self, scopes=None):
        return "token"

    async def refresh_token(self):
        pass

    def is_authenticated(self):
        return self.authenticated

    async def get_account_info(self):
        if not self.authenticated:
            raise ProviderError(
                ProviderErrorType.AUTHENTICATION_FAILED, "Not authenticated", provider_type=self.provider_type.value
            )
        return self.account


class FakeEmailProvider(EmailProvider):
    def __init__(self, messages=None, error: Exception | None = None):
        self.messages = list(messages or [])
        self.error = error
        self.callbacks = []
        self.monitoring = False
        self.start_calls = 0
        self.stop_calls = 0

    async def start_monitoring(self):
        self.start_calls += 1
        if self.error:
            raise self.error
        self.monitoring = True

    async def stop_monitoring(self):
        self.stop_calls += 1
        self.monitoring = False

    async def get_recent_emails(self, count=50):
        if self.error:
            raise self.error
        return sorted(self.messages, key=lambda m: m.received_at, reverse=True)[:count]

    async def get_email_by_id(self, email_id):
        for message in self.messages:
            if message.id == email_id:
                return message
        raise not_found()

    async def search_emails(self, query):
        if self.error:
            raise self.error
        return [m for m in self.messages if query.lower() in m.subject.lower()]

    def subscribe_to_changes(self, callback):
        self.callbacks.append(callback)

    def clear_cache(self):
        pass


class FakeCalendarProvider(CalendarProvider):
    def __init__(self, meetings=None, error: Exception | None = None):
        self.meetings = list(meetings or [])
        self.error = error

    async def get_upcoming_meetings(self, days=7):
        if self.error:
            raise self.error
        return list(self.meetings)

    async def get_meetings_between(self, start, end):
        if self.error:
            raise self.error
        return [m for m in self.meetings if m.start < end and m.end > start]

    async def get_meeting_by_id(self, meeting_id):
        for meeting in self.meetings:
            if meeting.id == meeting_id:
                return meeting
        raise not_found()

    async def find_available_slots(self, duration_minutes, days=7):
        return [TimeSlot(NOW, NOW + timedelta(minutes=duration_minutes))]

    def clear_cache(self):
        pass


class FakeNotesProvider(NotesProvider):
    """Notes whose title contains the query (case-insensitive) match."""

    def __init__(self, notes=None, error: Exception | None = None):
        self.notes = list(notes or [])
        self.error = error
        self.queries = []

    async def get_notebooks(self):
        return [Notebook(id="nb1", display_name="Work")]

    async def search_notes(self, query):
        self.queries.append(query)
        if self.error:
            raise self.error
        return [n for n in self.notes if query.lower() in n.title.lower()]

    async def get_note_content(self, note_id):
        return NoteContent(html="<p>x</p>", plain_text="x")

    def clear_cache(self):
        pass


@pytest.fixture
def google_account():
    return make_account("google-1", ProviderType.GOOGLE)


@pytest.fixture
def microsoft_account():
    return make_account("microsoft-1", ProviderType.MICROSOFT)


class Router:
    """httpx.MockTransport handler keyed by (method, path).

    Each route holds a list of (status, body) answers served in order; the
    last one repeats. A str body is sent as text, anything else as JSON.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, *answers):
        self.routes[(method, path)] = list(answers)
        return self

    def __call__(self, request):
        self.requests.append(request)
        answers = self.routes.get((request.method, request.url.path))
        if not answers:
            return httpx.Response(404, json={"error": {"code": "NotFound"}})
        status, body = answers.pop(0) if len(answers) > 1 else answers[0]
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def sent(self, path):
        return [r for r in self.requests if r.url.path == path]


async def no_sleep(seconds):
    pass
