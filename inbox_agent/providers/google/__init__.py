"""Google Workspace adapters: OAuth, Gmail, Calendar and Docs."""

from inbox_agent.providers.google.auth import GoogleAuthProvider
from inbox_agent.providers.google.calendar import GoogleCalendarProvider
from inbox_agent.providers.google.client import GoogleApiClient
from inbox_agent.providers.google.mail import GmailEmailProvider
from inbox_agent.providers.google.notes import GoogleDocsNotesProvider

__all__ = [
    "GmailEmailProvider",
    "GoogleApiClient",
    "GoogleAuthProvider",
    "GoogleCalendarProvider",
    "GoogleDocsNotesProvider",
]
