"""Microsoft Graph adapters: device code auth, Outlook mail and calendar, OneNote."""

from inbox_agent.providers.microsoft.auth import MicrosoftAuthProvider
from inbox_agent.providers.microsoft.calendar import OutlookCalendarProvider
from inbox_agent.providers.microsoft.client import GraphClient
from inbox_agent.providers.microsoft.mail import OutlookEmailProvider
from inbox_agent.providers.microsoft.notes import OneNoteProvider

__all__ = [
    "GraphClient",
    "MicrosoftAuthProvider",
    "OneNoteProvider",
    "OutlookCalendarProvider",
    "OutlookEmailProvider",
]
