"""
Provider abstraction layer.

Vendor adapters implement the capability interfaces in ``base``; the
``ProviderManager`` aggregates them across accounts.
"""

from inbox_agent.providers.base import AuthProvider, CalendarProvider, EmailProvider, NotesProvider
from inbox_agent.providers.credentials import CredentialStore, FileCredentialStore, MemoryCredentialStore
from inbox_agent.providers.manager import ProviderManager
from inbox_agent.providers.resilience import call_with_retry, classify_error

__all__ = [
    "AuthProvider",
    "CalendarProvider",
    "CredentialStore",
    "EmailProvider",
    "FileCredentialStore",
    "MemoryCredentialStore",
    "NotesProvider",
    "ProviderManager",
    "call_with_retry",
    "classify_error",
]
