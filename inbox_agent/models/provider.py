"""
Shared data model for provider records.

Every record fetched from a vendor is mapped into one of these dataclasses and
stamped with ``provider_type``, ``account_id`` and ``account_email``. Vendor ids
are only unique within one account, so cross-account code must use ``key``.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

RecordKey = tuple[str, str, str]


class ProviderType(str, Enum):
    """Supported vendors."""

    MICROSOFT = "microsoft"
    GOOGLE = "google"


class Importance(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class ParticipationType(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    RESOURCE = "resource"


class ResponseStatus(str, Enum):
    NONE = "none"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    TENTATIVE = "tentative"


def record_key(provider_type: ProviderType | str, account_id: str, record_id: str) -> RecordKey:
    """Composite key that is unique across all accounts."""
    return (ProviderType(provider_type).value, account_id, record_id)


def _parse_datetime(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass
class AccountInfo:
    """One authenticated identity at one provider."""

    id: str
    email: str
    name: str
    provider_type: ProviderType
    avatar_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "provider_type": self.provider_type.value,
            "avatar_url": self.avatar_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccountInfo":
        return cls(
            id=data["id"],
            email=data["email"],
            name=data.get("name", ""),
            provider_type=ProviderType(data["provider_type"]),
            avatar_url=data.get("avatar_url"),
        )


@dataclass
class EmailAddress:
    address: str
    name: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.address

    def to_dict(self) -> dict[str, str]:
        return {"address": self.address, "name": self.name}

    @classmethod
    def parse(cls, value: str) -> "EmailAddress":
        """Parse a header value like ``Jane Doe <jane@example.com>``."""
        value = value.strip()
        if "<" in value and value.endswith(">"):
            name, _, address = value[:-1].rpartition("<")
            return cls(address=address.strip(), name=name.strip().strip('"'))
        return cls(address=value)


@dataclass
class Message:
    """An email message normalized from any provider."""

    id: str
    subject: str
    sender: EmailAddress
    received_at: datetime
    provider_type: ProviderType
    account_id: str
    account_email: str
    to: list[EmailAddress] = field(default_factory=list)
    cc: list[EmailAddress] = field(default_factory=list)
    body: str = ""
    has_attachments: bool = False
    importance: Importance = Importance.NORMAL
    is_read: bool = False
    conversation_id: str | None = None
    provider_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> RecordKey:
        return record_key(self.provider_type, self.account_id, self.id)

    def involves(self, address: str) -> bool:
        """True when ``address`` is the sender or a recipient."""
        address = address.lower()
        participants = [self.sender, *self.to, *self.cc]
        return any(p.address.lower() == address for p in participants)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "sender": self.sender.to_dict(),
            "received_at": self.received_at.isoformat(),
            "provider_type": self.provider_type.value,
            "account_id": self.account_id,
            "account_email": self.account_email,
            "to": [a.to_dict() for a in self.to],
            "cc": [a.to_dict() for a in self.cc],
            "body": self.body,
            "has_attachments": self.has_attachments,
            "importance": self.importance.value,
            "is_read": self.is_read,
            "conversation_id": self.conversation_id,
            "provider_metadata": self.provider_metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            id=data["id"],
            subject=data.get("subject", ""),
            sender=EmailAddress(**data["sender"]),
            received_at=_parse_datetime(data["received_at"]),
            provider_type=ProviderType(data["provider_type"]),
            account_id=data["account_id"],
            account_email=data.get("account_email", ""),
            to=[EmailAddress(**a) for a in data.get("to", [])],
            cc=[EmailAddress(**a) for a in data.get("cc", [])],
            body=data.get("body", ""),
            has_attachments=data.get("has_attachments", False),
            importance=Importance(data.get("importance", "normal")),
            is_read=data.get("is_read", False),
            conversation_id=data.get("conversation_id"),
            provider_metadata=data.get("provider_metadata") or {},
        )


@dataclass
class Attendee:
    email_address: EmailAddress
    participation_type: ParticipationType = ParticipationType.REQUIRED
    response_status: ResponseStatus = ResponseStatus.NONE


@dataclass
class Meeting:
    """A calendar event. ``start`` must be strictly before ``end``."""

    id: str
    subject: str
    start: datetime
    end: datetime
    organizer: EmailAddress
    provider_type: ProviderType
    account_id: str
    account_email: str
    attendees: list[Attendee] = field(default_factory=list)
    location: str | None = None
    body: str = ""
    is_online_meeting: bool = False
    online_meeting_url: str | None = None
    provider_metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"Meeting {self.id}: start {self.start} is not before end {self.end}")

    @property
    def key(self) -> RecordKey:
        return record_key(self.provider_type, self.account_id, self.id)


@dataclass
class Note:
    id: str
    title: str
    content: str
    created_at: datetime
    last_modified_at: datetime
    provider_type: ProviderType
    account_id: str
    account_email: str
    section_id: str | None = None
    notebook_id: str | None = None
    tags: list[str] = field(default_factory=list)
    provider_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> RecordKey:
        return record_key(self.provider_type, self.account_id, self.id)


@dataclass
class Section:
    id: str
    display_name: str
    parent_notebook_id: str


@dataclass
class Notebook:
    id: str
    display_name: str
    sections: list[Section] = field(default_factory=list)


@dataclass
class NoteImage:
    url: str
    alt: str = ""


@dataclass
class NoteContent:
    html: str
    plain_text: str
    images: list[NoteImage] = field(default_factory=list)


@dataclass(frozen=True)
class TimeSlot:
    """Half-open interval ``[start, end)`` used for busy and free time."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"TimeSlot start {self.start} is not before end {self.end}")

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass
class AuthResult:
    """Outcome of a login attempt.

    A redirect-based flow returns ``pending=True`` with ``auth_url`` set; the
    caller completes it later through ``handle_auth_code``.
    """

    success: bool
    account_info: AccountInfo | None = None
    error: str | None = None
    pending: bool = False
    auth_url: str | None = None
