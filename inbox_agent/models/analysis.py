"""Derived artifacts produced by the analysis, briefing and insight layers."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from inbox_agent.models.provider import Meeting, Message, Note, ProviderType


class PriorityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class EntityType(str, Enum):
    PERSON = "person"
    COMPANY = "company"
    PROJECT = "project"
    LOCATION = "location"
    DATE = "date"


class InsightType(str, Enum):
    FOLLOW_UP = "follow_up"
    DEADLINE = "deadline"
    PATTERN = "pattern"
    SUGGESTION = "suggestion"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass
class Entity:
    text: str
    type: EntityType
    confidence: float = 1.0

    def __post_init__(self) -> None:
        self.confidence = min(max(float(self.confidence), 0.0), 1.0)


@dataclass
class ActionItem:
    description: str
    priority: PriorityLevel = PriorityLevel.MEDIUM
    due_date: datetime | None = None
    completed: bool = False


@dataclass
class EmailAnalysis:
    """Structured analysis of one message. Replaced wholesale, never patched."""

    email_id: str
    priority_level: PriorityLevel
    priority_reason: str
    entities: list[Entity] = field(default_factory=list)
    action_items: list[ActionItem] = field(default_factory=list)
    sentiment: Sentiment = Sentiment.NEUTRAL
    summary: str = ""
    suggested_response: str | None = None
    related_note_ids: list[str] = field(default_factory=list)
    deadline: datetime | None = None
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def pending_action_items(self) -> list[ActionItem]:
        return [item for item in self.action_items if not item.completed]

    def to_dict(self) -> dict[str, Any]:
        return {
            "email_id": self.email_id,
            "priority_level": self.priority_level.value,
            "priority_reason": self.priority_reason,
            "entities": [
                {"text": e.text, "type": e.type.value, "confidence": e.confidence}
                for e in self.entities
            ],
            "action_items": [
                {
                    "description": a.description,
                    "priority": a.priority.value,
                    "due_date": _iso(a.due_date),
                    "completed": a.completed,
                }
                for a in self.action_items
            ],
            "sentiment": self.sentiment.value,
            "summary": self.summary,
            "suggested_response": self.suggested_response,
            "related_note_ids": list(self.related_note_ids),
            "deadline": _iso(self.deadline),
            "analyzed_at": self.analyzed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EmailAnalysis":
        return cls(
            email_id=data["email_id"],
            priority_level=PriorityLevel(data["priority_level"]),
            priority_reason=data.get("priority_reason", ""),
            entities=[
                Entity(text=e["text"], type=EntityType(e["type"]), confidence=e.get("confidence", 1.0))
                for e in data.get("entities", [])
            ],
            action_items=[
                ActionItem(
                    description=a["description"],
                    priority=PriorityLevel(a.get("priority", "medium")),
                    due_date=_from_iso(a.get("due_date")),
                    completed=a.get("completed", False),
                )
                for a in data.get("action_items", [])
            ],
            sentiment=Sentiment(data.get("sentiment", "neutral")),
            summary=data.get("summary", ""),
            suggested_response=data.get("suggested_response"),
            related_note_ids=list(data.get("related_note_ids", [])),
            deadline=_from_iso(data.get("deadline")),
            analyzed_at=_from_iso(data.get("analyzed_at")) or datetime.now(UTC),
        )


@dataclass
class RelatedItem:
    type: str  # "email", "note" or "meeting"
    id: str
    title: str
    provider_type: ProviderType | None = None
    account_id: str | None = None

    @classmethod
    def for_message(cls, message: Message) -> "RelatedItem":
        return cls("email", message.id, message.subject, message.provider_type, message.account_id)

    @classmethod
    def for_meeting(cls, meeting: Meeting) -> "RelatedItem":
        return cls("meeting", meeting.id, meeting.subject, meeting.provider_type, meeting.account_id)


@dataclass
class Insight:
    id: str
    type: InsightType
    title: str
    description: str
    priority: PriorityLevel
    actionable: bool = True
    related_items: list[RelatedItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class Briefing:
    meeting: Meeting
    attendee_notes: dict[str, list[Note]] = field(default_factory=dict)
    recent_emails: list[Message] = field(default_factory=list)
    suggested_topics: list[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
