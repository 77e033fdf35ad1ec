"""Shared data model for inbox-agent."""

from inbox_agent.models.analysis import (
    ActionItem,
    Briefing,
    EmailAnalysis,
    Entity,
    EntityType,
    Insight,
    InsightType,
    PriorityLevel,
    RelatedItem,
    Sentiment,
)
from inbox_agent.models.chat import ChatChunk, ChatMessage, ChatOptions, ChatResponse, TokenUsage
from inbox_agent.models.provider import (
    AccountInfo,
    Attendee,
    AuthResult,
    EmailAddress,
    Importance,
    Meeting,
    Message,
    Note,
    NoteContent,
    NoteImage,
    Notebook,
    ParticipationType,
    ProviderType,
    RecordKey,
    ResponseStatus,
    Section,
    TimeSlot,
    record_key,
)

__all__ = [
    "AccountInfo",
    "ActionItem",
    "Attendee",
    "AuthResult",
    "Briefing",
    "ChatChunk",
    "ChatMessage",
    "ChatOptions",
    "ChatResponse",
    "EmailAddress",
    "EmailAnalysis",
    "Entity",
    "EntityType",
    "Importance",
    "Insight",
    "InsightType",
    "Meeting",
    "Message",
    "Note",
    "NoteContent",
    "NoteImage",
    "Notebook",
    "ParticipationType",
    "PriorityLevel",
    "ProviderType",
    "RecordKey",
    "RelatedItem",
    "ResponseStatus",
    "Section",
    "Sentiment",
    "TimeSlot",
    "TokenUsage",
    "record_key",
]
