"""
Email analysis pipeline.

``analyze_email`` runs priority, entity, action item, sentiment and summary
analyses concurrently, plus local deadline detection. Each step degrades to
a default on failure so one bad model reply never loses the whole analysis.
"""

import asyncio
import logging
import re
from datetime import UTC, datetime
from typing import Any

from inbox_agent.analysis.deadlines import extract_deadline
from inbox_agent.analysis.parsing import parse_choice, parse_json_array
from inbox_agent.config import AnalysisConfig
from inbox_agent.llm import LLMService
from inbox_agent.models import (
    ActionItem,
    ChatMessage,
    ChatOptions,
    EmailAnalysis,
    Entity,
    EntityType,
    Importance,
    Message,
    PriorityLevel,
    Sentiment,
)
from inbox_agent.providers.html import html_to_text

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an assistant that analyzes business email. Answer exactly in the requested format."

SUMMARY_FALLBACK = "Unable to generate summary"

REASON_VIP = "Email from VIP sender"
REASON_IMPORTANCE = "Marked as high importance by sender"
REASON_MODEL_HIGH = "AI classified as high priority based on content"
REASON_STANDARD = "Standard priority email"

_HTML_MARKER = re.compile(r"<(html|body|div|p|br|table)\b", re.IGNORECASE)

_ENTITY_TYPES = {t.value: t for t in EntityType}
_PRIORITIES = {p.value: p for p in PriorityLevel}


def plain_body(message: Message) -> str:
    if _HTML_MARKER.search(message.body):
        return html_to_text(message.body)
    return message.body


def _parse_due_date(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class EmailAnalysisService:
    """Analyzes messages through the LLM service.

    Args:
        llm: LLM service used for every model call
        config: VIP senders and urgent keywords for the priority rules
    """

    def __init__(self, llm: LLMService, config: AnalysisConfig | None = None) -> None:
        self.llm = llm
        self.config = config or AnalysisConfig()
        self._vip_senders = {s.lower() for s in self.config.vip_senders}

    async def _ask(self, prompt: str, **options: Any) -> str:
        response = await self.llm.chat(
            [ChatMessage("system", SYSTEM_PROMPT), ChatMessage("user", prompt)],
            ChatOptions(**options),
        )
        return response.content.strip()

    async def analyze_email(self, message: Message) -> EmailAnalysis:
        body = plain_body(message)
        text = f"Subject: {message.subject}\n\n{body}"
        (priority, reason), entities, action_items, sentiment, summary = await asyncio.gather(
            self.classify_priority(message),
            self.extract_entities(text),
            self.extract_action_items(text),
            self.analyze_sentiment(text),
            self.summarize(message),
        )
        return EmailAnalysis(
            email_id=message.id,
            priority_level=priority,
            priority_reason=reason,
            entities=entities,
            action_items=action_items,
            sentiment=sentiment,
            summary=summary,
            related_note_ids=[],
            deadline=extract_deadline(f"{message.subject}\n{body}"),
        )

    def check_priority_rules(self, message: Message) -> tuple[PriorityLevel, str] | None:
        """Deterministic high-priority rules, checked before any model call."""
        if message.sender.address.lower() in self._vip_senders:
            return PriorityLevel.HIGH, REASON_VIP

        haystack = f"{message.subject} {plain_body(message)}".lower()
        for keyword in self.config.urgent_keywords:
            if keyword.lower() in haystack:
                return PriorityLevel.HIGH, f'Contains urgent keyword: "{keyword}"'

        if message.importance is Importance.HIGH:
            return PriorityLevel.HIGH, REASON_IMPORTANCE
        return None

    async def classify_priority(self, message: Message) -> tuple[PriorityLevel, str]:
        rule = self.check_priority_rules(message)
        if rule is not None:
            return rule

        prompt = (
            "Classify the priority of this email. Answer with one word: low, medium, or high.\n\n"
            f"From: {message.sender.display_name}\n"
            f"Subject: {message.subject}\n\n"
            f"{plain_body(message)[:500]}"
        )
        try:
            answer = await self._ask(prompt, temperature=0.0, max_tokens=5)
        except Exception as e:
            logger.warning(f"Priority classification failed for {message.id}: {e}", extra={"email_id": message.id})
            return PriorityLevel.MEDIUM, REASON_STANDARD

        level = _PRIORITIES[parse_choice(answer, tuple(_PRIORITIES), PriorityLevel.MEDIUM.value)]
        return level, REASON_MODEL_HIGH if level is PriorityLevel.HIGH else REASON_STANDARD

    async def extract_entities(self, text: str) -> list[Entity]:
        prompt = (
            "Extract named entities from this email. Return a JSON array of objects with keys "
            '"text", "type" (one of person, company, project, location, date) and '
            '"confidence" (0 to 1). Return [] if there are none.\n\n'
            f"{text[:1000]}"
        )
        try:
            items = parse_json_array(await self._ask(prompt, temperature=0.0))
        except Exception as e:
            logger.warning(f"Entity extraction failed: {e}")
            return []

        entities = []
        for item in items:
            if not isinstance(item, dict) or not item.get("text"):
                continue
            entity_type = _ENTITY_TYPES.get(str(item.get("type", "")).lower())
            if entity_type is None:
                continue
            try:
                confidence = float(item.get("confidence", 1.0))
            except (TypeError, ValueError):
                confidence = 0.5
            entities.append(Entity(text=str(item["text"]), type=entity_type, confidence=confidence))
        return entities

    async def extract_action_items(self, text: str) -> list[ActionItem]:
        prompt = (
            "List the action items the recipient must do. Return a JSON array of objects with keys "
            '"description", "priority" (low, medium or high) and "dueDate" (ISO 8601 date or null). '
            "Return [] if there are none.\n\n"
            f"{text[:1000]}"
        )
        try:
            items = parse_json_array(await self._ask(prompt, temperature=0.0))
        except Exception as e:
            logger.warning(f"Action item extraction failed: {e}")
            return []

        action_items = []
        for item in items:
            if not isinstance(item, dict) or not item.get("description"):
                continue
            action_items.append(
                ActionItem(
                    description=str(item["description"]),
                    priority=_PRIORITIES.get(str(item.get("priority", "")).lower(), PriorityLevel.MEDIUM),
                    due_date=_parse_due_date(item.get("dueDate")),
                    completed=False,
                )
            )
        return action_items

    async def analyze_sentiment(self, text: str) -> Sentiment:
        prompt = (
            "What is the overall sentiment of this email? Answer with one word: "
            f"positive, neutral, or negative.\n\n{text[:1000]}"
        )
        try:
            answer = await self._ask(prompt, temperature=0.0, max_tokens=5)
        except Exception as e:
            logger.warning(f"Sentiment analysis failed: {e}")
            return Sentiment.NEUTRAL
        return Sentiment(parse_choice(answer, tuple(s.value for s in Sentiment), Sentiment.NEUTRAL.value))

    async def summarize(self, message: Message) -> str:
        prompt = (
            "Summarize this email in one or two sentences.\n\n"
            f"From: {message.sender.display_name}\nSubject: {message.subject}\n\n"
            f"{plain_body(message)[:2000]}"
        )
        try:
            summary = await self._ask(prompt, temperature=0.3, max_tokens=150)
        except Exception as e:
            logger.warning(f"Summary failed for {message.id}: {e}", extra={"email_id": message.id})
            return SUMMARY_FALLBACK
        return summary or SUMMARY_FALLBACK

    async def draft_response(self, message: Message) -> str:
        """Suggested reply text, or an empty string if the model call fails."""
        prompt = (
            "Draft a short, professional reply to this email.\n\n"
            f"From: {message.sender.display_name}\nSubject: {message.subject}\n\n"
            f"{plain_body(message)[:2000]}"
        )
        try:
            return await self._ask(prompt, temperature=0.7, max_tokens=400)
        except Exception as e:
            logger.warning(f"Reply draft failed for {message.id}: {e}", extra={"email_id": message.id})
            return ""
