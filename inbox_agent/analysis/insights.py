"""
Proactive insights.

Four independent categories are computed and merged:
- follow_up: unread messages older than 3 days with pending action items
- deadline: analyzed deadlines falling within the next 7 days
- pattern: frequent senders who have gone quiet for more than 14 days
- suggestion: overlapping meetings and meetings starting within 24 hours

A failing category contributes nothing; the others are still returned.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from inbox_agent.models import (
    EmailAnalysis,
    Insight,
    InsightType,
    Message,
    PriorityLevel,
    RelatedItem,
)
from inbox_agent.providers.manager import ProviderManager

logger = logging.getLogger(__name__)

AnalysisLookup = Callable[[Message], Awaitable[EmailAnalysis | None]]

FOLLOW_UP_AGE = timedelta(days=3)
DEADLINE_HORIZON = timedelta(days=7)
DEADLINE_URGENT = timedelta(days=2)
PATTERN_MIN_MESSAGES = 3
PATTERN_SILENCE = timedelta(days=14)
PREP_WINDOW = timedelta(hours=24)

FOLLOW_UP_WINDOW = 50
DEADLINE_WINDOW = 50
PATTERN_WINDOW = 100
SUGGESTION_DAYS = 7


def insight_id(kind: str, *records) -> str:
    """Stable insight id built from the composite keys of the related records."""
    return "-".join([kind, *(":".join(record.key) for record in records)])


class InsightsGenerator:
    """Builds the insight feed from recent mail, stored analyses and calendars.

    Args:
        manager: Provider manager for mail and calendar fan-out
        analysis_lookup: Returns the known analysis of a message, if any
        clock: Current time, injectable for tests
    """

    def __init__(
        self,
        manager: ProviderManager,
        analysis_lookup: AnalysisLookup,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.manager = manager
        self.analysis_lookup = analysis_lookup
        self.clock = clock

    async def generate_insights(self) -> list[Insight]:
        categories = {
            "follow_up": self.follow_up_insights,
            "deadline": self.deadline_insights,
            "pattern": self.pattern_insights,
            "suggestion": self.suggestion_insights,
        }
        results = await asyncio.gather(*(self._safely(name, build) for name, build in categories.items()))
        insights = [insight for group in results for insight in group]
        insights.sort(key=lambda i: (i.priority.rank, i.created_at), reverse=True)
        return insights

    async def _safely(self, name: str, build: Callable[[], Awaitable[list[Insight]]]) -> list[Insight]:
        try:
            return await build()
        except Exception as e:
            logger.warning(f"{name} insights failed: {e}")
            return []

    async def _analyses(self, messages: list[Message]) -> list[tuple[Message, EmailAnalysis]]:
        lookups = await asyncio.gather(*(self.analysis_lookup(m) for m in messages), return_exceptions=True)
        pairs = []
        for message, analysis in zip(messages, lookups):
            if isinstance(analysis, Exception):
                logger.warning(f"Analysis lookup failed for {message.id}: {analysis}", extra={"email_id": message.id})
            elif isinstance(analysis, EmailAnalysis):
                pairs.append((message, analysis))
        return pairs

    async def follow_up_insights(self) -> list[Insight]:
        now = self.clock()
        messages = await self.manager.get_all_recent_emails(FOLLOW_UP_WINDOW)
        insights = []
        for message, analysis in await self._analyses(messages):
            pending = analysis.pending_action_items
            if not pending or message.is_read or now - message.received_at <= FOLLOW_UP_AGE:
                continue
            days = (now - message.received_at).days
            insights.append(
                Insight(
                    id=insight_id("follow-up", message),
                    type=InsightType.FOLLOW_UP,
                    title="Follow-up needed",
                    description=(
                        f'"{message.subject}" from {message.sender.display_name} has '
                        f"{len(pending)} pending action item(s) and is still unread after {days} days"
                    ),
                    priority=PriorityLevel.MEDIUM,
                    related_items=[RelatedItem.for_message(message)],
                    created_at=now,
                )
            )
        return insights

    async def deadline_insights(self) -> list[Insight]:
        now = self.clock()
        messages = await self.manager.get_all_recent_emails(DEADLINE_WINDOW)
        insights = []
        for message, analysis in await self._analyses(messages):
            if analysis.deadline is None:
                continue
            remaining = analysis.deadline - now
            if not timedelta(0) < remaining <= DEADLINE_HORIZON:
                continue
            insights.append(
                Insight(
                    id=insight_id("deadline", message),
                    type=InsightType.DEADLINE,
                    title="Upcoming deadline",
                    description=(
                        f'"{message.subject}" is due {analysis.deadline:%Y-%m-%d} '
                        f"({remaining.days} day(s) left)"
                    ),
                    priority=PriorityLevel.HIGH if remaining <= DEADLINE_URGENT else PriorityLevel.MEDIUM,
                    related_items=[RelatedItem.for_message(message)],
                    created_at=now,
                )
            )
        return insights

    async def pattern_insights(self) -> list[Insight]:
        now = self.clock()
        messages = await self.manager.get_all_recent_emails(PATTERN_WINDOW)
        by_sender: dict[str, list[Message]] = defaultdict(list)
        for message in messages:
            if message.sender.address:
                by_sender[message.sender.address.lower()].append(message)

        insights = []
        for sender, sent in by_sender.items():
            if len(sent) < PATTERN_MIN_MESSAGES:
                continue
            latest = max(sent, key=lambda m: m.received_at)
            silence = now - latest.received_at
            if silence <= PATTERN_SILENCE:
                continue
            insights.append(
                Insight(
                    id=f"pattern-{sender}",
                    type=InsightType.PATTERN,
                    title="Client not contacted recently",
                    description=(
                        f"{latest.sender.display_name} sent {len(sent)} messages but nothing "
                        f"in the last {silence.days} days"
                    ),
                    priority=PriorityLevel.LOW,
                    related_items=[RelatedItem.for_message(latest)],
                    created_at=now,
                )
            )
        return insights

    async def suggestion_insights(self) -> list[Insight]:
        now = self.clock()
        meetings = sorted(await self.manager.get_all_upcoming_meetings(SUGGESTION_DAYS), key=lambda m: m.start)
        insights = []

        for current, following in zip(meetings, meetings[1:]):
            if current.end > following.start:
                insights.append(
                    Insight(
                        id=insight_id("conflict", current, following),
                        type=InsightType.SUGGESTION,
                        title="Scheduling conflict detected",
                        description=(
                            f'"{current.subject}" overlaps with "{following.subject}" '
                            f"on {following.start:%Y-%m-%d %H:%M} UTC"
                        ),
                        priority=PriorityLevel.HIGH,
                        related_items=[RelatedItem.for_meeting(current), RelatedItem.for_meeting(following)],
                        created_at=now,
                    )
                )

        for meeting in meetings:
            if timedelta(0) < meeting.start - now <= PREP_WINDOW:
                insights.append(
                    Insight(
                        id=insight_id("prep", meeting),
                        type=InsightType.SUGGESTION,
                        title="Prepare for upcoming meeting",
                        description=f'"{meeting.subject}" starts at {meeting.start:%Y-%m-%d %H:%M} UTC',
                        priority=PriorityLevel.MEDIUM,
                        related_items=[RelatedItem.for_meeting(meeting)],
                        created_at=now,
                    )
                )
        return insights
