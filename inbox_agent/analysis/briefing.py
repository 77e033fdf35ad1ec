"""Meeting briefings: attendee notes, recent correspondence and suggested topics."""

import asyncio
import logging

from inbox_agent.analysis.parsing import parse_json_array
from inbox_agent.llm import LLMService
from inbox_agent.models import Attendee, Briefing, ChatMessage, ChatOptions, Meeting, Message, Note
from inbox_agent.providers.manager import ProviderManager

logger = logging.getLogger(__name__)

FALLBACK_TOPICS = ["Review meeting agenda", "Discuss action items", "Q&A"]

NOTES_PER_ATTENDEE = 5
MAX_RELATED_EMAILS = 10
EMAIL_SCAN_WINDOW = 100
MAX_TOPICS = 5


def attendee_key(attendee: Attendee) -> str:
    return attendee.email_address.name or attendee.email_address.address


class BriefingGenerator:
    def __init__(self, manager: ProviderManager, llm: LLMService) -> None:
        self.manager = manager
        self.llm = llm

    async def generate_briefing(self, meeting: Meeting) -> Briefing:
        attendee_notes, recent_emails = await asyncio.gather(
            self._attendee_notes(meeting), self._recent_emails(meeting)
        )
        topics = await self.suggest_topics(meeting, attendee_notes, recent_emails)
        return Briefing(
            meeting=meeting,
            attendee_notes=attendee_notes,
            recent_emails=recent_emails,
            suggested_topics=topics,
        )

    async def _notes_for(self, name: str) -> list[Note]:
        try:
            notes = await self.manager.find_all_notes_by_entity(name, "person")
        except Exception as e:
            logger.warning(f"Note lookup for attendee {name} failed: {e}")
            return []
        return notes[:NOTES_PER_ATTENDEE]

    async def _attendee_notes(self, meeting: Meeting) -> dict[str, list[Note]]:
        names = list(dict.fromkeys(attendee_key(a) for a in meeting.attendees if attendee_key(a)))
        results = await asyncio.gather(*(self._notes_for(name) for name in names))
        return dict(zip(names, results))

    async def _recent_emails(self, meeting: Meeting) -> list[Message]:
        """Messages to or from any attendee, in fetch order."""
        addresses = {a.email_address.address.lower() for a in meeting.attendees if a.email_address.address}
        if not addresses:
            return []
        try:
            recent = await self.manager.get_all_recent_emails(EMAIL_SCAN_WINDOW)
        except Exception as e:
            logger.warning(f"Recent email scan for meeting {meeting.id} failed: {e}")
            return []

        related = []
        for message in recent:
            if any(message.involves(address) for address in addresses):
                related.append(message)
                if len(related) >= MAX_RELATED_EMAILS:
                    break
        return related

    async def suggest_topics(
        self, meeting: Meeting, attendee_notes: dict[str, list[Note]], recent_emails: list[Message]
    ) -> list[str]:
        notes_summary = "\n".join(
            f"- {name}: {', '.join(n.title for n in notes)}" for name, notes in attendee_notes.items() if notes
        )
        subjects = "\n".join(f"- {m.subject}" for m in recent_emails[:5])
        prompt = (
            f"Meeting: {meeting.subject}\n"
            f"Attendees: {', '.join(attendee_notes) or 'none listed'}\n"
            f"Related notes:\n{notes_summary or '- none'}\n"
            f"Recent emails:\n{subjects or '- none'}\n\n"
            "Suggest 3 to 5 discussion topics for this meeting. "
            "Return only a JSON array of short strings."
        )
        try:
            response = await self.llm.chat([ChatMessage("user", prompt)], ChatOptions(temperature=0.5))
        except Exception as e:
            logger.warning(f"Topic suggestion failed for meeting {meeting.id}: {e}")
            return list(FALLBACK_TOPICS)

        topics = [str(t).strip() for t in parse_json_array(response.content) if str(t).strip()]
        if not topics:
            return list(FALLBACK_TOPICS)
        return topics[:MAX_TOPICS]

    async def check_upcoming_meetings(self) -> list[Meeting]:
        """Meetings starting in the next 24 hours."""
        return await self.manager.check_upcoming_meetings(24)
