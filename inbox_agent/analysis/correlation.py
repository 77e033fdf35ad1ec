"""
Correlation of email with notes.

Scoring, summed per note across all searches:
- each person/company/project entity whose search hits the note adds the
  entity's confidence
- a hit on the message subject adds 0.5
- a hit on the sender's display name adds 0.7

Ties in score are broken by the most recently modified note.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable

from inbox_agent.models import Entity, EntityType, Message, Note, RecordKey
from inbox_agent.providers.manager import ProviderManager

logger = logging.getLogger(__name__)

SUBJECT_WEIGHT = 0.5
SENDER_WEIGHT = 0.7
MAX_RELATED_NOTES = 10

SEARCHABLE_ENTITY_TYPES = (EntityType.PERSON, EntityType.COMPANY, EntityType.PROJECT)

_WORD = re.compile(r"\w+")


def calculate_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the lowercase word sets of two strings."""
    words_a = set(_WORD.findall(a.lower()))
    words_b = set(_WORD.findall(b.lower()))
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


class CorrelationEngine:
    """Ranks notes against a message using the provider manager's note search.

    Embedding similarity is not part of the score; note embeddings are stored
    by ``AssistantStore`` for a future semantic ranker.
    """

    def __init__(self, manager: ProviderManager, max_results: int = MAX_RELATED_NOTES) -> None:
        self.manager = manager
        self.max_results = max_results

    async def rank_notes(self, message: Message, entities: list[Entity]) -> list[tuple[Note, float]]:
        """Scored notes, best first, at most ``max_results``."""
        searches: list[tuple[str, Awaitable[list[Note]], float]] = []
        for entity in entities:
            if entity.type in SEARCHABLE_ENTITY_TYPES:
                searches.append(
                    (
                        f"entity {entity.text!r}",
                        self.manager.find_all_notes_by_entity(entity.text, entity.type.value),
                        entity.confidence,
                    )
                )
        if message.subject.strip():
            searches.append(("subject", self.manager.search_all_notes(message.subject), SUBJECT_WEIGHT))
        if message.sender.name.strip():
            searches.append(("sender", self.manager.search_all_notes(message.sender.name), SENDER_WEIGHT))

        results = await asyncio.gather(*(s[1] for s in searches), return_exceptions=True)

        scores: dict[RecordKey, float] = {}
        notes: dict[RecordKey, Note] = {}
        for (label, _, weight), result in zip(searches, results):
            if isinstance(result, Exception):
                logger.warning(f"Note search by {label} failed: {result}", extra={"email_id": message.id})
                continue
            if isinstance(result, BaseException):
                raise result
            for key in {note.key for note in result}:
                scores[key] = scores.get(key, 0.0) + weight
            for note in result:
                notes.setdefault(note.key, note)

        ranked = sorted(scores, key=lambda k: (scores[k], notes[k].last_modified_at), reverse=True)
        return [(notes[k], scores[k]) for k in ranked[: self.max_results]]

    async def find_related_notes(self, message: Message, entities: list[Entity]) -> list[Note]:
        return [note for note, _ in await self.rank_notes(message, entities)]

    async def correlate_email_with_notes(self, message: Message, entities: list[Entity]) -> list[str]:
        """Ids of the related notes, in rank order."""
        return [note.id for note in await self.find_related_notes(message, entities)]
