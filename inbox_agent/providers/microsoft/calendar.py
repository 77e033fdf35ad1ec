"""Outlook calendar adapter backed by Graph."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from inbox_agent.models import (
    AccountInfo,
    Attendee,
    EmailAddress,
    Meeting,
    ParticipationType,
    ResponseStatus,
    TimeSlot,
)
from inbox_agent.providers.base import CalendarProvider
from inbox_agent.providers.http import format_timestamp, parse_timestamp
from inbox_agent.providers.microsoft.client import GraphClient
from inbox_agent.providers.scheduling import check_duration, compute_free_slots

logger = logging.getLogger(__name__)

CALENDAR_VIEW_PAGE_SIZE = 100

_RESPONSE_STATUS = {
    "accepted": ResponseStatus.ACCEPTED,
    "organizer": ResponseStatus.ACCEPTED,
    "tentativelyaccepted": ResponseStatus.TENTATIVE,
    "declined": ResponseStatus.DECLINED,
}

_PARTICIPATION = {p.value: p for p in ParticipationType}


def _address(data: dict[str, Any] | None) -> EmailAddress:
    email = (data or {}).get("emailAddress") or {}
    return EmailAddress(address=email.get("address", ""), name=email.get("name", ""))


class OutlookCalendarProvider(CalendarProvider):
    """Primary calendar of one Microsoft account.

    Free time is computed over whole days: Graph users have no enforced
    working-hours window here.
    """

    def __init__(self, client: GraphClient, account: AccountInfo) -> None:
        self.client = client
        self.account = account
        self._cache: dict[str, Meeting] = {}

    def map_event(self, data: dict[str, Any]) -> Meeting:
        online = data.get("onlineMeeting") or {}
        attendees = [
            Attendee(
                email_address=_address(a),
                participation_type=_PARTICIPATION.get(a.get("type", "required"), ParticipationType.REQUIRED),
                response_status=_RESPONSE_STATUS.get(
                    ((a.get("status") or {}).get("response") or "none").lower(), ResponseStatus.NONE
                ),
            )
            for a in data.get("attendees", [])
        ]
        meeting = Meeting(
            id=data["id"],
            subject=data.get("subject") or "",
            start=parse_timestamp(data["start"]["dateTime"]),
            end=parse_timestamp(data["end"]["dateTime"]),
            organizer=_address(data.get("organizer")),
            provider_type=self.account.provider_type,
            account_id=self.account.id,
            account_email=self.account.email,
            attendees=attendees,
            location=(data.get("location") or {}).get("displayName") or None,
            body=(data.get("body") or {}).get("content", ""),
            is_online_meeting=bool(data.get("isOnlineMeeting")),
            online_meeting_url=online.get("joinUrl") or data.get("onlineMeetingUrl"),
            provider_metadata={
                "recurring_event_id": data.get("seriesMasterId"),
                "is_all_day": bool(data.get("isAllDay")),
                "show_as": data.get("showAs"),
                "is_cancelled": bool(data.get("isCancelled")),
                "web_link": data.get("webLink"),
            },
        )
        self._cache[meeting.id] = meeting
        return meeting

    def _map_events(self, items: list[dict[str, Any]]) -> list[Meeting]:
        meetings = []
        for item in items:
            try:
                meetings.append(self.map_event(item))
            except (KeyError, ValueError) as e:
                logger.warning(
                    f"Skipping malformed event {item.get('id')}: {e}",
                    extra={"account_id": self.account.id},
                )
        return meetings

    async def get_meetings_between(self, start: datetime, end: datetime) -> list[Meeting]:
        items = await self.client.get_all(
            "/me/calendarView",
            params={
                "startDateTime": format_timestamp(start),
                "endDateTime": format_timestamp(end),
                "$top": CALENDAR_VIEW_PAGE_SIZE,
                "$orderby": "start/dateTime",
            },
        )
        return self._map_events(items)

    async def get_upcoming_meetings(self, days: int = 7) -> list[Meeting]:
        now = datetime.now(UTC)
        return await self.get_meetings_between(now, now + timedelta(days=days))

    async def get_meeting_by_id(self, meeting_id: str) -> Meeting:
        if meeting_id in self._cache:
            return self._cache[meeting_id]
        return self.map_event(await self.client.get(f"/me/events/{meeting_id}"))

    async def find_available_slots(self, duration_minutes: int, days: int = 7) -> list[TimeSlot]:
        check_duration(duration_minutes)
        now = datetime.now(UTC)
        window_end = now + timedelta(days=days)
        meetings = await self.get_meetings_between(now, window_end)
        busy = [
            TimeSlot(m.start, m.end)
            for m in meetings
            if m.provider_metadata.get("show_as") != "free" and not m.provider_metadata.get("is_cancelled")
        ]
        return compute_free_slots(busy, now, window_end, duration_minutes)

    def clear_cache(self) -> None:
        self._cache.clear()
