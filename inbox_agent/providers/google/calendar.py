"""Google Calendar adapter."""

import logging
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

from inbox_agent.config import CalendarConfig
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
from inbox_agent.providers.google.client import CALENDAR_API, GoogleApiClient
from inbox_agent.providers.http import format_timestamp, parse_timestamp
from inbox_agent.providers.scheduling import business_hour_slots, check_duration

logger = logging.getLogger(__name__)

EVENTS_PAGE_SIZE = 50

_RESPONSE_STATUS = {
    "accepted": ResponseStatus.ACCEPTED,
    "declined": ResponseStatus.DECLINED,
    "tentative": ResponseStatus.TENTATIVE,
}


def _event_time(value: dict[str, Any], tz: tzinfo) -> datetime:
    if "dateTime" in value:
        return parse_timestamp(value["dateTime"])
    return datetime.combine(date.fromisoformat(value["date"]), time(0), tzinfo=tz)


def _meeting_url(data: dict[str, Any]) -> str | None:
    for entry in (data.get("conferenceData") or {}).get("entryPoints", []):
        if entry.get("entryPointType") == "video" and entry.get("uri"):
            return entry["uri"]
    return data.get("hangoutLink")


class GoogleCalendarProvider(CalendarProvider):
    """Primary calendar of one Google account.

    Free slots are hourly candidates inside weekday working hours.
    """

    def __init__(
        self, client: GoogleApiClient, account: AccountInfo, config: CalendarConfig | None = None
    ) -> None:
        self.client = client
        self.account = account
        self.config = config or CalendarConfig()
        self.tz = ZoneInfo(self.config.timezone)
        self._cache: dict[str, Meeting] = {}

    def map_event(self, data: dict[str, Any]) -> Meeting:
        organizer = data.get("organizer") or {}
        attendees = [
            Attendee(
                email_address=EmailAddress(address=a.get("email", ""), name=a.get("displayName", "")),
                participation_type=(
                    ParticipationType.RESOURCE
                    if a.get("resource")
                    else ParticipationType.OPTIONAL
                    if a.get("optional")
                    else ParticipationType.REQUIRED
                ),
                response_status=_RESPONSE_STATUS.get(a.get("responseStatus", ""), ResponseStatus.NONE),
            )
            for a in data.get("attendees", [])
        ]
        url = _meeting_url(data)
        meeting = Meeting(
            id=data["id"],
            subject=data.get("summary") or "",
            start=_event_time(data["start"], self.tz),
            end=_event_time(data["end"], self.tz),
            organizer=EmailAddress(address=organizer.get("email", ""), name=organizer.get("displayName", "")),
            provider_type=self.account.provider_type,
            account_id=self.account.id,
            account_email=self.account.email,
            attendees=attendees,
            location=data.get("location"),
            body=data.get("description", ""),
            is_online_meeting=url is not None,
            online_meeting_url=url,
            provider_metadata={
                "calendar_id": "primary",
                "recurring_event_id": data.get("recurringEventId"),
                "conference_data": data.get("conferenceData"),
                "is_all_day": "date" in data["start"],
                "html_link": data.get("htmlLink"),
            },
        )
        self._cache[meeting.id] = meeting
        return meeting

    async def get_meetings_between(self, start: datetime, end: datetime) -> list[Meeting]:
        items = await self.client.get_pages(
            f"{CALENDAR_API}/calendars/primary/events",
            {
                "timeMin": format_timestamp(start),
                "timeMax": format_timestamp(end),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": EVENTS_PAGE_SIZE,
            },
            "items",
        )
        meetings = []
        for item in items:
            if item.get("status") == "cancelled":
                continue
            try:
                meetings.append(self.map_event(item))
            except (KeyError, ValueError) as e:
                logger.warning(
                    f"Skipping malformed event {item.get('id')}: {e}",
                    extra={"account_id": self.account.id},
                )
        return meetings

    async def get_upcoming_meetings(self, days: int = 7) -> list[Meeting]:
        now = datetime.now(UTC)
        return await self.get_meetings_between(now, now + timedelta(days=days))

    async def get_meeting_by_id(self, meeting_id: str) -> Meeting:
        if meeting_id in self._cache:
            return self._cache[meeting_id]
        return self.map_event(await self.client.get(f"{CALENDAR_API}/calendars/primary/events/{meeting_id}"))

    async def get_busy_intervals(self, start: datetime, end: datetime) -> list[TimeSlot]:
        data = await self.client.post(
            f"{CALENDAR_API}/freeBusy",
            {
                "timeMin": format_timestamp(start),
                "timeMax": format_timestamp(end),
                "items": [{"id": "primary"}],
            },
        )
        busy = (data.get("calendars", {}).get("primary") or {}).get("busy", [])
        intervals = []
        for interval in busy:
            slot_start, slot_end = parse_timestamp(interval["start"]), parse_timestamp(interval["end"])
            if slot_start < slot_end:
                intervals.append(TimeSlot(slot_start, slot_end))
        return intervals

    async def find_available_slots(self, duration_minutes: int, days: int = 7) -> list[TimeSlot]:
        check_duration(duration_minutes)
        now = datetime.now(UTC)
        busy = await self.get_busy_intervals(now, now + timedelta(days=days))
        return business_hour_slots(
            busy,
            now,
            days,
            duration_minutes,
            self.tz,
            start_hour=self.config.work_start_hour,
            end_hour=self.config.work_end_hour,
            max_slots=self.config.max_slots,
        )

    def clear_cache(self) -> None:
        self._cache.clear()
