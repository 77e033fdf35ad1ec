"""Tests for inbox_agent/analysis/insights.py - proactive insights."""

from datetime import timedelta

import pytest
from conftest import NOW, FakeCalendarProvider, FakeEmailProvider, make_account, make_meeting, make_message

from inbox_agent.analysis.insights import InsightsGenerator
from inbox_agent.models import ActionItem, EmailAnalysis, InsightType, PriorityLevel, ProviderType
from inbox_agent.providers.manager import ProviderManager


def analysis_for(message_id, deadline=None, action_items=None):
    return EmailAnalysis(
        email_id=message_id,
        priority_level=PriorityLevel.MEDIUM,
        priority_reason="Standard priority email",
        action_items=action_items or [],
        deadline=deadline,
    )


def build(messages=(), meetings=(), analyses=None):
    manager = ProviderManager()
    manager.register_email_provider("google-1", FakeEmailProvider(list(messages)))
    manager.register_calendar_provider("google-1", FakeCalendarProvider(list(meetings)))
    analyses = analyses or {}

    async def lookup(message):
        return analyses.get(message.id)

    return InsightsGenerator(manager, lookup, clock=lambda: NOW)


class TestDeadlineInsights:
    """Tests for deadline insights."""

    @pytest.mark.asyncio
    async def test_deadline_windows(self):
        """Within 2 days is high, within 7 days medium, beyond that nothing."""
        messages = [make_message(f"m{d}", subject=f"Task {d}") for d in (2, 5, 10)]
        analyses = {f"m{d}": analysis_for(f"m{d}", deadline=NOW + timedelta(days=d)) for d in (2, 5, 10)}

        insights = await build(messages, analyses=analyses).deadline_insights()

        by_id = {i.id: i for i in insights}
        assert set(by_id) == {"deadline-google:google-1:m2", "deadline-google:google-1:m5"}
        assert by_id["deadline-google:google-1:m2"].priority is PriorityLevel.HIGH
        assert by_id["deadline-google:google-1:m5"].priority is PriorityLevel.MEDIUM

    @pytest.mark.asyncio
    async def test_past_deadline_ignored(self):
        messages = [make_message("old")]
        analyses = {"old": analysis_for("old", deadline=NOW - timedelta(days=1))}
        assert await build(messages, analyses=analyses).deadline_insights() == []

    @pytest.mark.asyncio
    async def test_unanalyzed_messages_skipped(self):
        assert await build([make_message("m1")]).deadline_insights() == []


class TestFollowUpInsights:
    """Tests for follow-up insights."""

    @pytest.mark.asyncio
    async def test_unread_old_message_with_pending_items(self):
        pending = [ActionItem("Send contract")]
        messages = [
            make_message("stale", received_at=NOW - timedelta(days=4)),
            make_message("fresh", received_at=NOW - timedelta(days=1)),
            make_message("read", received_at=NOW - timedelta(days=5), is_read=True),
            make_message("done", received_at=NOW - timedelta(days=5)),
        ]
        analyses = {
            "stale": analysis_for("stale", action_items=pending),
            "fresh": analysis_for("fresh", action_items=pending),
            "read": analysis_for("read", action_items=pending),
            "done": analysis_for("done", action_items=[ActionItem("Sign", completed=True)]),
        }

        insights = await build(messages, analyses=analyses).follow_up_insights()

        assert [i.id for i in insights] == ["follow-up-google:google-1:stale"]
        assert insights[0].type is InsightType.FOLLOW_UP
        assert insights[0].priority is PriorityLevel.MEDIUM
        assert insights[0].related_items[0].id == "stale"


class TestPatternInsights:
    """Tests for quiet-sender pattern insights."""

    @pytest.mark.asyncio
    async def test_frequent_sender_gone_quiet(self):
        quiet = [
            make_message(f"q{i}", sender="client@big.com", received_at=NOW - timedelta(days=20 + i))
            for i in range(3)
        ]
        active = [
            make_message(f"a{i}", sender="team@acme.com", received_at=NOW - timedelta(days=i))
            for i in range(3)
        ]
        rare = [make_message("r0", sender="once@x.com", received_at=NOW - timedelta(days=30))]

        insights = await build(quiet + active + rare).pattern_insights()

        assert [i.id for i in insights] == ["pattern-client@big.com"]
        assert insights[0].priority is PriorityLevel.LOW
        assert insights[0].related_items[0].id == "q0"


class TestSuggestionInsights:
    """Tests for meeting suggestions."""

    @pytest.mark.asyncio
    async def test_overlapping_meetings_flagged(self):
        first = make_meeting("a", start=NOW + timedelta(days=2), minutes=60)
        second = make_meeting("b", start=NOW + timedelta(days=2, minutes=30), minutes=60)
        third = make_meeting("c", start=NOW + timedelta(days=2, hours=2), minutes=30)

        insights = await build(meetings=[third, second, first]).suggestion_insights()

        assert [i.id for i in insights] == ["conflict-google:google-1:a-google:google-1:b"]
        assert insights[0].priority is PriorityLevel.HIGH

    @pytest.mark.asyncio
    async def test_back_to_back_is_not_conflict(self):
        first = make_meeting("a", start=NOW + timedelta(days=2), minutes=60)
        second = make_meeting("b", start=NOW + timedelta(days=2, hours=1), minutes=60)
        assert await build(meetings=[first, second]).suggestion_insights() == []

    @pytest.mark.asyncio
    async def test_prep_for_meetings_within_a_day(self):
        soon = make_meeting("soon", start=NOW + timedelta(hours=3))
        later = make_meeting("later", start=NOW + timedelta(days=3))

        insights = await build(meetings=[soon, later]).suggestion_insights()

        assert [i.id for i in insights] == ["prep-google:google-1:soon"]
        assert insights[0].priority is PriorityLevel.MEDIUM


class TestGenerateInsights:
    """Tests for the merged insight feed."""

    @pytest.mark.asyncio
    async def test_sorted_by_priority(self):
        messages = [make_message("m1")]
        analyses = {"m1": analysis_for("m1", deadline=NOW + timedelta(days=1))}
        meetings = [make_meeting("soon", start=NOW + timedelta(hours=3))]

        insights = await build(messages, meetings, analyses).generate_insights()

        assert [i.id for i in insights] == ["deadline-google:google-1:m1", "prep-google:google-1:soon"]

    @pytest.mark.asyncio
    async def test_failing_category_isolated(self):
        messages = [make_message("m1")]
        analyses = {"m1": analysis_for("m1", deadline=NOW + timedelta(days=1))}
        generator = build(messages, analyses=analyses)

        async def broken():
            raise RuntimeError("calendar exploded")

        generator.suggestion_insights = broken

        insights = await generator.generate_insights()

        assert [i.id for i in insights] == ["deadline-google:google-1:m1"]

    @pytest.mark.asyncio
    async def test_failing_lookup_skips_message(self):
        manager = ProviderManager()
        manager.register_email_provider("google-1", FakeEmailProvider([make_message("m1")]))

        async def lookup(message):
            raise RuntimeError("store offline")

        generator = InsightsGenerator(manager, lookup, clock=lambda: NOW)

        assert await generator.generate_insights() == []


class TestInsightIds:
    """Vendor ids repeat across accounts, so insight ids use composite keys."""

    def two_accounts(self, messages, meetings=()):
        manager = ProviderManager()
        for account_id in ("google-1", "microsoft-1"):
            manager.register_email_provider(
                account_id, FakeEmailProvider([m for m in messages if m.account_id == account_id])
            )
            manager.register_calendar_provider(
                account_id, FakeCalendarProvider([m for m in meetings if m.account_id == account_id])
            )
        return manager

    @pytest.mark.asyncio
    async def test_same_message_id_in_two_accounts(self):
        google = make_account("google-1")
        microsoft = make_account("microsoft-1", ProviderType.MICROSOFT)
        messages = [make_message("same", account=google), make_message("same", account=microsoft)]

        async def lookup(message):
            return analysis_for(message.id, deadline=NOW + timedelta(days=1))

        insights = await InsightsGenerator(self.two_accounts(messages), lookup, clock=lambda: NOW).deadline_insights()

        assert sorted(i.id for i in insights) == [
            "deadline-google:google-1:same",
            "deadline-microsoft:microsoft-1:same",
        ]

    @pytest.mark.asyncio
    async def test_same_meeting_id_in_two_accounts(self):
        google = make_account("google-1")
        microsoft = make_account("microsoft-1", ProviderType.MICROSOFT)
        meetings = [
            make_meeting("evt", account=google, start=NOW + timedelta(hours=3)),
            make_meeting("evt", account=microsoft, start=NOW + timedelta(hours=5)),
        ]

        async def lookup(message):
            return None

        manager = self.two_accounts([], meetings)
        insights = await InsightsGenerator(manager, lookup, clock=lambda: NOW).suggestion_insights()

        assert len({i.id for i in insights}) == 2
        assert "prep-microsoft:microsoft-1:evt" in {i.id for i in insights}
