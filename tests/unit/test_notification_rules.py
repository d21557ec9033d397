# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the parent notification rules."""

from datetime import date, datetime, time, timezone
from unittest.mock import patch

import pytest
import pytest_asyncio

from counseltrack.infrastructure.database.models.notification import (
    NotificationChannel,
    NotificationPriority,
    NotificationRecord,
    RecipientType,
)
from counseltrack.infrastructure.database.models.student import RiskLevel
from counseltrack.infrastructure.database.seeds import seed_notification_templates
from counseltrack.infrastructure.notifications.rules import (
    AlertNotice,
    NotificationRulesService,
    in_quiet_hours,
)
from counseltrack.infrastructure.notifications.service import NotificationDispatcher

LATE_EVENING = datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc)
MIDDAY = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def rules(db, channels, settings) -> NotificationRulesService:
    await seed_notification_templates(db)
    dispatcher = NotificationDispatcher(db, channels=channels, settings=settings)
    return NotificationRulesService(db, dispatcher, settings=settings)


async def parent_preference(rules, **values):
    values.setdefault("email_address", "parent@example.com")
    return await rules.save_preference("parent-1", RecipientType.PARENT, student_id="student-1", **values)


def alert(level=RiskLevel.HIGH, **overrides) -> AlertNotice:
    data = {
        "alert_id": "alert-1",
        "student_id": "student-1",
        "student_name": "Ada",
        "alert_level": level,
        "alert_type": "ATTENDANCE",
        "title": "Attendance dropped",
        "description": "Missed 4 of the last 5 school days.",
    }
    data.update(overrides)
    return AlertNotice(**data)


async def sent_records(db, outcome) -> list[NotificationRecord]:
    return [await db.get(NotificationRecord, notification_id) for notification_id in outcome.sent]


class TestQuietHours:
    """Tests for in_quiet_hours."""

    def test_same_day_window(self):
        assert in_quiet_hours("12:00", "13:00", time(12, 30)) is True
        assert in_quiet_hours("12:00", "13:00", time(13, 1)) is False

    def test_window_spanning_midnight(self):
        assert in_quiet_hours("22:00", "07:00", time(23, 30)) is True
        assert in_quiet_hours("22:00", "07:00", time(6, 59)) is True
        assert in_quiet_hours("22:00", "07:00", time(12, 0)) is False

    def test_ends_are_inclusive(self):
        assert in_quiet_hours("22:00", "07:00", time(7, 0, 45)) is True

    def test_unset_window(self):
        assert in_quiet_hours(None, None, time(3, 0)) is False


class TestAlertNotifications:
    """Tests for process_alert_notifications."""

    @pytest.mark.asyncio
    async def test_high_alert_goes_to_parent_only(self, rules, db):
        await parent_preference(rules)

        with patch("counseltrack.infrastructure.notifications.rules.utc_now", return_value=MIDDAY):
            outcome = await rules.process_alert_notifications(alert())

        records = await sent_records(db, outcome)
        assert outcome.skipped == []
        assert len(records) == 1
        parent = records[0]
        assert parent.recipient_type == RecipientType.PARENT
        assert parent.recipient_contact == "parent@example.com"
        assert parent.channel == NotificationChannel.EMAIL
        assert parent.priority == NotificationPriority.HIGH
        assert parent.alert_id == "alert-1"
        assert parent.subject == "Important update about Ada"
        assert "Missed 4 of the last 5 school days." in parent.message
        assert "Lincoln High" in parent.message
        assert parent.extra_data["template_name"] == "risk_alert_parent"

    @pytest.mark.asyncio
    async def test_critical_alert_also_reaches_counselor_in_app(self, rules, db):
        await parent_preference(rules)

        with patch("counseltrack.infrastructure.notifications.rules.utc_now", return_value=MIDDAY):
            outcome = await rules.process_alert_notifications(alert(RiskLevel.CRITICAL))

        parent, counselor = await sent_records(db, outcome)
        assert parent.priority == NotificationPriority.URGENT
        assert counselor.recipient_type == RecipientType.COUNSELOR
        assert counselor.recipient_contact == "counselor@test.edu"
        assert counselor.channel == NotificationChannel.IN_APP
        assert counselor.priority == NotificationPriority.URGENT
        assert counselor.subject == "Critical alert: Ada"
        assert counselor.message == "Attendance dropped\n\nMissed 4 of the last 5 school days."

    @pytest.mark.asyncio
    async def test_medium_alert_is_not_sent(self, rules):
        await parent_preference(rules)

        outcome = await rules.process_alert_notifications(alert(RiskLevel.MEDIUM))

        assert outcome.sent == []
        assert outcome.skipped == ["MEDIUM alerts are not sent to parents"]

    @pytest.mark.asyncio
    async def test_parent_filters_risk_levels(self, rules):
        await parent_preference(rules, risk_levels=["CRITICAL"])

        with patch("counseltrack.infrastructure.notifications.rules.utc_now", return_value=MIDDAY):
            outcome = await rules.process_alert_notifications(alert(RiskLevel.HIGH))

        assert outcome.sent == []
        assert outcome.skipped == ["Parent does not follow HIGH alerts"]

    @pytest.mark.asyncio
    async def test_parent_filters_alert_types(self, rules):
        await parent_preference(rules, alert_types=["BEHAVIOR"])

        with patch("counseltrack.infrastructure.notifications.rules.utc_now", return_value=MIDDAY):
            outcome = await rules.process_alert_notifications(alert())

        assert outcome.skipped == ["Parent does not follow ATTENDANCE alerts"]

    @pytest.mark.asyncio
    async def test_quiet_hours_hold_back_parent_but_not_counselor(self, rules, db):
        await parent_preference(rules, quiet_hours_start="22:00", quiet_hours_end="07:00")

        with patch("counseltrack.infrastructure.notifications.rules.utc_now", return_value=LATE_EVENING):
            outcome = await rules.process_alert_notifications(alert(RiskLevel.CRITICAL))

        records = await sent_records(db, outcome)
        assert outcome.skipped == ["Parent quiet hours"]
        assert [r.recipient_type for r in records] == [RecipientType.COUNSELOR]

    @pytest.mark.asyncio
    async def test_parent_with_email_disabled(self, rules):
        await parent_preference(rules, email_enabled=False)

        outcome = await rules.process_alert_notifications(alert())

        assert outcome.skipped == ["Parent disabled email"]

    @pytest.mark.asyncio
    async def test_no_preference_needs_a_contact(self, rules, db):
        skipped = await rules.process_alert_notifications(alert())
        with patch("counseltrack.infrastructure.notifications.rules.utc_now", return_value=LATE_EVENING):
            sent = await rules.process_alert_notifications(alert(parent_contact="guardian@example.com"))

        assert skipped.skipped == ["No parent contact"]
        records = await sent_records(db, sent)
        assert records[0].recipient_contact == "guardian@example.com"


class TestInterventionNotifications:
    """Tests for process_intervention_notifications."""

    async def _notify(self, rules):
        return await rules.process_intervention_notifications(
            intervention_id="int-1",
            student_id="student-1",
            student_name="Ada",
            intervention_title="Math tutoring",
            start_date=date(2026, 3, 2),
            counselor_name="Ms. Lee",
        )

    @pytest.mark.asyncio
    async def test_sent_when_parent_enabled_email(self, rules, db):
        await parent_preference(rules)

        outcome = await self._notify(rules)

        (record,) = await sent_records(db, outcome)
        assert record.intervention_id == "int-1"
        assert record.subject == "Support plan started for Ada"
        assert "Math tutoring" in record.message
        assert "2026-03-02" in record.message
        assert "Ms. Lee" in record.message
        assert record.priority == NotificationPriority.NORMAL

    @pytest.mark.asyncio
    async def test_skipped_without_preference(self, rules):
        outcome = await self._notify(rules)

        assert outcome.sent == []
        assert outcome.skipped == ["Parent has not enabled email"]

    @pytest.mark.asyncio
    async def test_skipped_when_email_disabled(self, rules):
        await parent_preference(rules, email_enabled=False)

        outcome = await self._notify(rules)

        assert outcome.sent == []


class TestWeeklyDigest:
    """Tests for send_weekly_digest."""

    @pytest.mark.asyncio
    async def test_sent_to_opted_in_parent(self, rules, db):
        await parent_preference(rules, weekly_digest=True)

        outcome = await rules.send_weekly_digest("student-1", "Ada", "Turned in every assignment.")

        (record,) = await sent_records(db, outcome)
        assert record.subject == "Weekly progress for Ada"
        assert "Turned in every assignment." in record.message
        assert record.priority == NotificationPriority.LOW

    @pytest.mark.asyncio
    async def test_skipped_when_opted_out(self, rules):
        await parent_preference(rules, weekly_digest=False)

        outcome = await rules.send_weekly_digest("student-1", "Ada", "Turned in every assignment.")

        assert outcome.sent == []
        assert outcome.skipped == ["Parent has not opted into the weekly digest"]


class TestMeetingInvitation:
    """Tests for schedule_meeting_invitation."""

    @pytest.mark.asyncio
    async def test_invitation_is_sent_regardless_of_preferences(self, rules, db):
        await parent_preference(rules, email_enabled=False, weekly_digest=False)

        outcome = await rules.schedule_meeting_invitation(
            student_id="student-1",
            student_name="Ada",
            meeting_date=date(2026, 3, 9),
            meeting_time="15:30",
            meeting_topic="Support plan review",
        )

        (record,) = await sent_records(db, outcome)
        assert record.subject == "Meeting invitation: Support plan review"
        assert "2026-03-09" in record.message
        assert "15:30" in record.message
        assert record.extra_data["meeting_time"] == "15:30"

    @pytest.mark.asyncio
    async def test_needs_a_contact(self, rules):
        outcome = await rules.schedule_meeting_invitation(
            student_id="student-9",
            student_name="Grace",
            meeting_date=date(2026, 3, 9),
            meeting_time="15:30",
            meeting_topic="Check-in",
        )

        assert outcome.skipped == ["No parent contact"]


class TestPreferences:
    """Tests for stored notification preferences."""

    @pytest.mark.asyncio
    async def test_save_updates_existing_row(self, rules):
        created = await parent_preference(rules, risk_levels=["HIGH", "CRITICAL"])

        updated = await parent_preference(rules, weekly_digest=False)

        assert updated.id == created.id
        assert updated.weekly_digest is False
        assert updated.risk_levels == ["HIGH", "CRITICAL"]

    @pytest.mark.asyncio
    async def test_defaults_on_create(self, rules):
        preference = await rules.save_preference("counselor-1", RecipientType.COUNSELOR)

        assert preference.email_enabled is True
        assert preference.sms_enabled is False
        assert preference.alert_types == []
        assert preference.language == "en"

    @pytest.mark.asyncio
    async def test_lookup_by_user_and_type(self, rules):
        await rules.save_preference("user-1", RecipientType.COUNSELOR, email_address="c@school.edu")

        found = await rules.get_preference("user-1", RecipientType.COUNSELOR)
        missing = await rules.get_preference("user-1", RecipientType.TEACHER)

        assert found.email_address == "c@school.edu"
        assert missing is None

    @pytest.mark.asyncio
    async def test_parent_lookup_by_student(self, rules):
        await parent_preference(rules)

        assert (await rules.get_parent_preference("student-1")).user_id == "parent-1"
        assert await rules.get_parent_preference("student-2") is None

    @pytest.mark.asyncio
    async def test_should_send_without_preference(self, rules):
        assert rules.should_send_notification(None, RiskLevel.HIGH) is True
