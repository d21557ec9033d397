# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the escalation ladder."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.orm.exc import StaleDataError

from counseltrack.domains.escalation.service import (
    EscalationConflictError,
    EscalationNotFoundError,
    EscalationService,
    InvalidEscalationTransitionError,
)
from counseltrack.infrastructure.database.models.escalation import (
    EscalationRecord,
    EscalationRole,
    EscalationStatus,
    EscalationType,
)
from counseltrack.infrastructure.database.models.notification import (
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
)
from counseltrack.infrastructure.database.models.student import RiskLevel
from counseltrack.infrastructure.notifications.service import NotificationDispatcher
from counseltrack.utils.datetime import ensure_utc, utc_now


@pytest.fixture
def service(db, channels, settings) -> EscalationService:
    dispatcher = NotificationDispatcher(db, channels=channels, settings=settings)
    return EscalationService(db, dispatcher=dispatcher, settings=settings, sweep_lock=asyncio.Lock())


async def backdate(db, escalation_id: str, hours: float):
    """Pretend the escalation reached its current rung `hours` ago."""
    record = await db.get(EscalationRecord, escalation_id)
    past = utc_now() - timedelta(hours=hours)
    record.escalated_at = past
    record.level_escalated_at = past
    await db.commit()
    return past


async def open_escalation(service, risk_level=RiskLevel.HIGH, student_id="student-1") -> str:
    return await service.trigger_escalation(
        student_id=student_id,
        escalation_type=EscalationType.RISK_INCREASE,
        trigger_reason="Attendance dropped below 70%",
        risk_level=risk_level,
    )


class TestTriggerEscalation:
    """Tests for opening escalations."""

    @pytest.mark.asyncio
    async def test_starts_at_counselor(self, service):
        escalation_id = await open_escalation(service)

        record = await service.get_escalation(escalation_id)
        assert record.current_level == EscalationRole.COUNSELOR
        assert record.escalated_to == "counselor@test.edu"
        assert record.status == EscalationStatus.OPEN
        assert record.notifications_sent == ["Counselor"]
        assert record.escalated_by == "system"

    @pytest.mark.asyncio
    async def test_notifies_first_rung_by_email(self, service):
        escalation_id = await open_escalation(service, risk_level=RiskLevel.CRITICAL)

        notifications = await service._dispatcher.get_by_student("student-1")
        assert len(notifications) == 1
        notification = notifications[0]
        assert notification.channel == NotificationChannel.EMAIL
        assert notification.recipient_contact == "counselor@test.edu"
        assert notification.subject == "URGENT Student Escalation - Counselor"
        assert notification.priority == NotificationPriority.URGENT
        assert notification.status == NotificationStatus.SENT
        assert notification.extra_data["escalation_id"] == escalation_id
        assert notification.extra_data["previous_level"] is None

    @pytest.mark.asyncio
    async def test_non_critical_subject(self, service):
        await open_escalation(service, risk_level=RiskLevel.MEDIUM)

        notifications = await service._dispatcher.get_by_student("student-1")
        assert notifications[0].subject == "IMPORTANT Student Escalation - Counselor"
        assert notifications[0].priority == NotificationPriority.HIGH


class TestSweep:
    """Tests for check_and_escalate_unresponded."""

    @pytest.mark.asyncio
    async def test_critical_promoted_after_two_hours(self, service, db):
        escalation_id = await open_escalation(service, risk_level=RiskLevel.CRITICAL)
        await backdate(db, escalation_id, hours=3)

        result = await service.check_and_escalate_unresponded()

        record = await service.get_escalation(escalation_id)
        assert result == {"escalated": 1}
        assert record.current_level == EscalationRole.ASSISTANT_PRINCIPAL
        assert record.escalated_to == "ap@test.edu"
        assert record.notifications_sent == ["Counselor", "Assistant Principal"]

    @pytest.mark.asyncio
    async def test_standard_waits_a_day(self, service, db):
        escalation_id = await open_escalation(service, risk_level=RiskLevel.HIGH)
        await backdate(db, escalation_id, hours=3)

        result = await service.check_and_escalate_unresponded()

        record = await service.get_escalation(escalation_id)
        assert result == {"escalated": 0}
        assert record.current_level == EscalationRole.COUNSELOR

    @pytest.mark.asyncio
    async def test_standard_promoted_after_a_day(self, service, db):
        escalation_id = await open_escalation(service, risk_level=RiskLevel.HIGH)
        await backdate(db, escalation_id, hours=25)

        result = await service.check_and_escalate_unresponded()

        assert result == {"escalated": 1}

    @pytest.mark.asyncio
    async def test_promotion_keeps_status_and_first_escalation_time(self, service, db):
        escalation_id = await open_escalation(service, risk_level=RiskLevel.CRITICAL)
        past = await backdate(db, escalation_id, hours=3)

        await service.check_and_escalate_unresponded()

        record = await service.get_escalation(escalation_id)
        assert record.status == EscalationStatus.OPEN
        assert ensure_utc(record.escalated_at) == past
        assert ensure_utc(record.level_escalated_at) > past

    @pytest.mark.asyncio
    async def test_one_rung_per_sweep(self, service, db):
        """A long-overdue CRITICAL record still climbs one rung at a time."""
        escalation_id = await open_escalation(service, risk_level=RiskLevel.CRITICAL)
        await backdate(db, escalation_id, hours=10)

        await service.check_and_escalate_unresponded()
        second = await service.check_and_escalate_unresponded()

        record = await service.get_escalation(escalation_id)
        assert second == {"escalated": 0}
        assert record.current_level == EscalationRole.ASSISTANT_PRINCIPAL

    @pytest.mark.asyncio
    async def test_top_rung_is_never_passed(self, service, db):
        escalation_id = await open_escalation(service, risk_level=RiskLevel.HIGH)
        await backdate(db, escalation_id, hours=25)
        await service.check_and_escalate_unresponded()
        await backdate(db, escalation_id, hours=25)

        result = await service.check_and_escalate_unresponded()

        record = await service.get_escalation(escalation_id)
        assert result == {"escalated": 0}
        assert record.current_level == EscalationRole.ASSISTANT_PRINCIPAL
        assert record.notifications_sent == ["Counselor", "Assistant Principal"]

    @pytest.mark.asyncio
    async def test_critical_reaches_principal(self, service, db):
        escalation_id = await open_escalation(service, risk_level=RiskLevel.CRITICAL)
        await backdate(db, escalation_id, hours=3)
        await service.check_and_escalate_unresponded()
        await backdate(db, escalation_id, hours=3)

        await service.check_and_escalate_unresponded()

        record = await service.get_escalation(escalation_id)
        assert record.current_level == EscalationRole.PRINCIPAL
        assert record.notifications_sent[-1] == record.current_level.value
        assert len(record.notifications_sent) == 3

    @pytest.mark.asyncio
    async def test_promotion_notifies_new_rung(self, service, db):
        escalation_id = await open_escalation(service, risk_level=RiskLevel.CRITICAL)
        await backdate(db, escalation_id, hours=3)

        await service.check_and_escalate_unresponded()

        notifications = await service._dispatcher.get_by_student("student-1")
        promoted = [n for n in notifications if n.recipient_contact == "ap@test.edu"]
        assert len(promoted) == 1
        assert promoted[0].subject == "URGENT Student Escalation - Assistant Principal"
        assert promoted[0].extra_data["previous_level"] == "Counselor"

    @pytest.mark.asyncio
    async def test_answered_escalations_are_skipped(self, service, db):
        escalation_id = await open_escalation(service, risk_level=RiskLevel.CRITICAL)
        await backdate(db, escalation_id, hours=3)
        await service.respond_to_escalation(escalation_id, "counselor", "Called family")

        result = await service.check_and_escalate_unresponded()

        assert result == {"escalated": 0}

    @pytest.mark.asyncio
    async def test_concurrent_change_is_skipped(self, service, db):
        escalation_id = await open_escalation(service, risk_level=RiskLevel.CRITICAL)
        await backdate(db, escalation_id, hours=3)

        with patch.object(db, "commit", AsyncMock(side_effect=StaleDataError("changed"))):
            result = await service.check_and_escalate_unresponded()

        assert result == {"escalated": 0}


class TestThresholdBoundary:
    """An escalation is due only once its threshold has passed."""

    async def _pin_rung_time(self, db, escalation_id: str, hours: float, now):
        record = await db.get(EscalationRecord, escalation_id)
        record.escalated_at = now - timedelta(hours=hours)
        record.level_escalated_at = now - timedelta(hours=hours)
        await db.commit()

    @pytest.mark.asyncio
    async def test_exactly_at_threshold_is_not_promoted(self, service, db):
        now = utc_now()
        escalation_id = await open_escalation(service, risk_level=RiskLevel.CRITICAL)
        await self._pin_rung_time(db, escalation_id, 2, now)

        with patch("counseltrack.domains.escalation.service.utc_now", return_value=now):
            result = await service.check_and_escalate_unresponded()

        record = await service.get_escalation(escalation_id)
        assert result == {"escalated": 0}
        assert record.current_level == EscalationRole.COUNSELOR

    @pytest.mark.asyncio
    async def test_just_past_threshold_is_promoted(self, service, db):
        now = utc_now()
        escalation_id = await open_escalation(service, risk_level=RiskLevel.CRITICAL)
        await self._pin_rung_time(db, escalation_id, 2, now)

        with patch(
            "counseltrack.domains.escalation.service.utc_now",
            return_value=now + timedelta(seconds=1),
        ):
            result = await service.check_and_escalate_unresponded()

        assert result == {"escalated": 1}

    @pytest.mark.asyncio
    async def test_exactly_at_threshold_is_not_overdue(self, service, db):
        now = utc_now()
        escalation_id = await open_escalation(service, risk_level=RiskLevel.CRITICAL)
        await self._pin_rung_time(db, escalation_id, 2, now)

        with patch("counseltrack.domains.escalation.service.utc_now", return_value=now):
            metrics = await service.get_escalation_metrics()

        assert metrics["active_count"] == 1
        assert metrics["overdue_count"] == 0


class TestRespondAndClose:
    """Tests for responses and closing."""

    @pytest.mark.asyncio
    async def test_response_moves_to_in_progress(self, service, db):
        escalation_id = await open_escalation(service)
        await backdate(db, escalation_id, hours=1)

        record = await service.respond_to_escalation(escalation_id, "ms.lee", "Scheduled a meeting")

        assert record.status == EscalationStatus.IN_PROGRESS
        assert record.responded_by == "ms.lee"
        assert record.response_time_minutes == 60
        assert record.resolution is None

    @pytest.mark.asyncio
    async def test_follow_up_response_keeps_first_response_time(self, service, db):
        escalation_id = await open_escalation(service)
        await backdate(db, escalation_id, hours=1)
        first = await service.respond_to_escalation(escalation_id, "ms.lee", "Scheduled a meeting")
        first_responded_at = ensure_utc(first.responded_at)

        later = first_responded_at + timedelta(minutes=45)
        with patch("counseltrack.domains.escalation.service.utc_now", return_value=later):
            record = await service.respond_to_escalation(
                escalation_id, "mr.diaz", "Met with the family", resolved=True
            )

        assert record.status == EscalationStatus.RESOLVED
        assert record.responded_by == "mr.diaz"
        assert record.action_taken == "Met with the family"
        assert ensure_utc(record.responded_at) == first_responded_at
        assert record.response_time_minutes == 60

    @pytest.mark.asyncio
    async def test_resolution_notifies_counselor_in_app(self, service):
        escalation_id = await open_escalation(service)

        record = await service.respond_to_escalation(
            escalation_id, "principal", "Parent conference held", resolved=True
        )

        notifications = await service._dispatcher.get_by_student("student-1")
        resolved = [n for n in notifications if n.subject == "Escalation Resolved"]
        assert record.status == EscalationStatus.RESOLVED
        assert record.resolution == "Parent conference held"
        assert len(resolved) == 1
        assert resolved[0].channel == NotificationChannel.IN_APP
        assert resolved[0].recipient_contact == "counselor@test.edu"

    @pytest.mark.asyncio
    async def test_terminal_escalation_rejects_response(self, service):
        escalation_id = await open_escalation(service)
        await service.respond_to_escalation(escalation_id, "counselor", "Done", resolved=True)

        with pytest.raises(InvalidEscalationTransitionError):
            await service.respond_to_escalation(escalation_id, "counselor", "Again")

    @pytest.mark.asyncio
    async def test_close_defaults_resolution(self, service):
        escalation_id = await open_escalation(service)

        record = await service.close_escalation(escalation_id, "admin")

        assert record.status == EscalationStatus.CLOSED
        assert record.resolution == "Closed by admin"

    @pytest.mark.asyncio
    async def test_closed_escalation_cannot_be_closed_again(self, service):
        escalation_id = await open_escalation(service)
        await service.close_escalation(escalation_id, "admin", resolution="Duplicate")

        with pytest.raises(InvalidEscalationTransitionError):
            await service.close_escalation(escalation_id, "admin")

    @pytest.mark.asyncio
    async def test_missing_escalation(self, service):
        with pytest.raises(EscalationNotFoundError):
            await service.respond_to_escalation("missing", "counselor", "Called")

    @pytest.mark.asyncio
    async def test_concurrent_response_conflicts(self, service, db):
        escalation_id = await open_escalation(service)

        with patch.object(db, "commit", AsyncMock(side_effect=StaleDataError("changed"))):
            with pytest.raises(EscalationConflictError):
                await service.respond_to_escalation(escalation_id, "counselor", "Called")


class TestQueries:
    """Tests for escalation queries and metrics."""

    @pytest.mark.asyncio
    async def test_active_and_by_student(self, service):
        first = await open_escalation(service, student_id="student-1")
        second = await open_escalation(service, student_id="student-2")
        await service.close_escalation(second, "admin")

        active = await service.get_active_escalations()
        by_student = await service.get_escalations_by_student("student-2")

        assert [r.id for r in active] == [first]
        assert [r.id for r in by_student] == [second]

    @pytest.mark.asyncio
    async def test_metrics(self, service, db):
        critical = await open_escalation(service, risk_level=RiskLevel.CRITICAL, student_id="student-1")
        standard = await open_escalation(service, risk_level=RiskLevel.HIGH, student_id="student-2")
        await backdate(db, critical, hours=3)
        await service.respond_to_escalation(standard, "counselor", "Called")

        metrics = await service.get_escalation_metrics()

        assert metrics["active_count"] == 2
        assert metrics["critical_active"] == 1
        assert metrics["overdue_count"] == 1
        assert metrics["window_days"] == 30
        assert metrics["total"] == 2
        assert metrics["open"] == 1
        assert metrics["resolved"] == 0
        assert metrics["critical"] == 1
        assert metrics["avg_response_time_minutes"] == 0.0
