# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent notification rules.

Decides who hears about an alert, an intervention start, a weekly digest
or a meeting, and sends it through the dispatcher's stored templates.

Rules:
- HIGH and CRITICAL alerts go to the parent, unless the parent's
  preference filters the risk level or alert type out, or the current
  time falls inside their quiet hours
- CRITICAL alerts also go to the counselor's in-app inbox
- Intervention starts go to the parent only when they enabled email
- Weekly digests go only to parents who opted in
- Meeting invitations always go out when a contact is known

The parent contact is the one given with the request, or else the email
address on the parent's stored preference.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from counseltrack.core.config.settings import Settings, get_settings
from counseltrack.infrastructure.database.models.notification import (
    NotificationChannel,
    NotificationPriority,
    RecipientType,
)
from counseltrack.infrastructure.database.models.preference import NotificationPreference
from counseltrack.infrastructure.database.models.student import RiskLevel
from counseltrack.infrastructure.notifications.service import (
    NotificationDispatcher,
    NotificationRequest,
    SendResult,
)
from counseltrack.utils.datetime import utc_now

logger = logging.getLogger(__name__)

DEFAULT_PARENT_NAME = "Parent/Guardian"
DEFAULT_COUNSELOR_NAME = "your school counselor"

RISK_ALERT_TEMPLATE = "risk_alert_parent"
INTERVENTION_STARTED_TEMPLATE = "intervention_started"
WEEKLY_DIGEST_TEMPLATE = "weekly_digest"
MEETING_INVITATION_TEMPLATE = "meeting_invitation"

PARENT_ALERT_LEVELS = frozenset({RiskLevel.HIGH, RiskLevel.CRITICAL})


@dataclass
class AlertNotice:
    """A raised student alert."""

    alert_id: str
    student_id: str
    student_name: str
    alert_level: RiskLevel
    alert_type: str
    title: str
    description: str
    parent_name: str | None = None
    parent_contact: str | None = None


@dataclass
class RuleOutcome:
    """What a rule did.

    Attributes:
        sent: Notification ids that were recorded.
        skipped: Why a recipient was left out.
        errors: Sends that could not be recorded.
    """

    sent: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def record(self, result: SendResult) -> None:
        if result.success and result.notification_id:
            self.sent.append(result.notification_id)
        else:
            self.errors.append(result.error or "Send failed")

    def to_dict(self) -> dict[str, Any]:
        return {"sent": self.sent, "skipped": self.skipped, "errors": self.errors}


def _parse_clock(value: str) -> time:
    return time.fromisoformat(value)


def in_quiet_hours(start: str | None, end: str | None, moment: time) -> bool:
    """Check a local wall-clock time against an "HH:MM" window.

    Both ends are inclusive. A window whose start is after its end wraps
    past midnight.
    """
    if not start or not end:
        return False
    begin, finish = _parse_clock(start), _parse_clock(end)
    moment = moment.replace(second=0, microsecond=0)
    if begin <= finish:
        return begin <= moment <= finish
    return moment >= begin or moment <= finish


class NotificationRulesService:
    """Applies the parent notification rules and stores preferences."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self._dispatcher = dispatcher
        self._settings = settings or get_settings()

    # =========================================================================
    # Preferences
    # =========================================================================

    async def get_preference(
        self,
        user_id: str,
        user_type: RecipientType,
    ) -> NotificationPreference | None:
        """Oldest preference stored for a user."""
        result = await self.db.execute(
            select(NotificationPreference)
            .where(
                NotificationPreference.user_id == user_id,
                NotificationPreference.user_type == user_type,
            )
            .order_by(NotificationPreference.created_at)
        )
        return result.scalars().first()

    async def get_parent_preference(self, student_id: str) -> NotificationPreference | None:
        """Preference of the parent covering a student."""
        result = await self.db.execute(
            select(NotificationPreference)
            .where(
                NotificationPreference.user_type == RecipientType.PARENT,
                NotificationPreference.student_id == student_id,
            )
            .order_by(NotificationPreference.created_at)
        )
        return result.scalars().first()

    async def save_preference(
        self,
        user_id: str,
        user_type: RecipientType,
        student_id: str | None = None,
        **values: Any,
    ) -> NotificationPreference:
        """Create or update the preference of one user.

        The row is matched on (user_type, user_id, student_id). Fields not
        given keep their current value, or the column default on create.

        Returns:
            The stored preference.
        """
        query = select(NotificationPreference).where(
            NotificationPreference.user_type == user_type,
            NotificationPreference.user_id == user_id,
        )
        if student_id is None:
            query = query.where(NotificationPreference.student_id.is_(None))
        else:
            query = query.where(NotificationPreference.student_id == student_id)
        preference = (await self.db.execute(query)).scalars().first()

        if preference is None:
            preference = NotificationPreference(
                user_id=user_id,
                user_type=user_type,
                student_id=student_id,
                **values,
            )
            self.db.add(preference)
            action = "Created"
        else:
            for name, value in values.items():
                setattr(preference, name, value)
            action = "Updated"

        await self.db.commit()
        logger.info("%s %s notification preference for %s", action, user_type.value, user_id)
        return preference

    # =========================================================================
    # Gating
    # =========================================================================

    def _local_time(self, moment: datetime) -> time:
        return moment.astimezone(ZoneInfo(self._settings.notification.timezone)).time()

    def alert_block_reason(
        self,
        preference: NotificationPreference | None,
        alert_level: RiskLevel,
        alert_type: str | None = None,
        moment: datetime | None = None,
    ) -> str | None:
        """Why the parent should not hear about an alert, or None."""
        if preference is None:
            return None
        if not preference.email_enabled:
            return "Parent disabled email"
        if preference.risk_levels and alert_level.value not in preference.risk_levels:
            return f"Parent does not follow {alert_level.value} alerts"
        if alert_type and preference.alert_types and alert_type not in preference.alert_types:
            return f"Parent does not follow {alert_type} alerts"
        local = self._local_time(moment or utc_now())
        if in_quiet_hours(preference.quiet_hours_start, preference.quiet_hours_end, local):
            return "Parent quiet hours"
        return None

    def should_send_notification(
        self,
        preference: NotificationPreference | None,
        alert_level: RiskLevel,
        alert_type: str | None = None,
        moment: datetime | None = None,
    ) -> bool:
        """True when nothing in the preference blocks the alert."""
        return self.alert_block_reason(preference, alert_level, alert_type, moment) is None

    @staticmethod
    def _parent_contact(
        preference: NotificationPreference | None,
        override: str | None,
    ) -> str | None:
        if override:
            return override
        return preference.email_address if preference is not None else None

    # =========================================================================
    # Rules
    # =========================================================================

    async def process_alert_notifications(self, alert: AlertNotice) -> RuleOutcome:
        """Tell the parent and, for CRITICAL alerts, the counselor."""
        outcome = RuleOutcome()
        if alert.alert_level not in PARENT_ALERT_LEVELS:
            outcome.skipped.append(f"{alert.alert_level.value} alerts are not sent to parents")
            return outcome

        critical = alert.alert_level == RiskLevel.CRITICAL
        preference = await self.get_parent_preference(alert.student_id)
        contact = self._parent_contact(preference, alert.parent_contact)
        reason = self.alert_block_reason(preference, alert.alert_level, alert.alert_type)

        if contact is None:
            outcome.skipped.append("No parent contact")
        elif reason is not None:
            outcome.skipped.append(reason)
        else:
            result = await self._dispatcher.send_templated(
                template_name=RISK_ALERT_TEMPLATE,
                recipient_contact=contact,
                recipient_type=RecipientType.PARENT,
                recipient_name=alert.parent_name,
                variables={
                    "studentName": alert.student_name,
                    "parentName": alert.parent_name or DEFAULT_PARENT_NAME,
                    "riskLevel": alert.alert_level.value,
                    "alertType": alert.alert_type,
                    "description": alert.description,
                    "schoolName": self._settings.notification.school_name,
                },
                priority=NotificationPriority.URGENT if critical else NotificationPriority.HIGH,
                student_id=alert.student_id,
                alert_id=alert.alert_id,
            )
            outcome.record(result)

        if critical:
            result = await self._dispatcher.send(
                NotificationRequest(
                    recipient_type=RecipientType.COUNSELOR,
                    recipient_contact=self._settings.escalation.counselor_contact,
                    channel=NotificationChannel.IN_APP,
                    subject=f"Critical alert: {alert.student_name}",
                    message=f"{alert.title}\n\n{alert.description}",
                    priority=NotificationPriority.URGENT,
                    student_id=alert.student_id,
                    alert_id=alert.alert_id,
                )
            )
            outcome.record(result)

        logger.info(
            "Alert %s (%s): %d sent, %d skipped",
            alert.alert_id,
            alert.alert_level.value,
            len(outcome.sent),
            len(outcome.skipped),
        )
        return outcome

    async def process_intervention_notifications(
        self,
        intervention_id: str,
        student_id: str,
        student_name: str,
        intervention_title: str,
        start_date: date,
        counselor_name: str | None = None,
        parent_name: str | None = None,
        parent_contact: str | None = None,
    ) -> RuleOutcome:
        """Tell the parent that an intervention has started.

        Needs a stored parent preference with email enabled.
        """
        outcome = RuleOutcome()
        preference = await self.get_parent_preference(student_id)
        if preference is None or not preference.email_enabled:
            outcome.skipped.append("Parent has not enabled email")
            return outcome
        contact = self._parent_contact(preference, parent_contact)
        if contact is None:
            outcome.skipped.append("No parent contact")
            return outcome

        result = await self._dispatcher.send_templated(
            template_name=INTERVENTION_STARTED_TEMPLATE,
            recipient_contact=contact,
            recipient_type=RecipientType.PARENT,
            recipient_name=parent_name,
            variables={
                "studentName": student_name,
                "parentName": parent_name or DEFAULT_PARENT_NAME,
                "interventionTitle": intervention_title,
                "startDate": start_date.isoformat(),
                "counselorName": counselor_name or DEFAULT_COUNSELOR_NAME,
            },
            priority=NotificationPriority.NORMAL,
            student_id=student_id,
            intervention_id=intervention_id,
        )
        outcome.record(result)
        return outcome

    async def send_weekly_digest(
        self,
        student_id: str,
        student_name: str,
        progress_summary: str,
        parent_name: str | None = None,
        parent_contact: str | None = None,
    ) -> RuleOutcome:
        """Send the weekly progress digest to a parent who opted in."""
        outcome = RuleOutcome()
        preference = await self.get_parent_preference(student_id)
        if preference is None or not preference.weekly_digest:
            outcome.skipped.append("Parent has not opted into the weekly digest")
            return outcome
        contact = self._parent_contact(preference, parent_contact)
        if contact is None:
            outcome.skipped.append("No parent contact")
            return outcome

        result = await self._dispatcher.send_templated(
            template_name=WEEKLY_DIGEST_TEMPLATE,
            recipient_contact=contact,
            recipient_type=RecipientType.PARENT,
            recipient_name=parent_name,
            variables={
                "studentName": student_name,
                "parentName": parent_name or DEFAULT_PARENT_NAME,
                "progressSummary": progress_summary,
            },
            priority=NotificationPriority.LOW,
            student_id=student_id,
        )
        outcome.record(result)
        return outcome

    async def schedule_meeting_invitation(
        self,
        student_id: str,
        student_name: str,
        meeting_date: date,
        meeting_time: str,
        meeting_topic: str,
        parent_name: str | None = None,
        parent_contact: str | None = None,
    ) -> RuleOutcome:
        """Invite the parent to a meeting."""
        outcome = RuleOutcome()
        preference = await self.get_parent_preference(student_id)
        contact = self._parent_contact(preference, parent_contact)
        if contact is None:
            outcome.skipped.append("No parent contact")
            return outcome

        result = await self._dispatcher.send_templated(
            template_name=MEETING_INVITATION_TEMPLATE,
            recipient_contact=contact,
            recipient_type=RecipientType.PARENT,
            recipient_name=parent_name,
            variables={
                "studentName": student_name,
                "parentName": parent_name or DEFAULT_PARENT_NAME,
                "meetingDate": meeting_date.isoformat(),
                "meetingTime": meeting_time,
                "meetingTopic": meeting_topic,
            },
            priority=NotificationPriority.NORMAL,
            student_id=student_id,
            metadata={"meeting_date": meeting_date.isoformat(), "meeting_time": meeting_time},
        )
        outcome.record(result)
        return outcome
