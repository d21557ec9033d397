# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification dispatcher.

Records every notification as a NotificationRecord and hands it to the
channel transport. The dispatcher owns status tracking and retry policy;
transmission itself belongs to the channels.

Flow of send():
1. Create the record as PENDING and commit it
2. Hand it to the channel transport
3. Mark SENT and schedule the DELIVERED confirmation, or mark FAILED
   with the reason

send() reports success as soon as the record exists. A dispatch failure
is visible on the record, not as an error to the caller.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from counseltrack.core.config.settings import Settings, get_settings
from counseltrack.infrastructure.database.models.notification import (
    NotificationChannel,
    NotificationPriority,
    NotificationRecord,
    NotificationStatus,
    NotificationTemplate,
    RecipientType,
    TemplateCategory,
)
from counseltrack.infrastructure.notifications.channels import (
    BaseChannel,
    NotificationPayload,
    build_default_channels,
)
from counseltrack.infrastructure.notifications.delivery import DeliveryConfirmer
from counseltrack.infrastructure.notifications.templates import render_template
from counseltrack.utils.datetime import ensure_utc, hours_ago, utc_now

logger = logging.getLogger(__name__)

TEMPLATE_NOT_FOUND = "Template not found"


class NotificationServiceError(Exception):
    """Base exception for notification errors."""

    pass


class NotificationNotFoundError(NotificationServiceError):
    """Raised when a notification record does not exist."""

    pass


class InvalidStatusTransitionError(NotificationServiceError):
    """Raised when a status change would move a record backwards."""

    pass


class NotificationDispatchError(NotificationServiceError):
    """Raised inside dispatch when a transport rejects a notification."""

    pass


@dataclass
class NotificationRequest:
    """A notification to send.

    Attributes:
        recipient_type: Kind of recipient.
        recipient_contact: Address on the chosen channel.
        channel: Delivery channel.
        message: Message body.
        subject: Optional subject line.
        recipient_name: Display name of the recipient.
        priority: Urgency.
        student_id: Student the notification concerns.
        alert_id: Related alert.
        intervention_id: Related intervention.
        template_id: Template the text was rendered from.
        metadata: Free-form context stored on the record.
    """

    recipient_type: RecipientType
    recipient_contact: str
    channel: NotificationChannel
    message: str
    subject: str | None = None
    recipient_name: str | None = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    student_id: str | None = None
    alert_id: str | None = None
    intervention_id: str | None = None
    template_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SendResult:
    """Outcome of send().

    Attributes:
        success: Whether the record was created.
        notification_id: ID of the created record.
        error: Why the record could not be created.
    """

    success: bool
    notification_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape used by the API."""
        data: dict[str, Any] = {"success": self.success}
        if self.notification_id is not None:
            data["notification_id"] = self.notification_id
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class BulkSendResult:
    """Outcome of send_bulk().

    Attributes:
        success: True when every item succeeded.
        sent: Items whose record was created.
        failed: Items whose record could not be created.
        details: Per-item results, in request order.
    """

    success: bool
    sent: int
    failed: int
    details: list[SendResult]

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape used by the API."""
        return {
            "success": self.success,
            "sent": self.sent,
            "failed": self.failed,
            "details": [d.to_dict() for d in self.details],
        }


class NotificationDispatcher:
    """Creates, dispatches and tracks notifications.

    Attributes:
        db: Async database session.
    """

    def __init__(
        self,
        db: AsyncSession,
        channels: Mapping[NotificationChannel, BaseChannel] | None = None,
        delivery_confirmer: DeliveryConfirmer | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            db: Async database session.
            channels: Transport per channel. Defaults to the configured set.
            delivery_confirmer: Schedules SENT -> DELIVERED. When None,
                records stay SENT until confirm_delivery() is called.
            settings: Application settings.
        """
        self.db = db
        self._settings = settings or get_settings()
        self._channels = dict(channels) if channels is not None else build_default_channels(self._settings)
        self._confirmer = delivery_confirmer

    # =========================================================================
    # Sending
    # =========================================================================

    async def send(self, request: NotificationRequest) -> SendResult:
        """Record a notification and dispatch it.

        Args:
            request: Notification to send.

        Returns:
            SendResult. success is False only when the record could not
            be created.
        """
        record = NotificationRecord(
            recipient_type=request.recipient_type,
            recipient_contact=request.recipient_contact,
            recipient_name=request.recipient_name,
            channel=request.channel,
            subject=request.subject,
            message=request.message,
            student_id=request.student_id,
            alert_id=request.alert_id,
            intervention_id=request.intervention_id,
            template_id=request.template_id,
            extra_data=dict(request.metadata),
            status=NotificationStatus.PENDING,
            priority=request.priority,
            retry_count=0,
        )

        try:
            self.db.add(record)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to create notification record: %s", str(e))
            return SendResult(success=False, error=str(e))

        await self._dispatch(record)
        return SendResult(success=True, notification_id=record.id)

    async def send_bulk(self, requests: list[NotificationRequest]) -> BulkSendResult:
        """Send notifications one after another.

        Never stops at the first failure.

        Args:
            requests: Notifications to send, in order.

        Returns:
            BulkSendResult with counts and per-item results.
        """
        details: list[SendResult] = []
        for request in requests:
            details.append(await self.send(request))

        sent = sum(1 for d in details if d.success)
        failed = len(details) - sent

        logger.info("Bulk send finished: %d sent, %d failed", sent, failed)

        return BulkSendResult(success=failed == 0, sent=sent, failed=failed, details=details)

    async def send_templated(
        self,
        template_name: str,
        recipient_contact: str,
        recipient_type: RecipientType,
        variables: Mapping[str, Any] | None = None,
        recipient_name: str | None = None,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        student_id: str | None = None,
        alert_id: str | None = None,
        intervention_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SendResult:
        """Render a stored template and send it.

        Args:
            template_name: Unique template name.
            recipient_contact: Address on the template's channel.
            recipient_type: Kind of recipient.
            variables: Values for {{placeholders}}. Missing ones stay literal.
            recipient_name: Display name of the recipient.
            priority: Urgency.
            student_id: Student the notification concerns.
            alert_id: Related alert.
            intervention_id: Related intervention.
            metadata: Extra context stored on the record.

        Returns:
            SendResult; success is False with "Template not found" when no
            active template has that name.
        """
        template = await self.get_template(template_name)
        if template is None or not template.is_active:
            return SendResult(success=False, error=TEMPLATE_NOT_FOUND)

        variables = variables or {}
        request = NotificationRequest(
            recipient_type=recipient_type,
            recipient_contact=recipient_contact,
            recipient_name=recipient_name,
            channel=template.channel.resolve(),
            subject=render_template(template.subject_template, variables),
            message=render_template(template.message_template, variables),
            priority=priority,
            student_id=student_id,
            alert_id=alert_id,
            intervention_id=intervention_id,
            template_id=template.id,
            metadata={**(metadata or {}), "template_name": template.template_name},
        )
        return await self.send(request)

    async def retry_failed_notifications(self) -> int:
        """Re-dispatch FAILED records created within the retry window.

        This is the only path from FAILED back to SENT.

        Returns:
            Number of records retried.
        """
        cutoff = hours_ago(self._settings.notification.retry_window_hours)
        result = await self.db.execute(
            select(NotificationRecord)
            .where(
                NotificationRecord.status == NotificationStatus.FAILED,
                NotificationRecord.created_at >= cutoff,
            )
            .order_by(NotificationRecord.created_at)
        )
        records = list(result.scalars().all())

        for record in records:
            record.retry_count += 1
            await self._dispatch(record)

        if records:
            logger.info("Retried %d failed notifications", len(records))

        return len(records)

    async def _dispatch(self, record: NotificationRecord) -> bool:
        """Hand a record to its transport and store the outcome."""
        channel = self._channels.get(NotificationChannel(record.channel))

        try:
            if channel is None:
                raise NotificationDispatchError(
                    f"No transport registered for channel {record.channel.value}"
                )
            result = await channel.send(self._to_payload(record))
            if result.is_failure:
                raise NotificationDispatchError(result.error_message or "Transport rejected notification")
        except Exception as e:
            if isinstance(e, SQLAlchemyError):
                await self.db.rollback()
                await self.db.refresh(record)
            record.status = NotificationStatus.FAILED
            record.failure_reason = str(e)
            await self.db.commit()
            logger.warning("Notification %s failed: %s", record.id, str(e))
            return False

        record.status = NotificationStatus.SENT
        record.sent_at = utc_now()
        record.failure_reason = None
        record.extra_data = {**(record.extra_data or {}), "transport": result.to_dict()}
        await self.db.commit()

        if self._confirmer is not None:
            self._confirmer.schedule(record.id)

        return True

    def _to_payload(self, record: NotificationRecord) -> NotificationPayload:
        return NotificationPayload(
            notification_id=record.id,
            channel=NotificationChannel(record.channel),
            recipient_type=RecipientType(record.recipient_type),
            recipient_contact=record.recipient_contact,
            recipient_name=record.recipient_name,
            subject=record.subject,
            message=record.message,
            priority=NotificationPriority(record.priority),
            student_id=record.student_id,
            data=dict(record.extra_data or {}),
        )

    # =========================================================================
    # Status changes
    # =========================================================================

    async def update_status(
        self,
        notification_id: str,
        status: NotificationStatus,
        failure_reason: str | None = None,
    ) -> NotificationRecord:
        """Move a record forward in its lifecycle.

        Args:
            notification_id: Record ID.
            status: Target status.
            failure_reason: Stored when status is FAILED.

        Returns:
            The updated record.

        Raises:
            NotificationNotFoundError: If the record does not exist.
            InvalidStatusTransitionError: If the transition is not allowed.
        """
        record = await self.get_notification(notification_id)
        target = NotificationStatus(status)

        if not record.can_transition_to(target):
            raise InvalidStatusTransitionError(
                f"Cannot change notification {notification_id} "
                f"from {NotificationStatus(record.status).value} to {target.value}"
            )

        now = utc_now()
        record.status = target
        if target == NotificationStatus.SENT:
            record.sent_at = now
        elif target == NotificationStatus.DELIVERED:
            record.delivered_at = now
        elif target == NotificationStatus.READ:
            record.read_at = now
        elif target == NotificationStatus.FAILED:
            record.failure_reason = failure_reason or "Marked failed"

        await self.db.commit()
        return record

    async def confirm_delivery(self, notification_id: str) -> NotificationRecord:
        """Mark a SENT record DELIVERED."""
        return await self.update_status(notification_id, NotificationStatus.DELIVERED)

    async def mark_read(self, notification_id: str) -> NotificationRecord:
        """Mark a DELIVERED record READ."""
        return await self.update_status(notification_id, NotificationStatus.READ)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_notification(self, notification_id: str) -> NotificationRecord:
        """Get a record by ID.

        Raises:
            NotificationNotFoundError: If the record does not exist.
        """
        record = await self.db.get(NotificationRecord, notification_id)
        if record is None:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        return record

    async def get_pending(self) -> list[NotificationRecord]:
        """Records still waiting for dispatch, oldest first."""
        result = await self.db.execute(
            select(NotificationRecord)
            .where(NotificationRecord.status == NotificationStatus.PENDING)
            .order_by(NotificationRecord.created_at)
        )
        return list(result.scalars().all())

    async def get_by_student(self, student_id: str) -> list[NotificationRecord]:
        """Records about one student, newest first."""
        result = await self.db.execute(
            select(NotificationRecord)
            .where(NotificationRecord.student_id == student_id)
            .order_by(NotificationRecord.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_logs(
        self,
        status: NotificationStatus | None = None,
        limit: int = 100,
    ) -> list[NotificationRecord]:
        """Recent records, optionally filtered by status, newest first."""
        query = select(NotificationRecord)
        if status is not None:
            query = query.where(NotificationRecord.status == status)
        result = await self.db.execute(
            query.order_by(NotificationRecord.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def get_stats(self, date_from: datetime | None = None) -> dict[str, int]:
        """Count records per status.

        Args:
            date_from: Only count records created at or after this time.

        Returns:
            Dict with total and one count per status (lower-case keys).
        """
        query = select(NotificationRecord.status, func.count()).group_by(NotificationRecord.status)
        if date_from is not None:
            query = query.where(NotificationRecord.created_at >= ensure_utc(date_from))

        result = await self.db.execute(query)
        counts = {status.value.lower(): 0 for status in NotificationStatus}
        for status, count in result.all():
            counts[NotificationStatus(status).value.lower()] = count

        return {"total": sum(counts.values()), **counts}

    async def get_template(self, template_name: str) -> NotificationTemplate | None:
        """Find a template by its unique name."""
        result = await self.db.execute(
            select(NotificationTemplate).where(NotificationTemplate.template_name == template_name)
        )
        return result.scalar_one_or_none()

    async def list_templates(
        self,
        category: TemplateCategory | None = None,
        active_only: bool = True,
    ) -> list[NotificationTemplate]:
        """List templates, optionally by category."""
        query = select(NotificationTemplate)
        if category is not None:
            query = query.where(NotificationTemplate.category == category)
        if active_only:
            query = query.where(NotificationTemplate.is_active.is_(True))
        result = await self.db.execute(query.order_by(NotificationTemplate.template_name))
        return list(result.scalars().all())
