# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Channel transport interface.

A channel hands one notification to one transport (SMTP, an SMS gateway,
a push service, the in-app inbox) and reports a ChannelResult. The
dispatcher turns that result into NotificationRecord status; a channel
that raises counts as FAILED.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from counseltrack.infrastructure.database.models.notification import (
    NotificationChannel,
    NotificationPriority,
    RecipientType,
)
from counseltrack.utils.datetime import utc_now


class DeliveryStatus(str, Enum):
    """Outcome of one transport hand-off."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class NotificationPayload:
    """What a transport needs to send one record.

    recipient_contact is an email address, phone number, device token or
    user id depending on the channel. data carries the record metadata.
    """

    notification_id: str
    channel: NotificationChannel
    recipient_type: RecipientType
    recipient_contact: str
    message: str
    subject: str | None = None
    recipient_name: str | None = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    student_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str:
        """Subject line, or the first line of the message."""
        if self.subject:
            return self.subject
        return self.message.splitlines()[0][:120] if self.message else ""


@dataclass
class ChannelResult:
    """What the transport reported.

    error_message holds the failure or skip reason; message_id is the
    provider's id when it returns one.
    """

    channel: NotificationChannel
    status: DeliveryStatus
    message_id: str | None = None
    error_message: str | None = None
    sent_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_failure(self) -> bool:
        return self.status == DeliveryStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        """Shape stored under extra_data["transport"]."""
        return {
            "channel": self.channel.value,
            "status": self.status.value,
            "message_id": self.message_id,
            "error_message": self.error_message,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "metadata": self.metadata,
        }


class BaseChannel(ABC):
    """A transport for one NotificationChannel."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")

    @property
    @abstractmethod
    def channel_type(self) -> NotificationChannel:
        ...

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> ChannelResult:
        """Hand the payload to the transport and report the outcome."""
        ...

    def _result(self, status: DeliveryStatus, **fields: Any) -> ChannelResult:
        return ChannelResult(channel=self.channel_type, status=status, sent_at=utc_now(), **fields)

    def create_success_result(
        self,
        message_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ChannelResult:
        return self._result(DeliveryStatus.SENT, message_id=message_id, metadata=metadata or {})

    def create_failure_result(
        self,
        error_message: str,
        metadata: dict[str, Any] | None = None,
    ) -> ChannelResult:
        return self._result(DeliveryStatus.FAILED, error_message=error_message, metadata=metadata or {})

    def create_skipped_result(self, reason: str) -> ChannelResult:
        """No transport is wired up; the record still carries the intent."""
        return self._result(DeliveryStatus.SKIPPED, error_message=reason)
