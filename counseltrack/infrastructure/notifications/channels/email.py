# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Email notification channel using async SMTP.

Sends through aiosmtplib. When SMTP is not configured (see SMTPSettings)
the channel reports SKIPPED so the dispatcher still records the intent.
"""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

import aiosmtplib

from counseltrack.core.config.settings import SMTPSettings
from counseltrack.infrastructure.database.models.notification import (
    NotificationChannel,
    NotificationPriority,
)
from counseltrack.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    NotificationPayload,
)

logger = logging.getLogger(__name__)

_PRIORITY_HEADERS = {
    NotificationPriority.URGENT: "1",
    NotificationPriority.HIGH: "2",
    NotificationPriority.NORMAL: "3",
    NotificationPriority.LOW: "5",
}


class EmailChannel(BaseChannel):
    """Email notification channel using async SMTP."""

    def __init__(self, smtp: SMTPSettings) -> None:
        """Initialize the email channel.

        Args:
            smtp: SMTP connection settings.
        """
        super().__init__()
        self._smtp = smtp
        if not smtp.is_configured:
            self.logger.warning(
                "Email transport disabled: SMTP_HOST, SMTP_USERNAME, "
                "SMTP_PASSWORD, or SMTP_FROM_EMAIL not set"
            )

    @property
    def channel_type(self) -> NotificationChannel:
        """Return the channel type."""
        return NotificationChannel.EMAIL

    async def send(self, payload: NotificationPayload) -> ChannelResult:
        """Send email notification via SMTP.

        Args:
            payload: The notification payload.

        Returns:
            ChannelResult with delivery status.
        """
        if not self._smtp.is_configured:
            return self.create_skipped_result("SMTP configuration incomplete")

        if "@" not in payload.recipient_contact:
            return self.create_failure_result(
                f"Invalid email address: {payload.recipient_contact}"
            )

        message = self._build_email_message(payload)

        try:
            await aiosmtplib.send(
                message,
                hostname=self._smtp.host,
                port=self._smtp.port,
                username=self._smtp.username,
                password=self._smtp.password.get_secret_value() if self._smtp.password else None,
                start_tls=self._smtp.use_tls,
            )
        except aiosmtplib.SMTPException as e:
            self.logger.error(
                "Failed to send email to %s: %s",
                payload.recipient_contact,
                str(e),
            )
            return self.create_failure_result(
                f"SMTP error: {str(e)}",
                metadata={"recipient": payload.recipient_contact},
            )

        self.logger.info("Email sent to %s: %s", payload.recipient_contact, payload.title)

        return self.create_success_result(
            message_id=message["Message-ID"],
            metadata={"recipient": payload.recipient_contact},
        )

    def _build_email_message(self, payload: NotificationPayload) -> MIMEMultipart:
        """Build the MIME message (plain text only)."""
        message = MIMEMultipart("alternative")

        message["From"] = f"{self._smtp.from_name} <{self._smtp.from_email}>"
        message["To"] = payload.recipient_contact
        message["Subject"] = payload.title
        message["Message-ID"] = make_msgid(domain=self._smtp.from_email.split("@")[-1])
        message["X-Priority"] = _PRIORITY_HEADERS[payload.priority]

        message.attach(MIMEText(self._build_plain_text(payload), "plain", "utf-8"))
        return message

    def _build_plain_text(self, payload: NotificationPayload) -> str:
        lines = []
        if payload.recipient_name:
            lines.extend([f"Dear {payload.recipient_name},", ""])

        lines.extend([
            payload.message,
            "",
            "---",
            f"This notification was sent by {self._smtp.from_name}.",
        ])
        return "\n".join(lines)
