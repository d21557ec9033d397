# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Placeholder channel for transports without a configured provider.

SMS and push providers are external collaborators. Until one is wired
in, notifications on those channels are logged and reported SKIPPED.
"""

from counseltrack.infrastructure.database.models.notification import NotificationChannel
from counseltrack.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    NotificationPayload,
)


class LogOnlyChannel(BaseChannel):
    """Logs the notification instead of transmitting it."""

    def __init__(self, channel: NotificationChannel) -> None:
        """Initialize for the given channel.

        Args:
            channel: Channel this placeholder stands in for.
        """
        super().__init__()
        self._channel = channel

    @property
    def channel_type(self) -> NotificationChannel:
        """Return the channel type."""
        return self._channel

    async def send(self, payload: NotificationPayload) -> ChannelResult:
        """Log the notification and report it as skipped."""
        self.logger.info(
            "No %s provider configured; recorded notification %s to %s",
            self._channel.value,
            payload.notification_id,
            payload.recipient_contact,
        )
        return self.create_skipped_result(f"No {self._channel.value} provider configured")
