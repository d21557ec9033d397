# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-app notification channel.

The NotificationRecord itself is the in-app message: the application UI
lists records addressed to the signed-in user. Sending therefore only
needs to acknowledge the hand-off.
"""

from counseltrack.infrastructure.database.models.notification import NotificationChannel
from counseltrack.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    NotificationPayload,
)


class InAppChannel(BaseChannel):
    """In-app notification channel."""

    @property
    def channel_type(self) -> NotificationChannel:
        """Return the channel type."""
        return NotificationChannel.IN_APP

    async def send(self, payload: NotificationPayload) -> ChannelResult:
        """Publish the record to the recipient's in-app inbox.

        Args:
            payload: The notification payload.

        Returns:
            ChannelResult with SENT status.
        """
        self.logger.info(
            "In-app notification %s for %s",
            payload.notification_id,
            payload.recipient_contact,
        )
        return self.create_success_result(
            message_id=payload.notification_id,
            metadata={"inbox": payload.recipient_contact},
        )
