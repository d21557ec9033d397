# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification channel implementations.

Channels:
- InAppChannel: The stored record is the in-app message
- EmailChannel: SMTP email via aiosmtplib
- LogOnlyChannel: Stand-in for SMS and push until a provider is wired in
"""

from counseltrack.core.config.settings import Settings
from counseltrack.infrastructure.database.models.notification import NotificationChannel
from counseltrack.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    DeliveryStatus,
    NotificationPayload,
)
from counseltrack.infrastructure.notifications.channels.email import EmailChannel
from counseltrack.infrastructure.notifications.channels.in_app import InAppChannel
from counseltrack.infrastructure.notifications.channels.log_only import LogOnlyChannel


def build_default_channels(settings: Settings) -> dict[NotificationChannel, BaseChannel]:
    """Create the channel registry used by the dispatcher.

    Args:
        settings: Application settings (SMTP configuration).

    Returns:
        Mapping of every NotificationChannel to its transport.
    """
    return {
        NotificationChannel.EMAIL: EmailChannel(settings.smtp),
        NotificationChannel.IN_APP: InAppChannel(),
        NotificationChannel.SMS: LogOnlyChannel(NotificationChannel.SMS),
        NotificationChannel.PUSH: LogOnlyChannel(NotificationChannel.PUSH),
    }


__all__ = [
    "BaseChannel",
    "ChannelResult",
    "DeliveryStatus",
    "EmailChannel",
    "InAppChannel",
    "LogOnlyChannel",
    "NotificationPayload",
    "build_default_channels",
]
