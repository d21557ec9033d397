# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification system for CounselTrack.

Key Components:
- NotificationDispatcher: Records, dispatches and tracks notifications
- DeliveryConfirmer: Best-effort SENT -> DELIVERED timer
- NotificationRulesService: Parent notification rules and preferences
- Channels: EmailChannel, InAppChannel, LogOnlyChannel

Usage:
    from counseltrack.infrastructure.notifications import (
        NotificationDispatcher,
        NotificationRequest,
    )

    dispatcher = NotificationDispatcher(db)
    result = await dispatcher.send(
        NotificationRequest(
            recipient_type=RecipientType.PARENT,
            recipient_contact="parent@example.com",
            channel=NotificationChannel.EMAIL,
            subject="Meeting",
            message="Please join us on Monday.",
        )
    )
"""

from counseltrack.infrastructure.notifications.delivery import (
    DeliveryConfirmer,
    close_delivery_confirmer,
    get_delivery_confirmer,
    init_delivery_confirmer,
)
from counseltrack.infrastructure.notifications.rules import (
    AlertNotice,
    NotificationRulesService,
    RuleOutcome,
)
from counseltrack.infrastructure.notifications.service import (
    BulkSendResult,
    InvalidStatusTransitionError,
    NotificationDispatcher,
    NotificationDispatchError,
    NotificationNotFoundError,
    NotificationRequest,
    NotificationServiceError,
    SendResult,
)
from counseltrack.infrastructure.notifications.templates import render_template

__all__ = [
    "AlertNotice",
    "BulkSendResult",
    "DeliveryConfirmer",
    "InvalidStatusTransitionError",
    "NotificationDispatcher",
    "NotificationDispatchError",
    "NotificationNotFoundError",
    "NotificationRequest",
    "NotificationRulesService",
    "NotificationServiceError",
    "RuleOutcome",
    "SendResult",
    "close_delivery_confirmer",
    "get_delivery_confirmer",
    "init_delivery_confirmer",
    "render_template",
]
