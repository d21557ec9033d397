# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Best-effort delivery confirmation.

After a successful hand-off the dispatcher schedules a short timer that
moves the record from SENT to DELIVERED. The timer lives in process
memory only: if the process stops first, the record stays SENT. Do not
treat DELIVERED as an audit signal.
"""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from counseltrack.infrastructure.database.models.notification import (
    NotificationRecord,
    NotificationStatus,
)
from counseltrack.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class DeliveryConfirmer:
    """Schedules SENT -> DELIVERED transitions on the running event loop.

    Each confirmation opens its own session, so it is independent of the
    request that sent the notification.

    Attributes:
        delay_seconds: Wait between hand-off and confirmation.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        delay_seconds: float = 0.1,
    ) -> None:
        """Initialize the confirmer.

        Args:
            sessionmaker: Factory for independent sessions.
            delay_seconds: Wait between hand-off and confirmation.
        """
        self._sessionmaker = sessionmaker
        self.delay_seconds = delay_seconds
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending_count(self) -> int:
        """Number of confirmations not yet applied."""
        return len(self._tasks)

    def schedule(self, notification_id: str) -> None:
        """Schedule the DELIVERED transition for a SENT record.

        Must be called from a running event loop.
        """
        task = asyncio.get_running_loop().create_task(self._confirm_later(notification_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _confirm_later(self, notification_id: str) -> None:
        await asyncio.sleep(self.delay_seconds)
        try:
            await self.confirm(notification_id)
        except SQLAlchemyError as e:
            logger.warning(
                "Delivery confirmation for notification %s failed: %s",
                notification_id,
                str(e),
            )

    async def confirm(self, notification_id: str) -> bool:
        """Mark a SENT record DELIVERED.

        Returns:
            True if the record moved to DELIVERED. Records in any other
            state (failed meanwhile, already read, deleted) are left as is.
        """
        async with self._sessionmaker() as session:
            record = await session.get(NotificationRecord, notification_id)
            if record is None or record.status != NotificationStatus.SENT:
                return False

            record.status = NotificationStatus.DELIVERED
            record.delivered_at = utc_now()
            await session.commit()

        logger.debug("Notification %s delivered", notification_id)
        return True

    async def drain(self) -> None:
        """Wait for every scheduled confirmation to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding confirmations."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()


_confirmer: DeliveryConfirmer | None = None


def init_delivery_confirmer(
    sessionmaker: async_sessionmaker[AsyncSession],
    delay_seconds: float,
) -> DeliveryConfirmer:
    """Create the process-wide confirmer used by API requests."""
    global _confirmer
    _confirmer = DeliveryConfirmer(sessionmaker, delay_seconds)
    return _confirmer


def get_delivery_confirmer() -> DeliveryConfirmer | None:
    """Get the process-wide confirmer, if initialized."""
    return _confirmer


async def close_delivery_confirmer() -> None:
    """Cancel pending confirmations and drop the confirmer."""
    global _confirmer
    if _confirmer is not None:
        await _confirmer.shutdown()
        _confirmer = None
