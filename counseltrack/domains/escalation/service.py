# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Escalation ladder service.

An escalation starts at the first rung of its chain (the counselor) and
notifies that rung by email. A periodic sweep promotes escalations that
stay unanswered beyond their threshold (2 hours for CRITICAL, 24 hours
otherwise) to the next rung and notifies it. The top rung is never
passed.

State machine:
    OPEN -> IN_PROGRESS | RESOLVED | CLOSED
    IN_PROGRESS -> RESOLVED | CLOSED
    RESOLVED, CLOSED: terminal

Promotion changes current_level, escalated_to and level_escalated_at and
appends to notifications_sent. status and escalated_at are never reset
by a promotion.

Concurrent updates are detected through the version column: the sweep
skips a record it lost the race for, a responder gets
EscalationConflictError.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from counseltrack.core.config.settings import EscalationSettings, Settings, get_settings
from counseltrack.domains.escalation.chain import EscalationChain, chain_for
from counseltrack.infrastructure.database.models.escalation import (
    EscalationRecord,
    EscalationRole,
    EscalationStatus,
    EscalationType,
)
from counseltrack.infrastructure.database.models.notification import (
    NotificationChannel,
    NotificationPriority,
    RecipientType,
)
from counseltrack.infrastructure.database.models.student import RiskLevel
from counseltrack.infrastructure.notifications.service import (
    NotificationDispatcher,
    NotificationRequest,
)
from counseltrack.utils.datetime import days_ago, hours_since, minutes_since, utc_now

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (EscalationStatus.OPEN, EscalationStatus.IN_PROGRESS)

PROMOTED = "promoted"
STALE = "stale"

# One sweep at a time per process.
_sweep_lock = asyncio.Lock()


class EscalationServiceError(Exception):
    """Base exception for escalation operations."""

    pass


class EscalationNotFoundError(EscalationServiceError):
    """No escalation exists with the given ID."""

    pass


class InvalidEscalationTransitionError(EscalationServiceError):
    """The escalation is in a state that does not allow the operation."""

    pass


class EscalationConflictError(EscalationServiceError):
    """The escalation was modified concurrently."""

    pass


@dataclass
class SweepResult:
    """Outcome of one unresponded-escalation sweep."""

    checked: int = 0
    escalated: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"escalated": self.escalated}


def _recipient_type_for(role: EscalationRole) -> RecipientType:
    if role == EscalationRole.COUNSELOR:
        return RecipientType.COUNSELOR
    return RecipientType.ADMIN


def _priority_for(risk_level: RiskLevel | None) -> NotificationPriority:
    if risk_level == RiskLevel.CRITICAL:
        return NotificationPriority.URGENT
    return NotificationPriority.HIGH


def _urgency_label(risk_level: RiskLevel | None) -> str:
    return "URGENT" if risk_level == RiskLevel.CRITICAL else "IMPORTANT"


class EscalationService:
    """Service for escalating unacknowledged risk situations.

    Attributes:
        db: Async database session.
    """

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
        settings: Settings | None = None,
        sweep_lock: asyncio.Lock | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            db: Async database session.
            dispatcher: Sends escalation notifications. Defaults to one
                bound to the same session.
            settings: Application settings.
            sweep_lock: Lock serializing sweeps. Defaults to the process-wide lock.
        """
        self.db = db
        self._settings = settings or get_settings()
        self._dispatcher = dispatcher or NotificationDispatcher(db, settings=self._settings)
        self._sweep_lock = sweep_lock or _sweep_lock

    @property
    def escalation_settings(self) -> EscalationSettings:
        return self._settings.escalation

    def _chain(self, risk_level: RiskLevel | None) -> EscalationChain:
        return chain_for(risk_level, self.escalation_settings)

    def _threshold_hours(self, risk_level: RiskLevel | None) -> float:
        if risk_level == RiskLevel.CRITICAL:
            return self.escalation_settings.critical_threshold_hours
        return self.escalation_settings.standard_threshold_hours

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def trigger_escalation(
        self,
        student_id: str,
        escalation_type: EscalationType,
        trigger_reason: str,
        risk_level: RiskLevel | None = None,
        alert_id: str | None = None,
        intervention_id: str | None = None,
        escalated_by: str = "system",
    ) -> str:
        """Open an escalation at the first rung and notify it.

        Args:
            student_id: Student the situation concerns.
            escalation_type: What caused the escalation.
            trigger_reason: Human-readable reason.
            risk_level: Risk level; CRITICAL uses the longer chain.
            alert_id: Related risk alert.
            intervention_id: Related intervention.
            escalated_by: Who opened it.

        Returns:
            ID of the new escalation.
        """
        risk_level = RiskLevel(risk_level) if risk_level is not None else None
        rung = self._chain(risk_level).first
        now = utc_now()

        record = EscalationRecord(
            student_id=student_id,
            alert_id=alert_id,
            intervention_id=intervention_id,
            escalation_type=EscalationType(escalation_type),
            current_level=rung.role,
            escalated_to=rung.contact,
            trigger_reason=trigger_reason,
            risk_level=risk_level,
            escalated_by=escalated_by,
            escalated_at=now,
            level_escalated_at=now,
            status=EscalationStatus.OPEN,
            notifications_sent=[rung.role.value],
        )
        self.db.add(record)
        await self.db.commit()

        logger.info(
            "Escalation %s opened for student %s at %s (risk=%s)",
            record.id,
            student_id,
            rung.role.value,
            risk_level.value if risk_level else None,
        )

        await self._notify_rung(record)
        return record.id

    async def respond_to_escalation(
        self,
        escalation_id: str,
        responded_by: str,
        action_taken: str,
        resolved: bool = False,
    ) -> EscalationRecord:
        """Record a response.

        Args:
            escalation_id: Escalation ID.
            responded_by: Who responded.
            action_taken: What was done.
            resolved: RESOLVED when true, IN_PROGRESS otherwise.

        Returns:
            The updated record.

        Raises:
            EscalationNotFoundError: If the escalation does not exist.
            InvalidEscalationTransitionError: If it is already RESOLVED or CLOSED.
            EscalationConflictError: If it changed concurrently.
        """
        record = await self.get_escalation(escalation_id)
        self._ensure_active(record)

        now = utc_now()
        record.status = EscalationStatus.RESOLVED if resolved else EscalationStatus.IN_PROGRESS
        record.responded_by = responded_by
        # Response time measures the first answer only
        if record.responded_at is None:
            record.responded_at = now
            record.response_time_minutes = minutes_since(record.escalated_at, now)
        record.action_taken = action_taken
        if resolved:
            record.resolution = action_taken

        await self._commit_or_conflict(escalation_id)

        logger.info(
            "Escalation %s answered by %s after %d minutes (%s)",
            escalation_id,
            responded_by,
            record.response_time_minutes,
            record.status.value,
        )

        if resolved:
            await self._dispatcher.send(
                NotificationRequest(
                    recipient_type=RecipientType.COUNSELOR,
                    recipient_contact=self.escalation_settings.counselor_contact,
                    channel=NotificationChannel.IN_APP,
                    subject="Escalation Resolved",
                    message=(
                        f"The escalation for student {record.student_id} was resolved "
                        f"by {responded_by}.\nAction taken: {action_taken}"
                    ),
                    priority=NotificationPriority.NORMAL,
                    student_id=record.student_id,
                    alert_id=record.alert_id,
                    intervention_id=record.intervention_id,
                    metadata={"escalation_id": record.id},
                )
            )

        return record

    async def close_escalation(
        self,
        escalation_id: str,
        closed_by: str,
        resolution: str | None = None,
    ) -> EscalationRecord:
        """Close an escalation administratively.

        Raises:
            EscalationNotFoundError: If the escalation does not exist.
            InvalidEscalationTransitionError: If it is already RESOLVED or CLOSED.
            EscalationConflictError: If it changed concurrently.
        """
        record = await self.get_escalation(escalation_id)
        self._ensure_active(record)

        record.status = EscalationStatus.CLOSED
        record.resolution = resolution or f"Closed by {closed_by}"

        await self._commit_or_conflict(escalation_id)

        logger.info("Escalation %s closed by %s", escalation_id, closed_by)
        return record

    def _ensure_active(self, record: EscalationRecord) -> None:
        status = EscalationStatus(record.status)
        if status.is_terminal:
            raise InvalidEscalationTransitionError(
                f"Escalation {record.id} is already {status.value}"
            )

    async def _commit_or_conflict(self, escalation_id: str) -> None:
        try:
            await self.db.commit()
        except StaleDataError as e:
            await self.db.rollback()
            raise EscalationConflictError(
                f"Escalation {escalation_id} was modified concurrently, reload and retry"
            ) from e

    # =========================================================================
    # Sweep
    # =========================================================================

    async def check_and_escalate_unresponded(self) -> dict[str, int]:
        """Promote every unanswered escalation past its threshold.

        Each record moves at most one rung per sweep. Records already at
        the top of their chain are left alone and not counted.

        Returns:
            {"escalated": number of promotions}
        """
        async with self._sweep_lock:
            result = await self._sweep()

        if result.escalated or result.skipped:
            logger.info(
                "Escalation sweep: %d checked, %d escalated, %d skipped",
                result.checked,
                result.escalated,
                result.skipped,
            )
        return result.to_dict()

    async def _sweep(self) -> SweepResult:
        rows = await self.db.execute(
            select(EscalationRecord.id)
            .where(
                EscalationRecord.status.in_(ACTIVE_STATUSES),
                EscalationRecord.responded_at.is_(None),
            )
            .order_by(EscalationRecord.escalated_at)
        )
        candidate_ids = list(rows.scalars().all())

        result = SweepResult(checked=len(candidate_ids))
        now = utc_now()

        for escalation_id in candidate_ids:
            record = await self.db.get(EscalationRecord, escalation_id, populate_existing=True)
            if record is None or record.responded_at is not None:
                continue
            if EscalationStatus(record.status) not in ACTIVE_STATUSES:
                continue

            outcome = await self._promote_if_due(record, now)
            if outcome == PROMOTED:
                result.escalated += 1
            elif outcome == STALE:
                result.skipped += 1

        return result

    async def _promote_if_due(self, record: EscalationRecord, now: datetime) -> str | None:
        """Promote one record when due.

        Returns:
            PROMOTED, STALE when another writer got there first, or None.
        """
        record_id = record.id
        risk_level = RiskLevel(record.risk_level) if record.risk_level is not None else None
        elapsed = hours_since(record.level_escalated_at, now)
        if elapsed <= self._threshold_hours(risk_level):
            return None

        previous = EscalationRole(record.current_level)
        try:
            next_rung = self._chain(risk_level).next_after(previous)
        except ValueError:
            logger.warning(
                "Escalation %s is at %s, which is not on its chain; skipping",
                record.id,
                previous.value,
            )
            return None

        if next_rung is None:
            return None

        record.current_level = next_rung.role
        record.escalated_to = next_rung.contact
        record.level_escalated_at = now
        record.notifications_sent = [*(record.notifications_sent or []), next_rung.role.value]

        try:
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            logger.warning("Escalation %s changed during sweep; skipping", record_id)
            return STALE

        logger.info(
            "Escalation %s promoted from %s to %s after %.1f hours",
            record.id,
            previous.value,
            next_rung.role.value,
            elapsed,
        )

        await self._notify_rung(record, previous_level=previous, hours_elapsed=elapsed)
        return PROMOTED

    # =========================================================================
    # Notifications
    # =========================================================================

    async def _notify_rung(
        self,
        record: EscalationRecord,
        previous_level: EscalationRole | None = None,
        hours_elapsed: float | None = None,
    ) -> None:
        role = EscalationRole(record.current_level)
        risk_level = RiskLevel(record.risk_level) if record.risk_level is not None else None

        lines = [
            f"Student {record.student_id} requires your attention.",
            f"Escalation type: {EscalationType(record.escalation_type).value}",
            f"Reason: {record.trigger_reason}",
            f"Risk level: {risk_level.value if risk_level else 'UNKNOWN'}",
        ]
        if previous_level is not None:
            lines.append(
                f"Escalated from {previous_level.value} after {hours_elapsed:.1f} hours without a response."
            )
        lines.append(f"Escalation ID: {record.id}")

        await self._dispatcher.send(
            NotificationRequest(
                recipient_type=_recipient_type_for(role),
                recipient_contact=record.escalated_to,
                recipient_name=role.value,
                channel=NotificationChannel.EMAIL,
                subject=f"{_urgency_label(risk_level)} Student Escalation - {role.value}",
                message="\n".join(lines),
                priority=_priority_for(risk_level),
                student_id=record.student_id,
                alert_id=record.alert_id,
                intervention_id=record.intervention_id,
                metadata={
                    "escalation_id": record.id,
                    "level": role.value,
                    "previous_level": previous_level.value if previous_level else None,
                },
            )
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_escalation(self, escalation_id: str) -> EscalationRecord:
        """Get an escalation by ID.

        Raises:
            EscalationNotFoundError: If it does not exist.
        """
        record = await self.db.get(EscalationRecord, escalation_id)
        if record is None:
            raise EscalationNotFoundError(f"Escalation {escalation_id} not found")
        return record

    async def get_active_escalations(self) -> list[EscalationRecord]:
        """OPEN and IN_PROGRESS escalations, oldest first."""
        result = await self.db.execute(
            select(EscalationRecord)
            .where(EscalationRecord.status.in_(ACTIVE_STATUSES))
            .order_by(EscalationRecord.escalated_at)
        )
        return list(result.scalars().all())

    async def get_escalations_by_student(self, student_id: str) -> list[EscalationRecord]:
        """All escalations for one student, newest first."""
        result = await self.db.execute(
            select(EscalationRecord)
            .where(EscalationRecord.student_id == student_id)
            .order_by(EscalationRecord.escalated_at.desc())
        )
        return list(result.scalars().all())

    async def get_escalation_metrics(self) -> dict[str, Any]:
        """Current workload and trailing-window statistics.

        Returns:
            Dict with active_count, critical_active, overdue_count and,
            over the configured window, total, resolved, open, critical
            and avg_response_time_minutes.
        """
        now = utc_now()
        window_start = days_ago(self.escalation_settings.metrics_window_days, now)

        recent_rows = await self.db.execute(
            select(EscalationRecord).where(EscalationRecord.escalated_at >= window_start)
        )
        recent = list(recent_rows.scalars().all())

        response_times = [r.response_time_minutes for r in recent if r.response_time_minutes is not None]
        avg_response = sum(response_times) / len(response_times) if response_times else None

        active = await self.get_active_escalations()
        overdue = [
            r
            for r in active
            if r.responded_at is None
            and hours_since(r.level_escalated_at, now) > self._threshold_hours(
                RiskLevel(r.risk_level) if r.risk_level is not None else None
            )
        ]

        return {
            "active_count": len(active),
            "critical_active": sum(1 for r in active if r.risk_level == RiskLevel.CRITICAL),
            "overdue_count": len(overdue),
            "window_days": self.escalation_settings.metrics_window_days,
            "total": len(recent),
            "resolved": sum(1 for r in recent if r.status == EscalationStatus.RESOLVED),
            "open": sum(1 for r in recent if r.status == EscalationStatus.OPEN),
            "critical": sum(1 for r in recent if r.risk_level == RiskLevel.CRITICAL),
            "avg_response_time_minutes": round(avg_response, 1) if avg_response is not None else None,
        }

