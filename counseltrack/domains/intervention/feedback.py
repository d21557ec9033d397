# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent feedback on interventions, reports and communication.

Feedback arrives as NEW and is worked forward by staff. The pending
queue holds everything nobody has looked at yet, plus reviewed items
that still need a follow-up, oldest first.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from counseltrack.domains.intervention.service import InterventionServiceError
from counseltrack.infrastructure.database.models.feedback import (
    FeedbackStatus,
    FeedbackType,
    ParentFeedback,
)
from counseltrack.utils.datetime import utc_now

logger = logging.getLogger(__name__)

ANSWERED_STATUSES = (FeedbackStatus.RESPONDED, FeedbackStatus.CLOSED)


class FeedbackNotFoundError(InterventionServiceError):
    """No feedback exists under the given ID."""

    pass


class InvalidFeedbackTransitionError(InterventionServiceError):
    """Feedback cannot move backward or leave CLOSED."""

    pass


@dataclass
class FeedbackSubmission:
    """What a parent submitted."""

    student_id: str
    feedback_type: FeedbackType
    feedback_text: str
    parent_name: str | None = None
    parent_contact: str | None = None
    related_id: str | None = None
    rating: int | None = None
    concerns: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    appreciations: list[str] = field(default_factory=list)
    follow_up_required: bool = False
    follow_up_notes: str | None = None


class ParentFeedbackService:
    """Stores parent feedback and moves it through review."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_feedback(self, submission: FeedbackSubmission) -> ParentFeedback:
        """Store new feedback as NEW."""
        feedback = ParentFeedback(
            student_id=submission.student_id,
            parent_name=submission.parent_name,
            parent_contact=submission.parent_contact,
            feedback_type=submission.feedback_type,
            related_id=submission.related_id,
            rating=submission.rating,
            feedback_text=submission.feedback_text,
            concerns=list(submission.concerns),
            suggestions=list(submission.suggestions),
            appreciations=list(submission.appreciations),
            follow_up_required=submission.follow_up_required,
            follow_up_notes=submission.follow_up_notes,
            status=FeedbackStatus.NEW,
        )
        self.db.add(feedback)
        await self.db.commit()

        logger.info(
            "Stored %s feedback %s for student %s",
            submission.feedback_type.value,
            feedback.id,
            submission.student_id,
        )
        return feedback

    async def get_feedback(self, feedback_id: str) -> ParentFeedback:
        """Get one piece of feedback.

        Raises:
            FeedbackNotFoundError: If it does not exist.
        """
        feedback = await self.db.get(ParentFeedback, feedback_id)
        if feedback is None:
            raise FeedbackNotFoundError(f"Feedback not found: {feedback_id}")
        return feedback

    async def get_feedback_by_student(self, student_id: str) -> list[ParentFeedback]:
        """All feedback about a student, newest first."""
        result = await self.db.execute(
            select(ParentFeedback)
            .where(ParentFeedback.student_id == student_id)
            .order_by(ParentFeedback.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_pending_feedback(self) -> list[ParentFeedback]:
        """NEW feedback and reviewed feedback awaiting follow-up, oldest first."""
        result = await self.db.execute(
            select(ParentFeedback)
            .where(
                or_(
                    ParentFeedback.status == FeedbackStatus.NEW,
                    and_(
                        ParentFeedback.status == FeedbackStatus.REVIEWED,
                        ParentFeedback.follow_up_required.is_(True),
                    ),
                )
            )
            .order_by(ParentFeedback.created_at)
        )
        return list(result.scalars().all())

    async def update_feedback_status(
        self,
        feedback_id: str,
        status: FeedbackStatus,
        responded_by: str | None = None,
        follow_up_notes: str | None = None,
    ) -> ParentFeedback:
        """Move feedback forward.

        responded_at is stamped the first time the feedback reaches
        RESPONDED or CLOSED.

        Raises:
            FeedbackNotFoundError: If the feedback does not exist.
            InvalidFeedbackTransitionError: If it is CLOSED or the status
                would move backward.
        """
        feedback = await self.get_feedback(feedback_id)
        current = FeedbackStatus(feedback.status)
        if current == FeedbackStatus.CLOSED:
            raise InvalidFeedbackTransitionError(f"Feedback {feedback_id} is already CLOSED")
        if status.rank < current.rank:
            raise InvalidFeedbackTransitionError(
                f"Cannot move feedback {feedback_id} from {current.value} back to {status.value}"
            )

        feedback.status = status
        if responded_by is not None:
            feedback.responded_by = responded_by
        if follow_up_notes is not None:
            feedback.follow_up_notes = follow_up_notes
        if status in ANSWERED_STATUSES and feedback.responded_at is None:
            feedback.responded_at = utc_now()

        await self.db.commit()

        logger.info("Feedback %s moved %s -> %s", feedback_id, current.value, status.value)
        return feedback
