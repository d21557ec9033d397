# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for parent feedback."""

from datetime import timedelta

import pytest

from counseltrack.domains.intervention.feedback import (
    FeedbackNotFoundError,
    FeedbackSubmission,
    InvalidFeedbackTransitionError,
    ParentFeedbackService,
)
from counseltrack.infrastructure.database.models.feedback import (
    FeedbackStatus,
    FeedbackType,
    ParentFeedback,
)
from counseltrack.utils.datetime import utc_now


@pytest.fixture
def service(db) -> ParentFeedbackService:
    return ParentFeedbackService(db)


def submission(**overrides) -> FeedbackSubmission:
    data = {
        "student_id": "student-1",
        "feedback_type": FeedbackType.INTERVENTION,
        "feedback_text": "The tutoring sessions really helped.",
        "parent_name": "Mary Lovelace",
        "related_id": "int-1",
        "rating": 5,
    }
    data.update(overrides)
    return FeedbackSubmission(**data)


async def age(db, feedback_id: str, hours: float) -> None:
    """Pretend the feedback arrived `hours` ago."""
    feedback = await db.get(ParentFeedback, feedback_id)
    feedback.created_at = utc_now() - timedelta(hours=hours)
    await db.commit()


class TestCreateFeedback:
    """Tests for create_feedback."""

    @pytest.mark.asyncio
    async def test_stored_as_new(self, service):
        feedback = await service.create_feedback(
            submission(appreciations=["Patient tutor"], follow_up_required=True)
        )

        stored = await service.get_feedback(feedback.id)
        assert stored.status == FeedbackStatus.NEW
        assert stored.rating == 5
        assert stored.appreciations == ["Patient tutor"]
        assert stored.concerns == []
        assert stored.follow_up_required is True
        assert stored.responded_at is None

    @pytest.mark.asyncio
    async def test_missing_feedback(self, service):
        with pytest.raises(FeedbackNotFoundError):
            await service.get_feedback("missing")


class TestFeedbackQueries:
    """Tests for the student and pending lists."""

    @pytest.mark.asyncio
    async def test_student_feedback_newest_first(self, service, db):
        older = await service.create_feedback(submission())
        newer = await service.create_feedback(submission(feedback_type=FeedbackType.GENERAL))
        await service.create_feedback(submission(student_id="student-2"))
        await age(db, older.id, hours=5)

        records = await service.get_feedback_by_student("student-1")

        assert [r.id for r in records] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_pending_holds_new_and_reviewed_with_follow_up(self, service, db):
        new = await service.create_feedback(submission())
        follow_up = await service.create_feedback(submission(follow_up_required=True))
        reviewed_only = await service.create_feedback(submission())
        answered = await service.create_feedback(submission(follow_up_required=True))
        await service.update_feedback_status(follow_up.id, FeedbackStatus.REVIEWED)
        await service.update_feedback_status(reviewed_only.id, FeedbackStatus.REVIEWED)
        await service.update_feedback_status(answered.id, FeedbackStatus.RESPONDED)
        await age(db, follow_up.id, hours=3)
        await age(db, new.id, hours=1)

        pending = await service.get_pending_feedback()

        assert [r.id for r in pending] == [follow_up.id, new.id]


class TestUpdateFeedbackStatus:
    """Tests for update_feedback_status."""

    @pytest.mark.asyncio
    async def test_response_is_stamped(self, service):
        feedback = await service.create_feedback(submission())

        updated = await service.update_feedback_status(
            feedback.id,
            FeedbackStatus.RESPONDED,
            responded_by="ms.lee",
            follow_up_notes="Called the parent back",
        )

        assert updated.status == FeedbackStatus.RESPONDED
        assert updated.responded_by == "ms.lee"
        assert updated.responded_at is not None
        assert updated.follow_up_notes == "Called the parent back"

    @pytest.mark.asyncio
    async def test_closing_keeps_first_response_time(self, service):
        feedback = await service.create_feedback(submission())
        responded = await service.update_feedback_status(feedback.id, FeedbackStatus.RESPONDED)
        first_response = responded.responded_at

        closed = await service.update_feedback_status(feedback.id, FeedbackStatus.CLOSED)

        assert closed.status == FeedbackStatus.CLOSED
        assert closed.responded_at == first_response

    @pytest.mark.asyncio
    async def test_review_does_not_stamp_response(self, service):
        feedback = await service.create_feedback(submission())

        reviewed = await service.update_feedback_status(feedback.id, FeedbackStatus.REVIEWED)

        assert reviewed.responded_at is None

    @pytest.mark.asyncio
    async def test_cannot_move_backward(self, service):
        feedback = await service.create_feedback(submission())
        await service.update_feedback_status(feedback.id, FeedbackStatus.RESPONDED)

        with pytest.raises(InvalidFeedbackTransitionError):
            await service.update_feedback_status(feedback.id, FeedbackStatus.REVIEWED)

    @pytest.mark.asyncio
    async def test_closed_is_final(self, service):
        feedback = await service.create_feedback(submission())
        await service.update_feedback_status(feedback.id, FeedbackStatus.CLOSED)

        with pytest.raises(InvalidFeedbackTransitionError):
            await service.update_feedback_status(feedback.id, FeedbackStatus.CLOSED)

    @pytest.mark.asyncio
    async def test_missing_feedback(self, service):
        with pytest.raises(FeedbackNotFoundError):
            await service.update_feedback_status("missing", FeedbackStatus.REVIEWED)
