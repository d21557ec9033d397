# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for parent feedback endpoints."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from counseltrack.api.dependencies import get_feedback_service
from counseltrack.api.errors import register_exception_handlers
from counseltrack.api.v1 import router as v1_router
from counseltrack.domains.intervention.feedback import (
    FeedbackNotFoundError,
    InvalidFeedbackTransitionError,
)
from counseltrack.infrastructure.database.models.feedback import (
    FeedbackStatus,
    FeedbackType,
    ParentFeedback,
)


def make_feedback(**overrides) -> ParentFeedback:
    values = dict(
        id="fb-1",
        student_id="student-1",
        parent_name="Mary Lovelace",
        feedback_type=FeedbackType.INTERVENTION,
        related_id="int-1",
        rating=4,
        feedback_text="Tutoring is helping.",
        concerns=[],
        suggestions=["More sessions"],
        appreciations=[],
        follow_up_required=False,
        status=FeedbackStatus.NEW,
        created_at=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return ParentFeedback(**values)


@pytest.fixture
def service():
    """Feedback service with every method mocked."""
    service = MagicMock()
    service.create_feedback = AsyncMock(return_value=make_feedback())
    service.get_feedback_by_student = AsyncMock(return_value=[make_feedback()])
    service.get_pending_feedback = AsyncMock(return_value=[make_feedback(), make_feedback(id="fb-2")])
    service.update_feedback_status = AsyncMock(
        return_value=make_feedback(status=FeedbackStatus.RESPONDED, responded_by="ms.lee")
    )
    return service


@pytest.fixture
def app(service):
    """Create test FastAPI app."""
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(v1_router)
    app.dependency_overrides[get_feedback_service] = lambda: service
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


class TestFeedbackAPIRouting:
    """Tests for feedback API routing."""

    def test_routes_registered(self, app):
        routes = [route.path for route in app.routes]

        assert "/api/v1/interventions/feedback" in routes
        assert "/api/v1/interventions/feedback/student/{student_id}" in routes
        assert "/api/v1/interventions/feedback/pending" in routes
        assert "/api/v1/interventions/feedback/{feedback_id}/status" in routes


class TestSubmitFeedback:
    """Tests for POST /interventions/feedback."""

    def test_created(self, client, service):
        response = client.post(
            "/api/v1/interventions/feedback",
            json={
                "student_id": "student-1",
                "feedback_type": "INTERVENTION",
                "feedback_text": "Tutoring is helping.",
                "related_id": "int-1",
                "rating": 4,
                "suggestions": ["More sessions"],
            },
        )

        body = response.json()
        assert response.status_code == 201
        assert body["data"]["id"] == "fb-1"
        assert body["data"]["status"] == "NEW"
        submission = service.create_feedback.await_args.args[0]
        assert submission.feedback_type == FeedbackType.INTERVENTION
        assert submission.suggestions == ["More sessions"]

    def test_rating_out_of_range(self, client, service):
        response = client.post(
            "/api/v1/interventions/feedback",
            json={
                "student_id": "student-1",
                "feedback_type": "GENERAL",
                "feedback_text": "Thanks",
                "rating": 6,
            },
        )

        assert response.status_code == 422
        service.create_feedback.assert_not_awaited()


class TestFeedbackQueries:
    """Tests for the feedback lists and status updates."""

    def test_student_feedback(self, client, service):
        response = client.get("/api/v1/interventions/feedback/student/student-1")

        assert response.json()["data"][0]["suggestions"] == ["More sessions"]
        service.get_feedback_by_student.assert_awaited_once_with("student-1")

    def test_pending(self, client):
        response = client.get("/api/v1/interventions/feedback/pending")

        assert [f["id"] for f in response.json()["data"]] == ["fb-1", "fb-2"]

    def test_update_status(self, client, service):
        response = client.patch(
            "/api/v1/interventions/feedback/fb-1/status",
            json={"status": "RESPONDED", "responded_by": "ms.lee"},
        )

        data = response.json()["data"]
        assert data["status"] == "RESPONDED"
        assert data["responded_by"] == "ms.lee"
        service.update_feedback_status.assert_awaited_once_with(
            "fb-1",
            FeedbackStatus.RESPONDED,
            responded_by="ms.lee",
            follow_up_notes=None,
        )

    @pytest.mark.parametrize(
        "error,status_code",
        [
            (FeedbackNotFoundError("Feedback not found: fb-9"), 404),
            (InvalidFeedbackTransitionError("Feedback fb-1 is already CLOSED"), 409),
        ],
    )
    def test_error_mapping(self, client, service, error, status_code):
        service.update_feedback_status.side_effect = error

        response = client.patch(
            "/api/v1/interventions/feedback/fb-1/status",
            json={"status": "CLOSED"},
        )

        assert response.status_code == status_code
        assert response.json()["success"] is False
