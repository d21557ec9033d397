# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for notification API endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from counseltrack.api.dependencies import get_dispatcher
from counseltrack.api.errors import register_exception_handlers
from counseltrack.api.v1 import router as v1_router
from counseltrack.infrastructure.database.models.notification import (
    NotificationChannel,
    NotificationPriority,
    NotificationRecord,
    NotificationStatus,
    NotificationTemplate,
    RecipientType,
    TemplateCategory,
    TemplateChannel,
)
from counseltrack.infrastructure.notifications.service import (
    TEMPLATE_NOT_FOUND,
    BulkSendResult,
    InvalidStatusTransitionError,
    NotificationNotFoundError,
    SendResult,
)


def make_notification(**overrides) -> NotificationRecord:
    values = dict(
        id="ntf-1",
        recipient_type=RecipientType.PARENT,
        recipient_contact="parent@example.com",
        channel=NotificationChannel.EMAIL,
        subject="Progress update",
        message="Your child improved this week.",
        student_id="student-1",
        extra_data={"source": "test"},
        status=NotificationStatus.SENT,
        priority=NotificationPriority.NORMAL,
        retry_count=0,
    )
    values.update(overrides)
    return NotificationRecord(**values)


@pytest.fixture
def dispatcher():
    """Notification dispatcher with every method mocked."""
    dispatcher = MagicMock()
    dispatcher.send = AsyncMock(return_value=SendResult(success=True, notification_id="ntf-1"))
    dispatcher.send_bulk = AsyncMock()
    dispatcher.send_templated = AsyncMock(return_value=SendResult(success=True, notification_id="ntf-2"))
    dispatcher.get_by_student = AsyncMock(return_value=[make_notification()])
    dispatcher.get_pending = AsyncMock(return_value=[])
    dispatcher.get_logs = AsyncMock(return_value=[make_notification()])
    dispatcher.get_stats = AsyncMock(return_value={"SENT": 1, "FAILED": 0})
    dispatcher.retry_failed_notifications = AsyncMock(return_value=3)
    dispatcher.update_status = AsyncMock()
    dispatcher.list_templates = AsyncMock(return_value=[])
    return dispatcher


@pytest.fixture
def app(dispatcher):
    """Create test FastAPI app."""
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(v1_router)
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


SEND_BODY = {
    "recipient_type": "PARENT",
    "recipient_contact": "parent@example.com",
    "channel": "EMAIL",
    "subject": "Progress update",
    "message": "Your child improved this week.",
}


class TestNotificationsAPIRouting:
    """Tests for notification API routing."""

    def test_routes_registered(self, app):
        routes = [route.path for route in app.routes]

        assert "/api/v1/notifications/send" in routes
        assert "/api/v1/notifications/send-bulk" in routes
        assert "/api/v1/notifications/send-templated" in routes
        assert "/api/v1/notifications/student/{student_id}" in routes
        assert "/api/v1/notifications/pending" in routes
        assert "/api/v1/notifications/logs" in routes
        assert "/api/v1/notifications/stats" in routes
        assert "/api/v1/notifications/retry-failed" in routes
        assert "/api/v1/notifications/{notification_id}/status" in routes
        assert "/api/v1/notifications/templates" in routes


class TestSend:
    """Tests for the send endpoints."""

    def test_send(self, client, dispatcher):
        response = client.post("/api/v1/notifications/send", json=SEND_BODY)

        assert response.status_code == 200
        assert response.json()["data"] == {"success": True, "notification_id": "ntf-1"}
        request = dispatcher.send.await_args.args[0]
        assert request.channel == NotificationChannel.EMAIL
        assert request.priority == NotificationPriority.NORMAL

    def test_send_record_failure(self, client, dispatcher):
        dispatcher.send.return_value = SendResult(success=False, error="disk full")

        response = client.post("/api/v1/notifications/send", json=SEND_BODY)

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "data": {"success": False, "error": "disk full"},
            "error": "disk full",
        }

    def test_send_unknown_channel(self, client, dispatcher):
        response = client.post(
            "/api/v1/notifications/send", json={**SEND_BODY, "channel": "PIGEON"}
        )

        assert response.status_code == 422
        dispatcher.send.assert_not_awaited()

    def test_bulk_reports_partial_failure(self, client, dispatcher):
        dispatcher.send_bulk.return_value = BulkSendResult(
            success=False,
            sent=1,
            failed=1,
            details=[
                SendResult(success=True, notification_id="ntf-1"),
                SendResult(success=False, error="constraint failed"),
            ],
        )

        response = client.post(
            "/api/v1/notifications/send-bulk",
            json={"notifications": [SEND_BODY, SEND_BODY]},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is False
        assert body["data"]["sent"] == 1
        assert body["data"]["failed"] == 1
        assert body["error"] == "1 of 2 notifications failed"
        assert len(dispatcher.send_bulk.await_args.args[0]) == 2

    def test_bulk_requires_items(self, client):
        response = client.post("/api/v1/notifications/send-bulk", json={"notifications": []})

        assert response.status_code == 422

    def test_templated(self, client, dispatcher):
        response = client.post(
            "/api/v1/notifications/send-templated",
            json={
                "template_name": "progress_update",
                "recipient_contact": "parent@example.com",
                "recipient_type": "PARENT",
                "variables": {"student_name": "Ada"},
            },
        )

        assert response.status_code == 200
        assert response.json()["data"]["notification_id"] == "ntf-2"
        kwargs = dispatcher.send_templated.await_args.kwargs
        assert kwargs["template_name"] == "progress_update"
        assert kwargs["variables"] == {"student_name": "Ada"}

    def test_templated_unknown_template(self, client, dispatcher):
        dispatcher.send_templated.return_value = SendResult(success=False, error=TEMPLATE_NOT_FOUND)

        response = client.post(
            "/api/v1/notifications/send-templated",
            json={
                "template_name": "missing",
                "recipient_contact": "parent@example.com",
                "recipient_type": "PARENT",
            },
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Template not found"


class TestNotificationQueries:
    """Tests for read endpoints, retry and status updates."""

    def test_student_notifications(self, client):
        response = client.get("/api/v1/notifications/student/student-1")

        data = response.json()["data"]
        assert data[0]["id"] == "ntf-1"
        assert data[0]["metadata"] == {"source": "test"}

    def test_logs_status_filter(self, client, dispatcher):
        client.get("/api/v1/notifications/logs", params={"status": "FAILED", "limit": 10})

        dispatcher.get_logs.assert_awaited_once_with(status=NotificationStatus.FAILED, limit=10)

    def test_stats(self, client):
        response = client.get("/api/v1/notifications/stats")

        assert response.json()["data"] == {"SENT": 1, "FAILED": 0}

    def test_retry_failed(self, client):
        response = client.post("/api/v1/notifications/retry-failed")

        assert response.json() == {"success": True, "data": {"retried": 3}, "error": None}

    def test_update_status(self, client, dispatcher):
        dispatcher.update_status.return_value = make_notification(status=NotificationStatus.READ)

        response = client.patch("/api/v1/notifications/ntf-1/status", json={"status": "READ"})

        assert response.json()["data"]["status"] == "READ"
        dispatcher.update_status.assert_awaited_once_with(
            "ntf-1",
            NotificationStatus.READ,
            failure_reason=None,
        )

    def test_backward_transition_is_conflict(self, client, dispatcher):
        dispatcher.update_status.side_effect = InvalidStatusTransitionError(
            "Cannot change notification ntf-1 from READ to SENT"
        )

        response = client.patch("/api/v1/notifications/ntf-1/status", json={"status": "SENT"})

        assert response.status_code == 409

    def test_update_missing_notification(self, client, dispatcher):
        dispatcher.update_status.side_effect = NotificationNotFoundError("Notification x not found")

        response = client.patch("/api/v1/notifications/x/status", json={"status": "READ"})

        assert response.status_code == 404

    def test_templates(self, client, dispatcher):
        dispatcher.list_templates.return_value = [
            NotificationTemplate(
                id="tpl-1",
                template_name="meeting_invitation",
                category=TemplateCategory.MEETING,
                channel=TemplateChannel.EMAIL,
                message_template="Meeting about {{studentName}} on {{meetingDate}}",
                is_active=True,
            )
        ]

        response = client.get("/api/v1/notifications/templates", params={"category": "MEETING"})

        data = response.json()["data"]
        assert data[0]["template_name"] == "meeting_invitation"
        assert data[0]["subject_template"] is None
        dispatcher.list_templates.assert_awaited_once_with(category=TemplateCategory.MEETING)
