# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification API endpoints.

Example:
    POST /api/v1/notifications/send
    POST /api/v1/notifications/send-templated
    PATCH /api/v1/notifications/{notification_id}/status
    POST /api/v1/notifications/alert-notification
    POST /api/v1/notifications/preferences
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from counseltrack.api.dependencies import get_dispatcher, get_notification_rules
from counseltrack.api.schemas import ApiResponse, fail, ok
from counseltrack.infrastructure.database.models.notification import (
    NotificationStatus,
    RecipientType,
    TemplateCategory,
)
from counseltrack.infrastructure.notifications.schemas import (
    AlertNotificationRequest,
    InterventionNotificationRequest,
    MeetingInvitationRequest,
    NotificationResponse,
    PreferenceRequest,
    PreferenceResponse,
    SendBulkRequest,
    SendNotificationRequest,
    SendTemplatedRequest,
    TemplateResponse,
    UpdateStatusRequest,
    WeeklyDigestRequest,
)
from counseltrack.infrastructure.notifications.rules import NotificationRulesService
from counseltrack.infrastructure.notifications.service import (
    TEMPLATE_NOT_FOUND,
    NotificationDispatcher,
    SendResult,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _send_response(result: SendResult) -> Any:
    """Envelope for a single send; failures keep the result as data."""
    if result.success:
        return ok(result.to_dict())
    code = (
        status.HTTP_404_NOT_FOUND
        if result.error == TEMPLATE_NOT_FOUND
        else status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return JSONResponse(status_code=code, content=fail(result.error or "Send failed", data=result.to_dict()))


@router.post("/send", response_model=ApiResponse[dict[str, Any]])
async def send_notification(
    request: SendNotificationRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Any:
    """Record and dispatch one notification."""
    return _send_response(await dispatcher.send(request.to_request()))


@router.post("/send-bulk", response_model=ApiResponse[dict[str, Any]])
async def send_bulk(
    request: SendBulkRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Send several notifications one after another."""
    result = await dispatcher.send_bulk([n.to_request() for n in request.notifications])
    if result.success:
        return ok(result.to_dict())
    total = result.sent + result.failed
    return fail(f"{result.failed} of {total} notifications failed", data=result.to_dict())


@router.post("/send-templated", response_model=ApiResponse[dict[str, Any]])
async def send_templated(
    request: SendTemplatedRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Any:
    """Render a stored template and send it."""
    result = await dispatcher.send_templated(
        template_name=request.template_name,
        recipient_contact=request.recipient_contact,
        recipient_type=request.recipient_type,
        variables=request.variables,
        recipient_name=request.recipient_name,
        priority=request.priority,
        student_id=request.student_id,
        alert_id=request.alert_id,
        intervention_id=request.intervention_id,
        metadata=request.metadata,
    )
    return _send_response(result)


@router.get("/student/{student_id}", response_model=ApiResponse[list[NotificationResponse]])
async def student_notifications(
    student_id: str,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Notifications about one student."""
    records = await dispatcher.get_by_student(student_id)
    return ok([NotificationResponse.model_validate(r) for r in records])


@router.get("/pending", response_model=ApiResponse[list[NotificationResponse]])
async def pending_notifications(
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Notifications still waiting for dispatch."""
    records = await dispatcher.get_pending()
    return ok([NotificationResponse.model_validate(r) for r in records])


@router.get("/logs", response_model=ApiResponse[list[NotificationResponse]])
async def notification_logs(
    status_filter: NotificationStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=1000),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Recent notifications, optionally filtered by status."""
    records = await dispatcher.get_logs(status=status_filter, limit=limit)
    return ok([NotificationResponse.model_validate(r) for r in records])


@router.get("/stats", response_model=ApiResponse[dict[str, int]])
async def notification_stats(
    date_from: datetime | None = Query(default=None),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Count notifications per status."""
    return ok(await dispatcher.get_stats(date_from=date_from))


@router.post("/retry-failed", response_model=ApiResponse[dict[str, int]])
async def retry_failed(
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Re-dispatch recent FAILED notifications."""
    retried = await dispatcher.retry_failed_notifications()
    return ok({"retried": retried})


@router.patch("/{notification_id}/status", response_model=ApiResponse[NotificationResponse])
async def update_notification_status(
    notification_id: str,
    request: UpdateStatusRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Move a notification forward in its lifecycle."""
    record = await dispatcher.update_status(
        notification_id,
        request.status,
        failure_reason=request.failure_reason,
    )
    return ok(NotificationResponse.model_validate(record))


@router.get("/templates", response_model=ApiResponse[list[TemplateResponse]])
async def list_templates(
    category: TemplateCategory | None = Query(default=None),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Active notification templates."""
    templates = await dispatcher.list_templates(category=category)
    return ok([TemplateResponse.model_validate(t) for t in templates])


# =============================================================================
# Parent notification rules
# =============================================================================


@router.post("/alert-notification", response_model=ApiResponse[dict[str, Any]])
async def alert_notification(
    request: AlertNotificationRequest,
    rules: NotificationRulesService = Depends(get_notification_rules),
) -> dict[str, Any]:
    """Notify the parent and counselor about a raised alert."""
    outcome = await rules.process_alert_notifications(request.to_notice())
    return ok(outcome.to_dict())


@router.post("/intervention-notification", response_model=ApiResponse[dict[str, Any]])
async def intervention_notification(
    request: InterventionNotificationRequest,
    rules: NotificationRulesService = Depends(get_notification_rules),
) -> dict[str, Any]:
    """Tell the parent that an intervention started."""
    outcome = await rules.process_intervention_notifications(**request.model_dump())
    return ok(outcome.to_dict())


@router.post("/weekly-digest/{student_id}", response_model=ApiResponse[dict[str, Any]])
async def weekly_digest(
    student_id: str,
    request: WeeklyDigestRequest,
    rules: NotificationRulesService = Depends(get_notification_rules),
) -> dict[str, Any]:
    """Send one student's weekly progress digest."""
    outcome = await rules.send_weekly_digest(student_id=student_id, **request.model_dump())
    return ok(outcome.to_dict())


@router.post("/meeting-invitation", response_model=ApiResponse[dict[str, Any]])
async def meeting_invitation(
    request: MeetingInvitationRequest,
    rules: NotificationRulesService = Depends(get_notification_rules),
) -> dict[str, Any]:
    """Invite a parent to a meeting."""
    outcome = await rules.schedule_meeting_invitation(**request.model_dump())
    return ok(outcome.to_dict())


@router.get("/preferences/{user_id}", response_model=ApiResponse[PreferenceResponse])
async def get_preference(
    user_id: str,
    user_type: RecipientType = Query(default=RecipientType.PARENT),
    rules: NotificationRulesService = Depends(get_notification_rules),
) -> Any:
    """Stored notification preference of one user."""
    preference = await rules.get_preference(user_id, user_type)
    if preference is None:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=fail("Preference not found"))
    return ok(PreferenceResponse.model_validate(preference))


@router.post("/preferences", response_model=ApiResponse[PreferenceResponse])
async def save_preference(
    request: PreferenceRequest,
    rules: NotificationRulesService = Depends(get_notification_rules),
) -> dict[str, Any]:
    """Create or update a notification preference."""
    preference = await rules.save_preference(
        request.user_id,
        request.user_type,
        student_id=request.student_id,
        **request.changes(),
    )
    return ok(PreferenceResponse.model_validate(preference))
