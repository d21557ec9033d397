# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Default notification templates.

Seeding is idempotent: templates whose name already exists are left
untouched so local edits survive restarts.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from counseltrack.infrastructure.database.models.notification import (
    NotificationTemplate,
    TemplateCategory,
    TemplateChannel,
)

logger = logging.getLogger(__name__)


DEFAULT_TEMPLATES: list[dict] = [
    {
        "template_name": "risk_alert_parent",
        "category": TemplateCategory.RISK_ALERT,
        "channel": TemplateChannel.ALL,
        "subject_template": "Important update about {{studentName}}",
        "message_template": (
            "Dear {{parentName}},\n\n"
            "Our counseling team has raised a {{riskLevel}} {{alertType}} alert "
            "for {{studentName}}:\n\n{{description}}\n\n"
            "Please contact the counseling office at your earliest convenience.\n\n"
            "{{schoolName}} Counseling Office"
        ),
        "description": "Parent notice sent when a HIGH or CRITICAL alert is raised.",
    },
    {
        "template_name": "intervention_started",
        "category": TemplateCategory.INTERVENTION,
        "channel": TemplateChannel.EMAIL,
        "subject_template": "Support plan started for {{studentName}}",
        "message_template": (
            "Dear {{parentName}},\n\n"
            "A new support plan \"{{interventionTitle}}\" has started for "
            "{{studentName}} on {{startDate}}. The assigned counselor is "
            "{{counselorName}}."
        ),
        "description": "Sent to the parent when an intervention begins.",
    },
    {
        "template_name": "intervention_result",
        "category": TemplateCategory.INTERVENTION,
        "channel": TemplateChannel.IN_APP,
        "subject_template": "Intervention evaluated: {{interventionTitle}}",
        "message_template": (
            "{{interventionTitle}} for {{studentName}} was rated "
            "{{effectivenessLevel}} ({{overallEffectiveness}}/100)."
        ),
        "description": "Staff notice with the effectiveness outcome of an intervention.",
    },
    {
        "template_name": "progress_update",
        "category": TemplateCategory.PROGRESS,
        "channel": TemplateChannel.EMAIL,
        "subject_template": "Progress update for {{studentName}}",
        "message_template": (
            "Dear {{parentName}},\n\n{{studentName}} has made progress this "
            "period: {{summary}}"
        ),
        "description": "Ad hoc progress summary for parents.",
    },
    {
        "template_name": "meeting_invitation",
        "category": TemplateCategory.MEETING,
        "channel": TemplateChannel.EMAIL,
        "subject_template": "Meeting invitation: {{meetingTopic}}",
        "message_template": (
            "Dear {{parentName}},\n\n"
            "You are invited to a meeting about {{studentName}} on "
            "{{meetingDate}} at {{meetingTime}}.\n\nTopic: {{meetingTopic}}"
        ),
        "description": "Invites a parent to a meeting with the counseling team.",
    },
    {
        "template_name": "weekly_digest",
        "category": TemplateCategory.DIGEST,
        "channel": TemplateChannel.EMAIL,
        "subject_template": "Weekly progress for {{studentName}}",
        "message_template": (
            "Dear {{parentName}},\n\n"
            "Here is this week's progress for {{studentName}}:\n\n"
            "{{progressSummary}}"
        ),
        "description": "Weekly progress digest for parents who opted in.",
    },
]


async def seed_notification_templates(session: AsyncSession) -> int:
    """Insert any default template that does not exist yet.

    Args:
        session: Database session.

    Returns:
        Number of templates created.
    """
    result = await session.execute(select(NotificationTemplate.template_name))
    existing = set(result.scalars().all())

    created = 0
    for data in DEFAULT_TEMPLATES:
        if data["template_name"] in existing:
            continue
        session.add(NotificationTemplate(is_active=True, **data))
        created += 1

    if created:
        await session.commit()
        logger.info("Seeded %d notification templates", created)

    return created
