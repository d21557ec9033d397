# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background job scheduling for CounselTrack."""

from counseltrack.infrastructure.background.scheduler import (
    JobScheduler,
    ScheduledJob,
    get_scheduler,
    run_escalation_sweep,
    run_notification_retry,
    start_scheduler,
    stop_scheduler,
)

__all__ = [
    "JobScheduler",
    "ScheduledJob",
    "get_scheduler",
    "run_escalation_sweep",
    "run_notification_retry",
    "start_scheduler",
    "stop_scheduler",
]
