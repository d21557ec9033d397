# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for CounselTrack.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
"""

from counseltrack.utils.datetime import (
    days_ago,
    ensure_utc,
    format_iso,
    hours_ago,
    hours_since,
    minutes_since,
    time_since,
    to_date,
    utc_now,
    whole_days_between,
)
from counseltrack.utils.logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Datetime
    "utc_now",
    "ensure_utc",
    "days_ago",
    "hours_ago",
    "time_since",
    "hours_since",
    "minutes_since",
    "whole_days_between",
    "to_date",
    "format_iso",
]
