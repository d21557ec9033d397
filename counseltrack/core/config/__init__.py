# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for CounselTrack.

Example:
    >>> from counseltrack.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from counseltrack.core.config.settings import (
    APISettings,
    CORSSettings,
    DatabaseSettings,
    EscalationSettings,
    LLMSettings,
    NotificationSettings,
    RateLimitSettings,
    Settings,
    SMTPSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "APISettings",
    "CORSSettings",
    "DatabaseSettings",
    "EscalationSettings",
    "LLMSettings",
    "NotificationSettings",
    "RateLimitSettings",
    "Settings",
    "SMTPSettings",
    "clear_settings_cache",
    "get_settings",
]
