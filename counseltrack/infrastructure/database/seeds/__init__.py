# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database seed package.

- templates: Default notification templates
"""

from counseltrack.infrastructure.database.seeds.templates import (
    DEFAULT_TEMPLATES,
    seed_notification_templates,
)

__all__ = ["DEFAULT_TEMPLATES", "seed_notification_templates"]
