# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Business domains.

- intervention: effectiveness tracking and analysis
- escalation: the unresolved-situation escalation ladder
"""
