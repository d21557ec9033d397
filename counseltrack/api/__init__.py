# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP API for CounselTrack."""

from counseltrack.api.app import create_app

__all__ = ["create_app"]
