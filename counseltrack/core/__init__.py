# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for CounselTrack.

- config: Application configuration and settings
- intelligence: LLM access used for narrative analysis
"""
