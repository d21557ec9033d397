# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""LLM client module using LiteLLM.

Example:
    >>> from counseltrack.core.intelligence.llm import LLMClient
    >>> client = LLMClient()
    >>> client.is_available()
    False
"""

from counseltrack.core.intelligence.llm.client import (
    LLMClient,
    LLMError,
    LLMResponse,
    TextGenerator,
)

__all__ = [
    "LLMClient",
    "LLMError",
    "LLMResponse",
    "TextGenerator",
]
