# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Response envelope shared by every endpoint.

Every body has the shape {"success": bool, "data": ..., "error": ...}.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard response envelope."""

    success: bool = Field(default=True, description="Whether the operation succeeded")
    data: T | None = Field(default=None, description="Payload")
    error: str | None = Field(default=None, description="Error message when success is false")


def ok(data: Any = None) -> dict[str, Any]:
    """Build a success envelope."""
    return {"success": True, "data": data, "error": None}


def fail(error: str, data: Any = None) -> dict[str, Any]:
    """Build an error envelope."""
    return {"success": False, "data": data, "error": error}
