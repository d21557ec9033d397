# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exception handlers mapping domain errors to response envelopes.

- not found: 404
- duplicate, already-ended, illegal transition, concurrent update: 409
- invalid input: 422
- anything else: 500
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from counseltrack.api.schemas import fail
from counseltrack.domains.escalation.service import (
    EscalationConflictError,
    EscalationNotFoundError,
    EscalationServiceError,
    InvalidEscalationTransitionError,
)
from counseltrack.domains.intervention.feedback import (
    FeedbackNotFoundError,
    InvalidFeedbackTransitionError,
)
from counseltrack.domains.intervention.service import (
    InterventionAlreadyEvaluatedError,
    InterventionAlreadyTrackedError,
    InterventionNotEvaluatedError,
    InterventionNotFoundError,
    InterventionServiceError,
    InvalidInterventionDatesError,
)
from counseltrack.infrastructure.database.connection import DatabaseError
from counseltrack.infrastructure.notifications.service import (
    InvalidStatusTransitionError,
    NotificationNotFoundError,
    NotificationServiceError,
)

logger = logging.getLogger(__name__)

# Checked in order; first match wins.
ERROR_STATUS_CODES: tuple[tuple[type[Exception], int], ...] = (
    (InterventionNotFoundError, status.HTTP_404_NOT_FOUND),
    (EscalationNotFoundError, status.HTTP_404_NOT_FOUND),
    (NotificationNotFoundError, status.HTTP_404_NOT_FOUND),
    (FeedbackNotFoundError, status.HTTP_404_NOT_FOUND),
    (InterventionAlreadyTrackedError, status.HTTP_409_CONFLICT),
    (InterventionAlreadyEvaluatedError, status.HTTP_409_CONFLICT),
    (InterventionNotEvaluatedError, status.HTTP_409_CONFLICT),
    (InvalidEscalationTransitionError, status.HTTP_409_CONFLICT),
    (EscalationConflictError, status.HTTP_409_CONFLICT),
    (InvalidStatusTransitionError, status.HTTP_409_CONFLICT),
    (InvalidFeedbackTransitionError, status.HTTP_409_CONFLICT),
    (InvalidInterventionDatesError, status.HTTP_422_UNPROCESSABLE_ENTITY),
)


def status_code_for(exc: Exception) -> int:
    """HTTP status for a domain exception."""
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a domain exception as an error envelope."""
    code = status_code_for(exc)
    if code >= 500:
        logger.error("Unhandled domain error on %s: %s", request.url.path, str(exc))
    else:
        logger.info("Request to %s rejected: %s", request.url.path, str(exc))
    return JSONResponse(status_code=code, content=fail(str(exc)))


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error("Database error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=fail("Database error"),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    message = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', []))}: {error.get('msg')}"
        for error in errors
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=fail(message or "Invalid request", data=errors),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=fail(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=fail("Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope exception handlers on an application."""
    for base in (InterventionServiceError, EscalationServiceError, NotificationServiceError):
        app.add_exception_handler(base, domain_error_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
