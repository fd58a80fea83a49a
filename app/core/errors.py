# app/core/errors.py
from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ReviewError(Exception):
    """
    Base class for analytical review domain errors.
    Services raise these; the HTTP layer maps them to status codes.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "review_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ReviewError, LookupError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class ConflictError(ReviewError):
    """
    Duplicate review for an engagement, or a lost concurrent update.
    existing_id is set when a review already exists so callers can redirect.
    """

    status_code = status.HTTP_409_CONFLICT
    error_type = "conflict"

    def __init__(self, message: str, existing_id: Optional[uuid.UUID] = None):
        super().__init__(message)
        self.existing_id = existing_id


class ForbiddenError(ReviewError, PermissionError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "forbidden"


class InvalidArgumentError(ReviewError, ValueError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "invalid_argument"


async def review_error_handler(request: Request, exc: ReviewError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Unhandled review error: %s", exc.message)
    else:
        logger.warning(
            "%s: %s",
            type(exc).__name__,
            exc.message,
            extra={"request_id": getattr(request.state, "request_id", None)},
        )

    content = {"detail": exc.message, "type": exc.error_type}
    if isinstance(exc, ConflictError) and exc.existing_id is not None:
        content["analyticalReviewId"] = str(exc.existing_id)

    return JSONResponse(status_code=exc.status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReviewError, review_error_handler)
