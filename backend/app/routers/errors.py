"""Translate billing service failures into HTTP responses."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse

from ..repositories import PersistenceError
from ..services.billing_lifecycle import (
    BillingAuthorizationError,
    BillingLifecycleError,
    BillingNotFoundError,
    BillingStateConflictError,
    BillingValidationError,
)

GENERIC_DATABASE_ERROR = "A database error occurred. Please try again later."

_STATUS_BY_ERROR: tuple[tuple[type[BillingLifecycleError], int], ...] = (
    (BillingValidationError, status.HTTP_400_BAD_REQUEST),
    (BillingAuthorizationError, status.HTTP_403_FORBIDDEN),
    # Invoice and item state preconditions are reported as forbidden.
    (BillingStateConflictError, status.HTTP_403_FORBIDDEN),
    (BillingNotFoundError, status.HTTP_404_NOT_FOUND),
)


def http_error_for(exc: BillingLifecycleError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            detail: Any = str(exc)
            if isinstance(exc, BillingValidationError) and exc.field:
                detail = {"message": str(exc), "field": exc.field}
            return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def persistence_failure(logger: logging.Logger, message: str, exc: PersistenceError, **context: Any) -> JSONResponse:
    """Log the full failure server-side and answer with a generic 500."""

    logger.exception(message, exc_info=exc, extra=context)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": GENERIC_DATABASE_ERROR},
    )
