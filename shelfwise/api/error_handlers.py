"""Error Handlers - map exceptions to the JSON error envelope.

Invariants:
    - ShelfwiseError -> its own http_status and to_response() envelope
    - RequestValidationError -> 400 VALIDATION_ERROR with one entry per field
    - Any other exception -> 500 INTERNAL_ERROR; the message never echoes internals

Design Decisions:
    - Caller mistakes (4xx) log at WARNING; only 5xx log at ERROR with traceback
    - Field paths drop the leading "body"/"query" segment: clients see
      "bonus_points", not "body.bonus_points"
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shelfwise.core.errors import ErrorCategory, ErrorSeverity, ShelfwiseError

logger = logging.getLogger(__name__)

_REQUEST_PARTS = {"body", "query", "path", "header"}


async def handle_shelfwise_error(request: Request, exc: ShelfwiseError) -> JSONResponse:
    level = logging.ERROR if exc.http_status >= 500 else logging.WARNING
    logger.log(
        level,
        f"{exc.code} on {request.method} {request.url.path}: {exc.message}",
        extra={
            "error_code": exc.code,
            "path": request.url.path,
            "patron_barcode": exc.context.patron_barcode,
            "item_barcode": exc.context.item_barcode,
        },
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def handle_validation_error(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    details = [_field_error(e) for e in exc.errors()]
    logger.warning(
        f"Rejected request to {request.url.path}: "
        + ", ".join(d["field"] for d in details),
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request data",
                "category": ErrorCategory.VALIDATION.value,
                "severity": ErrorSeverity.ERROR.value,
                "details": details,
            },
        },
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
        extra={"error_code": "INTERNAL_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "category": ErrorCategory.INTERNAL.value,
                "severity": ErrorSeverity.CRITICAL.value,
            },
        },
    )


def _field_error(error: dict) -> dict:
    loc = [str(part) for part in error.get("loc", ())]
    if loc and loc[0] in _REQUEST_PARTS:
        loc = loc[1:]
    return {
        "field": ".".join(loc) or "request",
        "message": error.get("msg", ""),
        "type": error.get("type", ""),
    }


def register_error_handlers(app: FastAPI) -> None:
    """Domain errors first, then request validation, then the catch-all."""
    app.add_exception_handler(ShelfwiseError, handle_shelfwise_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
