"""Mapping from reconciliation errors to HTTP answers.

Single-item endpoints surface the specific error kind. Bulk endpoints never
go through here: their per-item errors are embedded in a 200 body.
"""

from typing import List, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from core.errors import (
    AlreadyLinkedError,
    ErrorKind,
    FieldError,
    ReconciliationError,
    ValidationError,
)
from core.observability.logging import get_logger
from models.api_responses import ErrorResponse, FieldErrorResponse


logger = get_logger(__name__)


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.INVALID_VAT_CODE: 400,
    ErrorKind.INVOICE_NOT_FOUND: 404,
    ErrorKind.VAT_CODE_NOT_FOUND: 404,
    ErrorKind.ALREADY_LINKED: 409,
    ErrorKind.REPOSITORY: 503,
}


def error_response(
    kind: ErrorKind,
    message: str,
    field_errors: Optional[List[FieldError]] = None,
    existing_movement_id: Optional[str] = None,
) -> JSONResponse:
    """Build the JSON answer for an error kind."""
    body = ErrorResponse(
        error=kind.value,
        message=message,
        field_errors=[
            FieldErrorResponse(field=e.field, message=e.message)
            for e in (field_errors or [])
        ],
        existing_movement_id=existing_movement_id,
    )
    return JSONResponse(
        status_code=STATUS_BY_KIND[kind],
        content=body.model_dump(mode="json", by_alias=True),
    )


async def reconciliation_error_handler(request: Request, exc: ReconciliationError) -> JSONResponse:
    """Handle ReconciliationError raised out of a route."""
    if exc.kind is ErrorKind.REPOSITORY:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")

    field_errors = exc.field_errors if isinstance(exc, ValidationError) else None
    existing = exc.existing_movement_id if isinstance(exc, AlreadyLinkedError) else None
    return error_response(exc.kind, exc.message, field_errors, existing)
