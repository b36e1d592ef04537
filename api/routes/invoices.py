"""Invoice endpoints.

Turns invoices into ledger movements, one at a time, in bulk, or as a full
resync of every stored invoice.
"""

from typing import Optional, Union

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from api.dependencies import get_synchronizer
from api.errors import error_response
from core.errors import ErrorKind, FieldError
from models.api_responses import (
    AnalysisResponse,
    BulkCreateMovementsRequest,
    BulkSyncResponse,
    CreateMovementRequest,
    CreateMovementResponse,
    ErrorResponse,
    MovementOptionsRequest,
    MovementPreviewResponse,
    SkippedResponse,
)
from reconciliation.engine import SkipReason, SyncOptions, SyncOutcome, Synchronizer


router = APIRouter()


def _to_options(body: Optional[MovementOptionsRequest]) -> SyncOptions:
    if body is None:
        return SyncOptions()
    return SyncOptions(
        force_create=body.force_create,
        core_id=body.core_id,
        status_id=body.status_id,
        reason_id=body.reason_id,
        additional_notes=body.additional_notes,
    )


@router.post(
    "/bulk-create-movements",
    response_model=BulkSyncResponse,
    responses={400: {"model": ErrorResponse}},
)
async def bulk_create_movements(
    body: BulkCreateMovementsRequest,
    synchronizer: Synchronizer = Depends(get_synchronizer),
) -> Union[BulkSyncResponse, JSONResponse]:
    """Create movements for a list of invoices.

    Always 200 once the request is well formed; per-invoice failures are
    embedded in the results.
    """
    if not body.invoice_ids:
        return error_response(
            ErrorKind.VALIDATION,
            "invoiceIds must be a non-empty list",
            [FieldError("invoiceIds", "is required")],
        )

    summary = synchronizer.sync_many(body.invoice_ids, _to_options(body.options))
    return BulkSyncResponse.model_validate(summary.to_dict())


@router.post(
    "/sync-existing",
    response_model=BulkSyncResponse,
    responses={503: {"model": ErrorResponse}},
)
async def sync_existing(
    body: Optional[MovementOptionsRequest] = Body(None),
    synchronizer: Synchronizer = Depends(get_synchronizer),
) -> BulkSyncResponse:
    """Synchronize every stored invoice. Safe to call repeatedly."""
    summary = synchronizer.sync_all_existing(_to_options(body))
    return BulkSyncResponse.model_validate(summary.to_dict())


@router.post(
    "/{invoice_id}/create-movement",
    response_model=CreateMovementResponse,
    status_code=201,
    responses={
        200: {"model": SkippedResponse},
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def create_movement(
    invoice_id: str,
    body: Optional[CreateMovementRequest] = Body(None),
    synchronizer: Synchronizer = Depends(get_synchronizer),
) -> Union[CreateMovementResponse, JSONResponse]:
    """Create the ledger movement for one invoice."""
    result = synchronizer.sync_one(invoice_id, _to_options(body))

    if result.outcome is SyncOutcome.CREATED:
        return CreateMovementResponse.model_validate({
            "movement": result.movement.model_dump(mode="json"),
            "analysis": result.analysis,
        })

    if result.skip_reason is SkipReason.POLICY:
        skipped = SkippedResponse(
            reason=result.reason,
            analysis=AnalysisResponse.model_validate(result.analysis) if result.analysis else None,
        )
        return JSONResponse(status_code=200, content=skipped.model_dump(mode="json", by_alias=True))

    if result.skip_reason is SkipReason.ALREADY_LINKED:
        return error_response(
            ErrorKind.ALREADY_LINKED,
            f"Invoice {invoice_id} is already linked to movement {result.existing_movement_id}",
            existing_movement_id=result.existing_movement_id,
        )

    return error_response(result.error_kind, result.reason, result.field_errors)


@router.get(
    "/{invoice_id}/movement-preview",
    response_model=MovementPreviewResponse,
    responses={404: {"model": ErrorResponse}, 400: {"model": ErrorResponse}},
)
async def movement_preview(
    invoice_id: str,
    force_create: bool = Query(False, alias="forceCreate"),
    synchronizer: Synchronizer = Depends(get_synchronizer),
) -> MovementPreviewResponse:
    """Show the movement create-movement would produce, without writing."""
    preview = synchronizer.preview(invoice_id, SyncOptions(force_create=force_create))
    return MovementPreviewResponse.model_validate(preview)
