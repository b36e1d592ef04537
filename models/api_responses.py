"""
API request and response models for the reconciliation HTTP surface.

All JSON is camelCase on the wire (forceCreate, existingMovementId, ...)
and snake_case in Python. Decimal amounts serialize as strings so no
precision is lost to floats.

Hierarchy:
- CreateMovementRequest / BulkCreateMovementsRequest: sync options
- CreateMovementResponse / SkippedResponse: single invoice outcomes
- BulkSyncResponse: summary counts, per-invoice results, error entries
- MovementPreviewResponse: dry-run payload
- VatCalculationRequest / VatCalculationResponse / VatCodeResponse
- ErrorResponse: every non-2xx body
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.models.canonical import DecimalValue


# =============================================================================
# BASE MODELS
# =============================================================================

class ApiModel(BaseModel):
    """Base class for all API payloads."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# REQUESTS
# =============================================================================

class MovementOptionsRequest(ApiModel):
    """Options accepted by every movement-creating endpoint."""
    force_create: bool = False
    core_id: Optional[str] = None
    status_id: Optional[str] = None
    reason_id: Optional[str] = None
    additional_notes: Optional[str] = None


class CreateMovementRequest(MovementOptionsRequest):
    """Body of POST /invoices/{id}/create-movement."""


class BulkCreateMovementsRequest(ApiModel):
    """Body of POST /invoices/bulk-create-movements.

    invoice_ids is optional at the schema level so a missing list is
    answered with the same 400 as an empty one.
    """
    invoice_ids: Optional[List[str]] = None
    options: Optional[MovementOptionsRequest] = None


class VatCalculationRequest(ApiModel):
    """Body of POST /vat/calculate."""
    amount: DecimalValue
    vat_code_id: str
    calculation_type: Literal["from_imponibile", "from_totale"] = "from_imponibile"


# =============================================================================
# SHARED PIECES
# =============================================================================

class FieldErrorResponse(ApiModel):
    field: str
    message: str


class ClassificationResponse(ApiModel):
    should_skip: bool
    direction: str
    is_negative_amount: bool
    kind: str
    reason: Optional[str] = None


class AnalysisResponse(ApiModel):
    """Before/after view of an invoice turned into a movement."""
    classification: ClassificationResponse
    original_amount: Optional[str] = None
    movement_amount: Optional[str] = None
    vat_code_id: Optional[str] = None
    net_amount: Optional[str] = None
    vat_amount: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class MovementDraftResponse(ApiModel):
    type: str
    amount: Decimal
    company_id: str
    core_id: str
    status_id: str
    reason_id: str
    insert_date: date
    flow_date: date
    vat_code_id: Optional[str] = None
    source_invoice_id: Optional[str] = None
    document_number: Optional[str] = None
    notes: Optional[str] = None
    net_amount: Optional[Decimal] = None
    vat_amount: Optional[Decimal] = None
    customer_id: Optional[str] = None
    supplier_id: Optional[str] = None
    is_forced: bool = False


class MovementResponse(MovementDraftResponse):
    id: str
    created_at: Optional[datetime] = None


# =============================================================================
# SYNC RESPONSES
# =============================================================================

class CreateMovementResponse(ApiModel):
    """201 answer of create-movement."""
    movement: MovementResponse
    analysis: AnalysisResponse


class SkippedResponse(ApiModel):
    """200 answer of create-movement when the invoice is skipped by policy."""
    skipped: bool = True
    reason: Optional[str] = None
    analysis: Optional[AnalysisResponse] = None


class SyncResultResponse(ApiModel):
    invoice_id: str
    outcome: Literal["created", "skipped", "error"]
    movement_id: Optional[str] = None
    reason: Optional[str] = None
    error_kind: Optional[str] = None
    field_errors: List[FieldErrorResponse] = Field(default_factory=list)
    existing_movement_id: Optional[str] = None
    skip_reason: Optional[str] = None
    classification: Optional[ClassificationResponse] = None


class BulkSummaryCounts(ApiModel):
    total: int
    successful: int
    skipped: int
    errors: int


class BulkErrorEntry(ApiModel):
    invoice_id: str
    error_kind: Optional[str] = None
    reason: Optional[str] = None
    field_errors: List[FieldErrorResponse] = Field(default_factory=list)


class BulkSyncResponse(ApiModel):
    """Answer of the bulk and full-resync endpoints. Always 200."""
    summary: BulkSummaryCounts
    results: List[SyncResultResponse] = Field(default_factory=list)
    errors: List[BulkErrorEntry] = Field(default_factory=list)


class ValidationResponse(ApiModel):
    is_valid: bool
    errors: List[FieldErrorResponse] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class MovementPreviewResponse(ApiModel):
    """What create-movement would do, without writing."""
    invoice_id: str
    validation: ValidationResponse
    classification: Optional[ClassificationResponse] = None
    linked_movement_id: Optional[str] = None
    would_create: bool = False
    movement: Optional[MovementDraftResponse] = None
    analysis: Optional[AnalysisResponse] = None


# =============================================================================
# VAT
# =============================================================================

class VatCodeResponse(ApiModel):
    id: str
    code: str
    percentage: Decimal
    natura: Optional[str] = None
    description: str = ""
    is_active: bool = True
    regime: str


class VatCalculationResponse(ApiModel):
    net: Decimal
    vat: Decimal
    gross: Decimal
    vat_code: VatCodeResponse
    regime: str


# =============================================================================
# ERRORS
# =============================================================================

class ErrorResponse(ApiModel):
    """Body of every non-2xx answer raised by the engine."""
    error: str
    message: str
    field_errors: List[FieldErrorResponse] = Field(default_factory=list)
    existing_movement_id: Optional[str] = None
