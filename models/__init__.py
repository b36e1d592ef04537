"""Models Package.

API request/response models for the reconciliation HTTP surface. Domain
models (Invoice, VatCode, Movement) live in core.models.
"""

from models.api_responses import (
    # Requests
    MovementOptionsRequest,
    CreateMovementRequest,
    BulkCreateMovementsRequest,
    VatCalculationRequest,

    # Shared
    FieldErrorResponse,
    ClassificationResponse,
    AnalysisResponse,
    MovementDraftResponse,
    MovementResponse,

    # Sync
    CreateMovementResponse,
    SkippedResponse,
    SyncResultResponse,
    BulkSummaryCounts,
    BulkErrorEntry,
    BulkSyncResponse,
    ValidationResponse,
    MovementPreviewResponse,

    # VAT
    VatCodeResponse,
    VatCalculationResponse,

    # Errors
    ErrorResponse,
)

__all__ = [
    "MovementOptionsRequest",
    "CreateMovementRequest",
    "BulkCreateMovementsRequest",
    "VatCalculationRequest",
    "FieldErrorResponse",
    "ClassificationResponse",
    "AnalysisResponse",
    "MovementDraftResponse",
    "MovementResponse",
    "CreateMovementResponse",
    "SkippedResponse",
    "SyncResultResponse",
    "BulkSummaryCounts",
    "BulkErrorEntry",
    "BulkSyncResponse",
    "ValidationResponse",
    "MovementPreviewResponse",
    "VatCodeResponse",
    "VatCalculationResponse",
    "ErrorResponse",
]
