"""
Reconciliation Package

Decides whether an invoice produces a ledger movement and writes it exactly
once.

Features:
- VAT arithmetic (from net / from gross, natura codes)
- Invoice classification by SDI document type
- Movement materialization with field-level validation
- Linkage detection against existing movements
- Single, bulk and full-resync synchronization

Usage:
    from reconciliation import Synchronizer, SyncConfig, SyncOptions

    synchronizer = Synchronizer(repository, SyncConfig.from_settings(settings))
    result = synchronizer.sync_one("inv-001", SyncOptions(force_create=False))
"""

from .vat import (
    VatBreakdown,
    from_gross,
    from_net,
    is_exempt,
    is_reverse_charge,
    regime_description,
    round2,
    validate_vat_code,
)

from .classifier import (
    AUTO_INVOICE_REASON,
    Classification,
    classify,
)

from .materializer import (
    MovementDefaults,
    MovementOverrides,
    ValidationResult,
    build_analysis,
    extract_vat_code_id,
    materialize,
    signed_amount,
    validate,
)

from .linkage import (
    find_linked_movement,
    is_linked,
)

from .engine import (
    BulkSyncSummary,
    SkipReason,
    SyncConfig,
    SyncOptions,
    SyncOutcome,
    SyncResult,
    Synchronizer,
    build_synchronizer,
)

__all__ = [
    # VAT
    "VatBreakdown",
    "from_gross",
    "from_net",
    "is_exempt",
    "is_reverse_charge",
    "regime_description",
    "round2",
    "validate_vat_code",
    # Classification
    "AUTO_INVOICE_REASON",
    "Classification",
    "classify",
    # Materialization
    "MovementDefaults",
    "MovementOverrides",
    "ValidationResult",
    "build_analysis",
    "extract_vat_code_id",
    "materialize",
    "signed_amount",
    "validate",
    # Linkage
    "find_linked_movement",
    "is_linked",
    # Synchronization
    "BulkSyncSummary",
    "SkipReason",
    "SyncConfig",
    "SyncOptions",
    "SyncOutcome",
    "SyncResult",
    "Synchronizer",
    "build_synchronizer",
]
