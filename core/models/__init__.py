"""Core data models - invoices, VAT codes and ledger movements."""

from core.models.canonical import (
    # Base
    CanonicalBase,
    DecimalValue,
    DateValue,

    # Enums
    Direction,
    MovementType,
    InvoiceKind,
    INVOICE_TYPE_CODES,
    DIRECTION_TO_MOVEMENT_TYPE,

    # Reference data
    VatCode,

    # Invoice
    Invoice,
    InvoiceLine,

    # Movement
    MovementDraft,
    Movement,
)

__all__ = [
    "CanonicalBase",
    "DecimalValue",
    "DateValue",
    "Direction",
    "MovementType",
    "InvoiceKind",
    "INVOICE_TYPE_CODES",
    "DIRECTION_TO_MOVEMENT_TYPE",
    "VatCode",
    "Invoice",
    "InvoiceLine",
    "MovementDraft",
    "Movement",
]
