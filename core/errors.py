"""Error taxonomy for the reconciliation engine.

Every error carries an ErrorKind tag so that bulk operations can record the
kind on a per-item SyncResult and single-item routes can map it to an HTTP
status without isinstance chains.

Policy skips (self-billed invoices) are NOT errors - they are reported as a
skipped SyncResult with skip_reason="policy".
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Classification of reconciliation failures."""
    VALIDATION = "validation"
    ALREADY_LINKED = "already_linked"
    INVALID_VAT_CODE = "invalid_vat_code"
    INVOICE_NOT_FOUND = "invoice_not_found"
    VAT_CODE_NOT_FOUND = "vat_code_not_found"
    REPOSITORY = "repository"


@dataclass
class FieldError:
    """A single field-level validation failure."""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class ReconciliationError(Exception):
    """Base exception for all reconciliation failures."""

    kind: ErrorKind = ErrorKind.REPOSITORY

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


class ValidationError(ReconciliationError):
    """Raised when an invoice is malformed or incomplete."""

    kind = ErrorKind.VALIDATION

    def __init__(self, invoice_id: str, field_errors: List[FieldError]):
        fields = ", ".join(e.field for e in field_errors)
        super().__init__(f"Invoice {invoice_id} failed validation: {fields}")
        self.invoice_id = invoice_id
        self.field_errors = field_errors

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["field_errors"] = [e.to_dict() for e in self.field_errors]
        return data


class AlreadyLinkedError(ReconciliationError):
    """Raised when a non-forced movement already exists for an invoice."""

    kind = ErrorKind.ALREADY_LINKED

    def __init__(self, invoice_id: str, existing_movement_id: Optional[str]):
        super().__init__(
            f"Invoice {invoice_id} is already linked to movement {existing_movement_id}"
        )
        self.invoice_id = invoice_id
        self.existing_movement_id = existing_movement_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["existing_movement_id"] = self.existing_movement_id
        return data


class InvalidVatCodeError(ReconciliationError):
    """Raised when a VAT code definition is self-contradictory."""

    kind = ErrorKind.INVALID_VAT_CODE

    def __init__(self, vat_code_id: Optional[str], detail: str):
        super().__init__(f"VAT code {vat_code_id} is invalid: {detail}")
        self.vat_code_id = vat_code_id
        self.detail = detail


class InvoiceNotFoundError(ReconciliationError):
    """Raised when an invoice id does not resolve."""

    kind = ErrorKind.INVOICE_NOT_FOUND

    def __init__(self, invoice_id: str):
        super().__init__(f"Invoice {invoice_id} not found")
        self.invoice_id = invoice_id


class VatCodeNotFoundError(ReconciliationError):
    """Raised when a VAT code id does not resolve."""

    kind = ErrorKind.VAT_CODE_NOT_FOUND

    def __init__(self, vat_code_id: str):
        super().__init__(f"VAT code {vat_code_id} not found")
        self.vat_code_id = vat_code_id


class RepositoryError(ReconciliationError):
    """Opaque failure from the persistence boundary. Never retried."""

    kind = ErrorKind.REPOSITORY
