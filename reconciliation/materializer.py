"""Movement materializer.

Validates invoices and turns (invoice, classification, overrides) into a
MovementDraft. The invoice's own total_amount is trusted; lines are only
consulted for VAT code attribution and for the line-sum warning.

Usage:
    result = validate(invoice)
    if result.is_valid:
        draft = materialize(invoice, classify(invoice), overrides, defaults)
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.errors import FieldError
from core.models.canonical import Invoice, InvoiceKind, MovementDraft, MovementType, VatCode

from reconciliation.classifier import Classification
from reconciliation.vat import from_gross


# Line sums may drift from the header total by rounding on each line
AMOUNT_TOLERANCE = Decimal("0.05")


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class ValidationResult:
    """Field-level validation outcome. Warnings never block materialization."""
    errors: List[FieldError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": self.warnings,
        }


@dataclass
class MovementOverrides:
    """Caller-supplied values that win over every default."""
    core_id: Optional[str] = None
    status_id: Optional[str] = None
    reason_id: Optional[str] = None
    additional_notes: Optional[str] = None


@dataclass
class MovementDefaults:
    """Configured fallbacks used when the caller gives no override."""
    status_id: str
    income_reason_id: str
    expense_reason_id: str

    def reason_for(self, movement_type: MovementType) -> str:
        if movement_type is MovementType.INCOME:
            return self.income_reason_id
        return self.expense_reason_id


# =============================================================================
# Validation
# =============================================================================

def _line_sum(invoice: Invoice) -> Decimal:
    total = Decimal("0")
    for line in invoice.lines:
        total += (line.taxable_amount or Decimal("0")) + (line.tax_amount or Decimal("0"))
    return total


def validate(invoice: Invoice, strict_vat_codes: bool = False) -> ValidationResult:
    """Check that an invoice can be turned into a movement.

    Args:
        invoice: Invoice to check
        strict_vat_codes: Reject invoices whose lines carry different VAT
            codes instead of attributing the first one

    Returns:
        ValidationResult listing every failing field, not just the first
    """
    result = ValidationResult()

    if invoice.total_amount is None:
        result.errors.append(FieldError("total_amount", "is required"))
    elif invoice.total_amount <= 0:
        result.errors.append(FieldError("total_amount", f"must be greater than zero, got {invoice.total_amount}"))

    if not invoice.company_id or not invoice.company_id.strip():
        result.errors.append(FieldError("company_id", "is required"))

    if not invoice.direction or not invoice.direction.strip():
        result.errors.append(FieldError("direction", "is required"))
    elif invoice.direction_enum is None:
        result.errors.append(FieldError("direction", f"must be 'outgoing' or 'incoming', got {invoice.direction!r}"))

    if not invoice.invoice_type or not invoice.invoice_type.strip():
        result.errors.append(FieldError("invoice_type", "is required"))
    elif invoice.kind is None:
        result.errors.append(FieldError("invoice_type", f"unknown document type {invoice.invoice_type!r}"))

    distinct_codes = _distinct_vat_code_ids(invoice)
    if len(distinct_codes) > 1:
        if strict_vat_codes:
            result.errors.append(FieldError(
                "lines.vat_code_id",
                f"lines disagree on VAT code: {', '.join(distinct_codes)}",
            ))
        else:
            result.warnings.append(
                f"Lines carry {len(distinct_codes)} VAT codes; using the first ({distinct_codes[0]})"
            )

    if invoice.lines and invoice.total_amount is not None:
        line_sum = _line_sum(invoice)
        if abs(line_sum - invoice.total_amount) > AMOUNT_TOLERANCE:
            result.warnings.append(
                f"Line sum {line_sum} differs from total {invoice.total_amount}; trusting invoice total"
            )

    return result


# =============================================================================
# Materialization
# =============================================================================

def _distinct_vat_code_ids(invoice: Invoice) -> List[str]:
    seen: List[str] = []
    for line in invoice.lines:
        if line.vat_code_id and line.vat_code_id not in seen:
            seen.append(line.vat_code_id)
    return seen


def extract_vat_code_id(invoice: Invoice) -> Optional[str]:
    """VAT code id of the first line that carries one."""
    for line in invoice.lines:
        if line.vat_code_id:
            return line.vat_code_id
    return None


def signed_amount(invoice: Invoice, classification: Classification) -> Decimal:
    """Invoice total with the classification's sign applied."""
    if classification.is_negative_amount:
        return -invoice.total_amount
    return invoice.total_amount


def _default_notes(invoice: Invoice, classification: Classification) -> str:
    label = "Nota di credito" if classification.kind is InvoiceKind.CREDIT_NOTE else "Fattura"
    parts = [label]
    if invoice.number:
        parts.append(f"n. {invoice.number}")
    if invoice.issue_date:
        parts.append(f"del {invoice.issue_date.isoformat()}")
    parts.append(f"({invoice.invoice_type})")
    return " ".join(parts)


def materialize(
    invoice: Invoice,
    classification: Classification,
    overrides: Optional[MovementOverrides],
    defaults: MovementDefaults,
    vat_code: Optional[VatCode] = None,
    force_create: bool = False,
    today: Optional[date] = None,
) -> MovementDraft:
    """Build the movement for a validated, non-skipped invoice.

    Args:
        invoice: Validated invoice
        classification: Result of classify(invoice)
        overrides: Caller-supplied core/status/reason/notes
        defaults: Configured status and reason fallbacks
        vat_code: Resolved VAT code of the first line, if any; used for the
            net/VAT split of the total
        force_create: Marks the movement as created despite an existing link
        today: Insert date (defaults to date.today())

    Raises:
        InvalidVatCodeError: If vat_code is self-contradictory
    """
    overrides = overrides or MovementOverrides()
    amount = signed_amount(invoice, classification)

    net_amount = None
    vat_amount = None
    if vat_code is not None:
        breakdown = from_gross(invoice.total_amount, vat_code)
        negate = classification.is_negative_amount
        # A zero VAT stays 0.00, never -0.00
        net_amount = -breakdown.net if negate and breakdown.net else breakdown.net
        vat_amount = -breakdown.vat if negate and breakdown.vat else breakdown.vat

    notes = _default_notes(invoice, classification)
    if overrides.additional_notes:
        notes = f"{notes}\n{overrides.additional_notes}"

    insert_date = today or date.today()

    # core_id falls back to the company; callers should override in production
    return MovementDraft(
        type=classification.direction,
        amount=amount,
        company_id=invoice.company_id,
        core_id=overrides.core_id or invoice.company_id,
        status_id=overrides.status_id or defaults.status_id,
        reason_id=overrides.reason_id or defaults.reason_for(classification.direction),
        insert_date=insert_date,
        flow_date=invoice.issue_date or insert_date,
        vat_code_id=vat_code.id if vat_code is not None else extract_vat_code_id(invoice),
        source_invoice_id=invoice.id,
        document_number=invoice.number,
        notes=notes,
        net_amount=net_amount,
        vat_amount=vat_amount,
        customer_id=invoice.customer_id if classification.direction is MovementType.INCOME else None,
        supplier_id=invoice.supplier_id if classification.direction is MovementType.EXPENSE else None,
        is_forced=force_create,
    )


def build_analysis(
    invoice: Invoice,
    classification: Classification,
    draft: Optional[MovementDraft] = None,
    warnings: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """The analysis payload returned alongside a created movement."""
    analysis: Dict[str, Any] = {
        "classification": classification.to_dict(),
        "original_amount": str(invoice.total_amount) if invoice.total_amount is not None else None,
        "movement_amount": None,
        "vat_code_id": extract_vat_code_id(invoice),
        "net_amount": None,
        "vat_amount": None,
        "warnings": list(warnings or []),
    }
    if draft is not None:
        analysis["movement_amount"] = str(draft.amount)
        analysis["vat_code_id"] = draft.vat_code_id
        analysis["net_amount"] = str(draft.net_amount) if draft.net_amount is not None else None
        analysis["vat_amount"] = str(draft.vat_amount) if draft.vat_amount is not None else None
    return analysis
