"""Core canonical data models for invoices, VAT codes and ledger movements.

Invoices and VAT codes are owned by the invoicing subsystem and are read-only
here. Movements are single-sided cash-flow entries: signed amount, income or
expense, never debits/credits.

Invoice fields that drive validation (direction, invoice_type, total_amount,
company_id) are intentionally loose (Optional / raw strings) so a malformed
record still parses and can be rejected with field-level reasons.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers
# =============================================================================

def _parse_decimal(value):
    """Parse decimal from strings, ints and floats (via str to avoid binary noise)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Boolean is not an amount")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        s = s.replace("€", "").replace(" ", "")
        try:
            return Decimal(s)
        except InvalidOperation:
            raise ValueError(f"not a decimal amount: {value!r}") from None
    return value


def _parse_date(value):
    """Parse date from ISO strings or datetimes."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
            try:
                return datetime.strptime(s, fmt).date()
            except ValueError:
                continue
        # Full ISO timestamps ("2025-03-01T10:00:00")
        return datetime.fromisoformat(s).date()
    return value


DecimalValue = Annotated[Decimal, BeforeValidator(_parse_decimal)]
DateValue = Annotated[date, BeforeValidator(_parse_date)]


class CanonicalBase(BaseModel):
    """Base model for all canonical data structures."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Enums
# =============================================================================

class Direction(str, Enum):
    """Invoice direction relative to the company."""
    OUTGOING = "outgoing"  # issued to a customer
    INCOMING = "incoming"  # received from a supplier


class MovementType(str, Enum):
    """Cash-flow direction of a ledger movement."""
    INCOME = "income"
    EXPENSE = "expense"


DIRECTION_TO_MOVEMENT_TYPE: Dict[Direction, MovementType] = {
    Direction.OUTGOING: MovementType.INCOME,
    Direction.INCOMING: MovementType.EXPENSE,
}


class InvoiceKind(str, Enum):
    """Ledger semantics of an SDI document type.

    Each kind owns its skip and sign rule; every known document type code
    maps to exactly one kind (see INVOICE_TYPE_CODES).
    """
    STANDARD = "standard"
    CREDIT_NOTE = "credit_note"
    SELF_BILLED = "self_billed"

    @property
    def skips_movement(self) -> bool:
        """Self-billed documents are already reflected elsewhere in the ledger."""
        return self is InvoiceKind.SELF_BILLED

    @property
    def negates_amount(self) -> bool:
        return self is InvoiceKind.CREDIT_NOTE

    @classmethod
    def from_code(cls, code: Optional[str]) -> Optional["InvoiceKind"]:
        """Resolve an SDI document type code (e.g. "TD04"); None if unknown."""
        if not code:
            return None
        normalized = code.strip().upper()
        for kind, codes in INVOICE_TYPE_CODES.items():
            if normalized in codes:
                return kind
        return None


INVOICE_TYPE_CODES: Dict[InvoiceKind, FrozenSet[str]] = {
    InvoiceKind.STANDARD: frozenset({
        "TD01",  # fattura
        "TD02",  # acconto/anticipo su fattura
        "TD03",  # acconto/anticipo su parcella
        "TD05",  # nota di debito
        "TD06",  # parcella
        "TD07",  # fattura semplificata
        "TD24",  # fattura differita (art. 21 c.4 lett. a)
        "TD25",  # fattura differita (art. 21 c.4 terzo periodo lett. b)
        "TD26",  # cessione di beni ammortizzabili
    }),
    InvoiceKind.CREDIT_NOTE: frozenset({
        "TD04",  # nota di credito
        "TD08",  # nota di credito semplificata
    }),
    InvoiceKind.SELF_BILLED: frozenset({
        "TD16",  # integrazione fattura reverse charge interno
        "TD17",  # integrazione/autofattura acquisto servizi dall'estero
        "TD18",  # integrazione acquisto beni intracomunitari
        "TD19",  # integrazione/autofattura acquisto beni ex art. 17 c.2
        "TD20",  # autofattura per regolarizzazione
        "TD21",  # autofattura per splafonamento
        "TD22",  # estrazione beni da deposito IVA
        "TD23",  # estrazione beni da deposito IVA con versamento
        "TD27",  # autoconsumo / cessioni gratuite senza rivalsa
        "TD28",  # acquisti da San Marino con IVA
    }),
}


# =============================================================================
# VAT Codes
# =============================================================================

class VatCode(CanonicalBase):
    """A VAT rate definition.

    natura is the exemption / reverse-charge reason code (N1..N7) used when
    no percentage applies; it is mutually exclusive with a positive rate.
    """
    id: str
    code: str
    percentage: DecimalValue = Decimal("0")
    natura: Optional[str] = None
    description: str = ""
    is_active: bool = True


# =============================================================================
# Invoices
# =============================================================================

class InvoiceLine(CanonicalBase):
    """A single invoice line with its VAT attribution."""
    line_number: int = 1
    description: str = ""
    vat_code_id: Optional[str] = None
    taxable_amount: DecimalValue = Decimal("0")
    tax_amount: DecimalValue = Decimal("0")


class Invoice(CanonicalBase):
    """Electronic invoice as produced by the invoicing subsystem."""
    id: str
    number: Optional[str] = None
    issue_date: Optional[DateValue] = None
    direction: Optional[str] = None
    invoice_type: Optional[str] = None
    total_amount: Optional[DecimalValue] = None
    total_taxable_amount: Optional[DecimalValue] = None
    total_tax_amount: Optional[DecimalValue] = None
    company_id: Optional[str] = None
    customer_id: Optional[str] = None
    supplier_id: Optional[str] = None
    lines: List[InvoiceLine] = Field(default_factory=list)

    @property
    def kind(self) -> Optional[InvoiceKind]:
        return InvoiceKind.from_code(self.invoice_type)

    @property
    def direction_enum(self) -> Optional[Direction]:
        if not self.direction:
            return None
        try:
            return Direction(self.direction.strip().lower())
        except ValueError:
            return None


# =============================================================================
# Movements
# =============================================================================

class MovementDraft(CanonicalBase):
    """A movement ready to be written. Produced only by the materializer."""
    type: MovementType
    amount: DecimalValue
    company_id: str
    core_id: str
    status_id: str
    reason_id: str
    insert_date: DateValue
    flow_date: DateValue
    vat_code_id: Optional[str] = None
    source_invoice_id: Optional[str] = None
    document_number: Optional[str] = None
    notes: Optional[str] = None
    net_amount: Optional[DecimalValue] = None
    vat_amount: Optional[DecimalValue] = None
    customer_id: Optional[str] = None
    supplier_id: Optional[str] = None
    is_forced: bool = False


class Movement(MovementDraft):
    """A persisted ledger movement."""
    id: str
    created_at: Optional[datetime] = None
