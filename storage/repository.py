"""Abstract ledger repository interface.

The reconciliation engine depends ONLY on this interface. The persistence
engine behind it (SQLite here, anything else in production) is an external
collaborator.

Implementations must:
- Return canonical models (Invoice, Movement, VatCode)
- Wrap backend failures in RepositoryError
- Raise AlreadyLinkedError from create_movement when the backend detects a
  second non-forced movement for the same source_invoice_id
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from core.models.canonical import Invoice, Movement, MovementDraft, MovementType, VatCode


# =============================================================================
# Filters and Pages
# =============================================================================

@dataclass
class InvoiceFilter:
    """Invoice query. Pages are 1-based."""
    company_id: Optional[str] = None
    direction: Optional[str] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    page: int = 1
    page_size: int = 100


@dataclass
class InvoicePage:
    """One page of invoices in id order."""
    items: List[Invoice] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 100

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total


@dataclass
class MovementFilter:
    """Movement query; every set field must match."""
    company_id: Optional[str] = None
    source_invoice_id: Optional[str] = None
    amount: Optional[Decimal] = None
    type: Optional[MovementType] = None
    insert_date: Optional[date] = None


# =============================================================================
# Repository
# =============================================================================

class LedgerRepository(ABC):
    """Narrow record-store interface consumed by the Synchronizer."""

    @abstractmethod
    def get_invoice_by_id(self, invoice_id: str) -> Optional[Invoice]:
        """Get an invoice with its lines, or None."""
        ...

    @abstractmethod
    def get_invoices(self, invoice_filter: Optional[InvoiceFilter] = None) -> InvoicePage:
        """Get one page of invoices."""
        ...

    def get_invoice_ids(self, invoice_filter: Optional[InvoiceFilter] = None) -> List[str]:
        """Get the ids on one page of invoices. Backends may override to skip
        loading the invoices themselves."""
        return [invoice.id for invoice in self.get_invoices(invoice_filter).items]

    @abstractmethod
    def get_movements(self, movement_filter: Optional[MovementFilter] = None) -> List[Movement]:
        """Get all movements matching the filter."""
        ...

    @abstractmethod
    def create_movement(self, draft: MovementDraft) -> Movement:
        """Persist a movement and return it with its id."""
        ...

    @abstractmethod
    def get_vat_codes(self) -> List[VatCode]:
        """Get every VAT code definition."""
        ...

    def get_vat_code(self, vat_code_id: str) -> Optional[VatCode]:
        """Get a single VAT code, or None. Backends may override."""
        for vat_code in self.get_vat_codes():
            if vat_code.id == vat_code_id:
                return vat_code
        return None
