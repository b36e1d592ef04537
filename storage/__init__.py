"""
Storage Package

Ledger persistence behind the LedgerRepository interface.

Usage:
    from storage import SqliteLedgerRepository, seed_standard_vat_codes

    repo = SqliteLedgerRepository(settings.db_path)
    repo.init_db()
    seed_standard_vat_codes(repo)
"""

from .repository import (
    InvoiceFilter,
    InvoicePage,
    LedgerRepository,
    MovementFilter,
)
from .sqlite_repository import SqliteLedgerRepository
from .seed import STANDARD_VAT_CODES, seed_standard_vat_codes

__all__ = [
    "InvoiceFilter",
    "InvoicePage",
    "LedgerRepository",
    "MovementFilter",
    "SqliteLedgerRepository",
    "STANDARD_VAT_CODES",
    "seed_standard_vat_codes",
]
