"""Shared fixtures: a seeded SQLite ledger under tmp_path and invoice builders."""

import sqlite3
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from core.config import Settings
from core.models.canonical import Invoice, InvoiceLine, Movement, MovementType, VatCode
from core.observability.metrics import SyncStatsCollector
from reconciliation.engine import Synchronizer, SyncConfig
from reconciliation.materializer import MovementDefaults
from storage.seed import seed_standard_vat_codes
from storage.sqlite_repository import SqliteLedgerRepository


ISSUE_DATE = date(2025, 3, 1)

VAT_22 = VatCode(id="iva-22", code="22", percentage=Decimal("22.00"), description="Aliquota ordinaria 22%")
VAT_10 = VatCode(id="iva-10", code="10", percentage=Decimal("10.00"))
VAT_N4 = VatCode(id="n4", code="N4", natura="N4", description="Esenti")
VAT_N6 = VatCode(id="n6-1", code="N6.1", natura="N6.1")

DEFAULTS = MovementDefaults(
    status_id="status-pending",
    income_reason_id="reason-sales",
    expense_reason_id="reason-purchases",
)


def make_invoice(
    invoice_id: str = "inv-001",
    total: str = "1000.00",
    direction: str = "outgoing",
    invoice_type: str = "TD01",
    vat_code_id: str = "iva-22",
    **overrides,
) -> Invoice:
    """A well-formed invoice whose single line adds up to the total at 22%."""
    gross = Decimal(total)
    net = (gross / Decimal("1.22")).quantize(Decimal("0.01"))
    data = dict(
        id=invoice_id,
        number=f"FT-{invoice_id}",
        issue_date=ISSUE_DATE,
        direction=direction,
        invoice_type=invoice_type,
        total_amount=gross,
        total_taxable_amount=net,
        total_tax_amount=gross - net,
        company_id="company-1",
        customer_id="customer-1",
        supplier_id="supplier-1",
        lines=[
            InvoiceLine(
                line_number=1,
                description="Consulenza",
                vat_code_id=vat_code_id,
                taxable_amount=net,
                tax_amount=gross - net,
            )
        ],
    )
    data.update(overrides)
    return Invoice(**data)


def corrupt_invoice(repo: SqliteLedgerRepository, invoice_id: str, column: str, value: str) -> None:
    """Overwrite a stored invoice column behind the repository's back."""
    conn = sqlite3.connect(str(repo.db_path))
    try:
        conn.execute(f"UPDATE invoices SET {column} = ? WHERE id = ?", (value, invoice_id))
        conn.commit()
    finally:
        conn.close()


def make_movement(
    movement_id: str = "mov-legacy",
    amount: str = "1000.00",
    source_invoice_id=None,
    insert_date: date = ISSUE_DATE,
    company_id: str = "company-1",
    **overrides,
) -> Movement:
    data = dict(
        id=movement_id,
        type=MovementType.INCOME,
        amount=Decimal(amount),
        company_id=company_id,
        core_id=company_id,
        status_id="status-pending",
        reason_id="reason-sales",
        insert_date=insert_date,
        flow_date=insert_date,
        source_invoice_id=source_invoice_id,
    )
    data.update(overrides)
    return Movement(**data)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(db_path=tmp_path / "ledger.db")


@pytest.fixture
def repo(settings: Settings) -> SqliteLedgerRepository:
    """Initialized ledger with the standard VAT codes."""
    repository = SqliteLedgerRepository(settings.db_path)
    repository.init_db()
    seed_standard_vat_codes(repository)
    return repository


@pytest.fixture
def stats() -> SyncStatsCollector:
    return SyncStatsCollector()


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(defaults=DEFAULTS, page_size=2)


@pytest.fixture
def synchronizer(repo, sync_config, stats) -> Synchronizer:
    return Synchronizer(repo, sync_config, stats=stats)
