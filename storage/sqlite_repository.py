"""
SQLite ledger repository.

Creates and manages:
- vat_codes: VAT rate definitions
- invoices / invoice_lines: electronic invoices (written by the invoicing
  subsystem through save_invoice)
- movements: cash-flow ledger entries

Amounts are stored as TEXT so Decimal values survive without float
rounding. A partial unique index on movements(source_invoice_id) for
non-forced rows makes the dedup key a database constraint: a second
non-forced movement for the same invoice is rejected even when two
synchronizations race past the linkage check.
"""

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from pydantic import ValidationError as ModelValidationError

from core.errors import AlreadyLinkedError, RepositoryError
from core.models.canonical import Invoice, InvoiceLine, Movement, MovementDraft, VatCode
from core.observability.logging import get_logger

from storage.repository import (
    InvoiceFilter,
    InvoicePage,
    LedgerRepository,
    MovementFilter,
)


logger = get_logger(__name__)


def _to_text(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _to_decimal(value: Optional[str], column: str = "amount") -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ValueError(f"{column}: not a decimal amount: {value!r}") from None


@contextmanager
def _mapping_row(table: str, row_id: str) -> Iterator[None]:
    """Turn a row that no longer parses into a RepositoryError naming it."""
    try:
        yield
    except (ModelValidationError, ValueError) as e:
        raise RepositoryError(f"Corrupt {table} row {row_id}: {e}") from e


class SqliteLedgerRepository(LedgerRepository):
    """LedgerRepository backed by a single SQLite file.

    Usage:
        repo = SqliteLedgerRepository(Path("ledger.db"))
        repo.init_db()
        repo.save_vat_code(VatCode(id="iva-22", code="22", percentage=Decimal("22")))
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)

    # =========================================================================
    # Connection handling
    # =========================================================================

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, wrap backend errors."""
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise RepositoryError(f"Cannot open ledger database {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Ledger database error: {e}", extra_fields={"db_path": str(self.db_path)})
            raise RepositoryError(f"Ledger database error: {e}") from e
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS vat_codes (
                    id TEXT PRIMARY KEY,
                    code TEXT NOT NULL UNIQUE,
                    percentage TEXT NOT NULL,
                    natura TEXT,
                    description TEXT NOT NULL DEFAULT '',
                    is_active INTEGER NOT NULL DEFAULT 1
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS invoices (
                    id TEXT PRIMARY KEY,
                    number TEXT,
                    issue_date TEXT,
                    direction TEXT,
                    invoice_type TEXT,
                    total_amount TEXT,
                    total_taxable_amount TEXT,
                    total_tax_amount TEXT,
                    company_id TEXT,
                    customer_id TEXT,
                    supplier_id TEXT,
                    updated_at TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS invoice_lines (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    invoice_id TEXT NOT NULL,
                    line_number INTEGER NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    vat_code_id TEXT,
                    taxable_amount TEXT NOT NULL DEFAULT '0',
                    tax_amount TEXT NOT NULL DEFAULT '0',
                    FOREIGN KEY (invoice_id) REFERENCES invoices(id)
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_invoice_lines_invoice
                ON invoice_lines(invoice_id, line_number)
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS movements (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL CHECK(type IN ('income', 'expense')),
                    amount TEXT NOT NULL,
                    company_id TEXT NOT NULL,
                    core_id TEXT NOT NULL,
                    status_id TEXT NOT NULL,
                    reason_id TEXT NOT NULL,
                    insert_date TEXT NOT NULL,
                    flow_date TEXT NOT NULL,
                    vat_code_id TEXT,
                    source_invoice_id TEXT,
                    document_number TEXT,
                    notes TEXT,
                    net_amount TEXT,
                    vat_amount TEXT,
                    customer_id TEXT,
                    supplier_id TEXT,
                    is_forced INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_movements_company
                ON movements(company_id, insert_date)
            """)
            cursor.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS uq_movements_source_invoice
                ON movements(source_invoice_id)
                WHERE is_forced = 0 AND source_invoice_id IS NOT NULL
            """)

    # =========================================================================
    # Writes used by the invoicing subsystem and seeding
    # =========================================================================

    def save_vat_code(self, vat_code: VatCode) -> VatCode:
        """Insert or replace a VAT code."""
        with self._connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO vat_codes (id, code, percentage, natura, description, is_active)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                vat_code.id,
                vat_code.code,
                _to_text(vat_code.percentage),
                vat_code.natura,
                vat_code.description,
                1 if vat_code.is_active else 0,
            ))
        return vat_code

    def save_invoice(self, invoice: Invoice) -> Invoice:
        """Insert or replace an invoice together with its lines."""
        now = datetime.utcnow().isoformat()
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR REPLACE INTO invoices
                (id, number, issue_date, direction, invoice_type, total_amount,
                 total_taxable_amount, total_tax_amount, company_id, customer_id,
                 supplier_id, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                invoice.id,
                invoice.number,
                invoice.issue_date.isoformat() if invoice.issue_date else None,
                invoice.direction,
                invoice.invoice_type,
                _to_text(invoice.total_amount),
                _to_text(invoice.total_taxable_amount),
                _to_text(invoice.total_tax_amount),
                invoice.company_id,
                invoice.customer_id,
                invoice.supplier_id,
                now,
            ))
            cursor.execute("DELETE FROM invoice_lines WHERE invoice_id = ?", (invoice.id,))
            for line in invoice.lines:
                cursor.execute("""
                    INSERT INTO invoice_lines
                    (invoice_id, line_number, description, vat_code_id, taxable_amount, tax_amount)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    invoice.id,
                    line.line_number,
                    line.description,
                    line.vat_code_id,
                    _to_text(line.taxable_amount),
                    _to_text(line.tax_amount),
                ))
        return invoice

    # =========================================================================
    # LedgerRepository
    # =========================================================================

    def get_invoice_by_id(self, invoice_id: str) -> Optional[Invoice]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM invoices WHERE id = ?", (invoice_id,)).fetchone()
            if row is None:
                return None
            lines = self._load_lines(conn, [invoice_id])
        return self._row_to_invoice(row, lines.get(invoice_id, []))

    @staticmethod
    def _invoice_where(invoice_filter: InvoiceFilter) -> Tuple[str, List]:
        where = " WHERE 1=1"
        params: List = []

        if invoice_filter.company_id:
            where += " AND company_id = ?"
            params.append(invoice_filter.company_id)
        if invoice_filter.direction:
            where += " AND direction = ?"
            params.append(invoice_filter.direction)
        if invoice_filter.from_date:
            where += " AND issue_date >= ?"
            params.append(invoice_filter.from_date.isoformat())
        if invoice_filter.to_date:
            where += " AND issue_date <= ?"
            params.append(invoice_filter.to_date.isoformat())
        return where, params

    def get_invoice_ids(self, invoice_filter: Optional[InvoiceFilter] = None) -> List[str]:
        invoice_filter = invoice_filter or InvoiceFilter()
        where, params = self._invoice_where(invoice_filter)
        page_size = max(invoice_filter.page_size, 1)
        offset = (max(invoice_filter.page, 1) - 1) * page_size

        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT id FROM invoices{where} ORDER BY id LIMIT ? OFFSET ?",
                params + [page_size, offset],
            ).fetchall()
        return [row["id"] for row in rows]

    def get_invoices(self, invoice_filter: Optional[InvoiceFilter] = None) -> InvoicePage:
        invoice_filter = invoice_filter or InvoiceFilter()
        where, params = self._invoice_where(invoice_filter)
        page = max(invoice_filter.page, 1)
        page_size = max(invoice_filter.page_size, 1)

        with self._connection() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM invoices{where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM invoices{where} ORDER BY id LIMIT ? OFFSET ?",
                params + [page_size, (page - 1) * page_size],
            ).fetchall()
            lines = self._load_lines(conn, [row["id"] for row in rows])

        return InvoicePage(
            items=[self._row_to_invoice(row, lines.get(row["id"], [])) for row in rows],
            total=total,
            page=page,
            page_size=page_size,
        )

    def get_movements(self, movement_filter: Optional[MovementFilter] = None) -> List[Movement]:
        movement_filter = movement_filter or MovementFilter()
        query = "SELECT * FROM movements WHERE 1=1"
        params: List = []

        if movement_filter.company_id:
            query += " AND company_id = ?"
            params.append(movement_filter.company_id)
        if movement_filter.source_invoice_id:
            query += " AND source_invoice_id = ?"
            params.append(movement_filter.source_invoice_id)
        if movement_filter.type:
            query += " AND type = ?"
            params.append(movement_filter.type.value)
        if movement_filter.insert_date:
            query += " AND insert_date = ?"
            params.append(movement_filter.insert_date.isoformat())

        query += " ORDER BY created_at, id"

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()

        movements = [self._row_to_movement(row) for row in rows]
        # TEXT amounts are compared as Decimals ("1000.0" == "1000.00")
        if movement_filter.amount is not None:
            movements = [m for m in movements if m.amount == movement_filter.amount]
        return movements

    def create_movement(self, draft: MovementDraft) -> Movement:
        movement = Movement(
            id=str(uuid.uuid4()),
            created_at=datetime.utcnow(),
            **draft.model_dump(),
        )
        with self._connection() as conn:
            try:
                conn.execute("""
                    INSERT INTO movements
                    (id, type, amount, company_id, core_id, status_id, reason_id,
                     insert_date, flow_date, vat_code_id, source_invoice_id,
                     document_number, notes, net_amount, vat_amount, customer_id,
                     supplier_id, is_forced, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    movement.id,
                    movement.type.value,
                    _to_text(movement.amount),
                    movement.company_id,
                    movement.core_id,
                    movement.status_id,
                    movement.reason_id,
                    movement.insert_date.isoformat(),
                    movement.flow_date.isoformat(),
                    movement.vat_code_id,
                    movement.source_invoice_id,
                    movement.document_number,
                    movement.notes,
                    _to_text(movement.net_amount),
                    _to_text(movement.vat_amount),
                    movement.customer_id,
                    movement.supplier_id,
                    1 if movement.is_forced else 0,
                    movement.created_at.isoformat(),
                ))
            except sqlite3.IntegrityError:
                existing = conn.execute("""
                    SELECT id FROM movements
                    WHERE source_invoice_id = ? AND is_forced = 0
                """, (movement.source_invoice_id,)).fetchone()
                if existing is None:
                    raise
                raise AlreadyLinkedError(movement.source_invoice_id, existing["id"]) from None
        return movement

    def get_vat_codes(self) -> List[VatCode]:
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM vat_codes ORDER BY code").fetchall()
        return [self._row_to_vat_code(row) for row in rows]

    def get_vat_code(self, vat_code_id: str) -> Optional[VatCode]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM vat_codes WHERE id = ?", (vat_code_id,)).fetchone()
        return self._row_to_vat_code(row) if row else None

    # =========================================================================
    # Row mapping
    # =========================================================================

    @staticmethod
    def _load_lines(conn: sqlite3.Connection, invoice_ids: List[str]) -> Dict[str, List[InvoiceLine]]:
        if not invoice_ids:
            return {}
        placeholders = ",".join("?" for _ in invoice_ids)
        rows = conn.execute(
            f"SELECT * FROM invoice_lines WHERE invoice_id IN ({placeholders}) "
            f"ORDER BY invoice_id, line_number, id",
            invoice_ids,
        ).fetchall()

        lines: Dict[str, List[InvoiceLine]] = {}
        for row in rows:
            with _mapping_row("invoice_lines", f"{row['invoice_id']}#{row['line_number']}"):
                lines.setdefault(row["invoice_id"], []).append(InvoiceLine(
                    line_number=row["line_number"],
                    description=row["description"],
                    vat_code_id=row["vat_code_id"],
                    taxable_amount=_to_decimal(row["taxable_amount"], "taxable_amount"),
                    tax_amount=_to_decimal(row["tax_amount"], "tax_amount"),
                ))
        return lines

    @staticmethod
    def _row_to_invoice(row: sqlite3.Row, lines: List[InvoiceLine]) -> Invoice:
        with _mapping_row("invoices", row["id"]):
            return Invoice(
                id=row["id"],
                number=row["number"],
                issue_date=row["issue_date"],
                direction=row["direction"],
                invoice_type=row["invoice_type"],
                total_amount=_to_decimal(row["total_amount"], "total_amount"),
                total_taxable_amount=_to_decimal(row["total_taxable_amount"], "total_taxable_amount"),
                total_tax_amount=_to_decimal(row["total_tax_amount"], "total_tax_amount"),
                company_id=row["company_id"],
                customer_id=row["customer_id"],
                supplier_id=row["supplier_id"],
                lines=lines,
            )

    @staticmethod
    def _row_to_movement(row: sqlite3.Row) -> Movement:
        with _mapping_row("movements", row["id"]):
            return Movement(
                id=row["id"],
                type=row["type"],
                amount=_to_decimal(row["amount"]),
                company_id=row["company_id"],
                core_id=row["core_id"],
                status_id=row["status_id"],
                reason_id=row["reason_id"],
                insert_date=row["insert_date"],
                flow_date=row["flow_date"],
                vat_code_id=row["vat_code_id"],
                source_invoice_id=row["source_invoice_id"],
                document_number=row["document_number"],
                notes=row["notes"],
                net_amount=_to_decimal(row["net_amount"], "net_amount"),
                vat_amount=_to_decimal(row["vat_amount"], "vat_amount"),
                customer_id=row["customer_id"],
                supplier_id=row["supplier_id"],
                is_forced=bool(row["is_forced"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )

    @staticmethod
    def _row_to_vat_code(row: sqlite3.Row) -> VatCode:
        with _mapping_row("vat_codes", row["id"]):
            return VatCode(
                id=row["id"],
                code=row["code"],
                percentage=_to_decimal(row["percentage"], "percentage"),
                natura=row["natura"],
                description=row["description"],
                is_active=bool(row["is_active"]),
            )
