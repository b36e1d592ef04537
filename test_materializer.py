"""
Validation and movement materialization tests.

Sign rule examples:
- 1000.00 outgoing TD01 -> income +1000.00
- 1000.00 incoming TD01 -> expense +1000.00
- 200.00 incoming TD04 -> expense -200.00
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as ModelValidationError

from core.models.canonical import Invoice, InvoiceLine, MovementType
from reconciliation.classifier import classify
from reconciliation.materializer import (
    MovementOverrides,
    build_analysis,
    extract_vat_code_id,
    materialize,
    validate,
)

from conftest import DEFAULTS, ISSUE_DATE, VAT_22, VAT_N4, make_invoice


TODAY = date(2025, 3, 10)


def _fields(result):
    return {e.field for e in result.errors}


class TestValidate:

    def test_well_formed_invoice(self):
        result = validate(make_invoice())
        assert result.is_valid
        assert result.warnings == []

    def test_reports_every_missing_field(self):
        result = validate(Invoice(id="empty"))
        assert _fields(result) == {"total_amount", "company_id", "direction", "invoice_type"}

    def test_non_numeric_total_is_rejected_by_the_model(self):
        with pytest.raises(ModelValidationError, match="not a decimal amount"):
            Invoice(id="inv-x", total_amount="abc")

    def test_non_positive_total(self):
        assert "total_amount" in _fields(validate(make_invoice(total="0.00")))
        assert "total_amount" in _fields(validate(make_invoice(total="-10.00")))

    def test_blank_company(self):
        assert _fields(validate(make_invoice(company_id="   "))) == {"company_id"}

    def test_unknown_direction_and_type(self):
        result = validate(make_invoice(direction="sideways", invoice_type="TD99"))
        assert _fields(result) == {"direction", "invoice_type"}

    def test_line_sum_mismatch_is_a_warning(self):
        invoice = make_invoice(total="1000.00")
        invoice.lines[0].taxable_amount = Decimal("500.00")
        result = validate(invoice)
        assert result.is_valid
        assert any("Line sum" in w for w in result.warnings)

    def test_small_line_rounding_is_tolerated(self):
        invoice = make_invoice(total="1000.00")
        invoice.lines[0].tax_amount += Decimal("0.03")
        assert validate(invoice).warnings == []

    def test_mixed_vat_codes(self):
        invoice = make_invoice()
        invoice.lines.append(InvoiceLine(line_number=2, vat_code_id="iva-10"))

        lenient = validate(invoice)
        assert lenient.is_valid
        assert any("iva-22" in w for w in lenient.warnings)

        strict = validate(invoice, strict_vat_codes=True)
        assert _fields(strict) == {"lines.vat_code_id"}


class TestMaterialize:

    def test_outgoing_income(self):
        invoice = make_invoice(direction="outgoing")
        draft = materialize(invoice, classify(invoice), None, DEFAULTS, vat_code=VAT_22, today=TODAY)

        assert draft.type is MovementType.INCOME
        assert draft.amount == Decimal("1000.00")
        assert draft.source_invoice_id == "inv-001"
        assert draft.net_amount == Decimal("819.67")
        assert draft.vat_amount == Decimal("180.33")
        assert draft.reason_id == "reason-sales"
        assert draft.customer_id == "customer-1"
        assert draft.supplier_id is None
        assert not draft.is_forced

    def test_incoming_expense(self):
        invoice = make_invoice(direction="incoming")
        draft = materialize(invoice, classify(invoice), None, DEFAULTS, today=TODAY)

        assert draft.type is MovementType.EXPENSE
        assert draft.amount == Decimal("1000.00")
        assert draft.reason_id == "reason-purchases"
        assert draft.supplier_id == "supplier-1"
        assert draft.customer_id is None

    def test_incoming_credit_note_is_negative(self):
        invoice = make_invoice(direction="incoming", invoice_type="TD04", total="200.00")
        draft = materialize(invoice, classify(invoice), None, DEFAULTS, vat_code=VAT_22, today=TODAY)

        assert draft.type is MovementType.EXPENSE
        assert draft.amount == Decimal("-200.00")
        assert draft.net_amount == Decimal("-163.93")
        assert draft.vat_amount == Decimal("-36.07")
        assert draft.notes.startswith("Nota di credito")

    def test_credit_note_zero_vat_is_not_negative_zero(self):
        invoice = make_invoice(invoice_type="TD04", total="50.00", vat_code_id="n4")
        draft = materialize(invoice, classify(invoice), None, DEFAULTS, vat_code=VAT_N4, today=TODAY)
        assert str(draft.vat_amount) == "0.00"
        assert draft.net_amount == Decimal("-50.00")

    def test_defaults(self):
        invoice = make_invoice()
        draft = materialize(invoice, classify(invoice), MovementOverrides(), DEFAULTS, today=TODAY)

        assert draft.core_id == "company-1"
        assert draft.status_id == "status-pending"
        assert draft.insert_date == TODAY
        assert draft.flow_date == ISSUE_DATE
        assert draft.document_number == "FT-inv-001"
        assert draft.vat_code_id == "iva-22"
        assert draft.net_amount is None
        assert draft.notes == "Fattura n. FT-inv-001 del 2025-03-01 (TD01)"

    def test_overrides_win(self):
        invoice = make_invoice()
        overrides = MovementOverrides(
            core_id="core-9",
            status_id="status-paid",
            reason_id="reason-custom",
            additional_notes="Pagato con bonifico",
        )
        draft = materialize(invoice, classify(invoice), overrides, DEFAULTS, today=TODAY)

        assert draft.core_id == "core-9"
        assert draft.status_id == "status-paid"
        assert draft.reason_id == "reason-custom"
        assert draft.notes.endswith("\nPagato con bonifico")

    def test_missing_issue_date_falls_back_to_insert_date(self):
        invoice = make_invoice(issue_date=None)
        draft = materialize(invoice, classify(invoice), None, DEFAULTS, today=TODAY)
        assert draft.flow_date == TODAY

    def test_force_flag_is_recorded(self):
        invoice = make_invoice()
        draft = materialize(invoice, classify(invoice), None, DEFAULTS, force_create=True, today=TODAY)
        assert draft.is_forced


class TestHelpers:

    def test_extract_vat_code_skips_lines_without_one(self):
        invoice = make_invoice()
        invoice.lines.insert(0, InvoiceLine(line_number=0, description="Spese"))
        assert extract_vat_code_id(invoice) == "iva-22"
        assert extract_vat_code_id(make_invoice(lines=[])) is None

    def test_analysis_before_and_after(self):
        invoice = make_invoice(direction="incoming", invoice_type="TD04", total="200.00")
        classification = classify(invoice)
        draft = materialize(invoice, classification, None, DEFAULTS, vat_code=VAT_22, today=TODAY)

        analysis = build_analysis(invoice, classification, draft, ["note"])
        assert analysis["original_amount"] == "200.00"
        assert analysis["movement_amount"] == "-200.00"
        assert analysis["vat_amount"] == "-36.07"
        assert analysis["classification"]["kind"] == "credit_note"
        assert analysis["warnings"] == ["note"]

    def test_analysis_without_draft(self):
        invoice = make_invoice(invoice_type="TD17")
        analysis = build_analysis(invoice, classify(invoice))
        assert analysis["movement_amount"] is None
        assert analysis["classification"]["should_skip"] is True
