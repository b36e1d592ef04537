"""Invoice classifier tests."""

import pytest

from core.models.canonical import InvoiceKind, MovementType
from reconciliation.classifier import AUTO_INVOICE_REASON, classify

from conftest import make_invoice


class TestDirection:

    def test_outgoing_is_income(self):
        c = classify(make_invoice(direction="outgoing"))
        assert c.direction is MovementType.INCOME
        assert not c.should_skip
        assert not c.is_negative_amount
        assert c.kind is InvoiceKind.STANDARD

    def test_incoming_is_expense(self):
        c = classify(make_invoice(direction="incoming"))
        assert c.direction is MovementType.EXPENSE
        assert not c.is_negative_amount

    def test_direction_is_case_insensitive(self):
        assert classify(make_invoice(direction="Outgoing")).direction is MovementType.INCOME


class TestCreditNotes:

    @pytest.mark.parametrize("code", ["TD04", "TD08"])
    def test_credit_note_negates(self, code):
        c = classify(make_invoice(direction="incoming", invoice_type=code))
        assert c.kind is InvoiceKind.CREDIT_NOTE
        assert c.direction is MovementType.EXPENSE
        assert c.is_negative_amount
        assert not c.should_skip

    def test_debit_note_is_standard(self):
        c = classify(make_invoice(invoice_type="TD05"))
        assert c.kind is InvoiceKind.STANDARD
        assert not c.is_negative_amount


class TestSelfBilled:
    """Self-billed documents never produce a movement."""

    @pytest.mark.parametrize("code", ["TD16", "TD17", "TD18", "TD19", "TD20", "TD21", "TD27"])
    def test_always_skipped(self, code):
        c = classify(make_invoice(invoice_type=code))
        assert c.should_skip
        assert c.reason == AUTO_INVOICE_REASON
        assert c.kind is InvoiceKind.SELF_BILLED

    def test_skipped_regardless_of_direction_and_amount(self):
        for direction in ("outgoing", "incoming"):
            c = classify(make_invoice(direction=direction, invoice_type="TD17", total="999999.99"))
            assert c.should_skip

    def test_lowercase_code(self):
        assert classify(make_invoice(invoice_type="td17")).should_skip


class TestMalformed:

    def test_unknown_type_refused(self):
        with pytest.raises(ValueError):
            classify(make_invoice(invoice_type="TD99"))

    def test_unknown_direction_refused(self):
        with pytest.raises(ValueError):
            classify(make_invoice(direction="sideways"))

    def test_to_dict(self):
        data = classify(make_invoice(direction="incoming", invoice_type="TD04")).to_dict()
        assert data["direction"] == "expense"
        assert data["kind"] == "credit_note"
        assert data["is_negative_amount"] is True
        assert data["should_skip"] is False
