"""Linkage resolver tests: explicit references and the legacy heuristic."""

from datetime import date
from decimal import Decimal

from reconciliation.linkage import find_linked_movement, is_linked

from conftest import make_invoice, make_movement


class TestExplicitReference:

    def test_matching_source_invoice(self):
        assert is_linked(make_movement(source_invoice_id="inv-001"), make_invoice())

    def test_other_source_invoice_never_matches(self):
        # Same company, amount and day would satisfy the heuristic
        movement = make_movement(source_invoice_id="inv-999")
        assert not is_linked(movement, make_invoice())


class TestHeuristic:

    def test_company_amount_and_day_match(self):
        assert is_linked(make_movement(), make_invoice())

    def test_different_day(self):
        assert not is_linked(make_movement(insert_date=date(2025, 3, 2)), make_invoice())

    def test_different_amount(self):
        assert not is_linked(make_movement(amount="999.99"), make_invoice())

    def test_different_company(self):
        assert not is_linked(make_movement(company_id="company-2"), make_invoice())

    def test_signed_expected_amount(self):
        invoice = make_invoice(direction="incoming", invoice_type="TD04", total="200.00")
        movement = make_movement(amount="-200.00")
        assert is_linked(movement, invoice, expected_amount=Decimal("-200.00"))
        assert not is_linked(movement, invoice)

    def test_disabled(self):
        assert not is_linked(make_movement(), make_invoice(), use_heuristic=False)

    def test_invoice_without_issue_date(self):
        assert not is_linked(make_movement(), make_invoice(issue_date=None))


class TestFindLinkedMovement:

    def test_prefers_explicit_reference(self):
        legacy = make_movement(movement_id="mov-legacy")
        explicit = make_movement(movement_id="mov-explicit", source_invoice_id="inv-001")
        found = find_linked_movement(make_invoice(), [legacy, explicit])
        assert found.id == "mov-explicit"

    def test_falls_back_to_heuristic(self):
        other = make_movement(movement_id="mov-other", source_invoice_id="inv-002")
        legacy = make_movement(movement_id="mov-legacy")
        assert find_linked_movement(make_invoice(), [other, legacy]).id == "mov-legacy"

    def test_nothing_linked(self):
        assert find_linked_movement(make_invoice(), []) is None
        assert find_linked_movement(make_invoice(), [make_movement()], use_heuristic=False) is None
