"""Linkage resolver - has a movement already been produced for an invoice?

Two ways a movement counts as linked:
1. Explicit: movement.source_invoice_id == invoice.id
2. Heuristic (legacy): the movement has no source_invoice_id at all, and its
   company, signed amount and insert date (same calendar day as the
   invoice's issue date) all match. This exists for movements created
   before the explicit reference did and can be switched off with
   LINKAGE_HEURISTIC_ENABLED=false.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Union

from core.models.canonical import Invoice, Movement


def _calendar_day(value: Optional[Union[date, datetime]]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def _heuristic_match(movement: Movement, invoice: Invoice, expected_amount: Decimal) -> bool:
    if movement.source_invoice_id:
        return False
    if not invoice.company_id or movement.company_id != invoice.company_id:
        return False
    if movement.amount != expected_amount:
        return False
    invoice_day = _calendar_day(invoice.issue_date)
    return invoice_day is not None and _calendar_day(movement.insert_date) == invoice_day


def is_linked(
    movement: Movement,
    invoice: Invoice,
    expected_amount: Optional[Decimal] = None,
    use_heuristic: bool = True,
) -> bool:
    """Check whether a movement was produced for an invoice.

    Args:
        movement: Existing movement
        invoice: Invoice being synchronized
        expected_amount: Signed amount the invoice would produce (credit
            notes are negative); defaults to the invoice total
        use_heuristic: Allow the company/amount/date fallback
    """
    if movement.source_invoice_id:
        return movement.source_invoice_id == invoice.id

    if not use_heuristic:
        return False

    if expected_amount is None:
        expected_amount = invoice.total_amount
    if expected_amount is None:
        return False

    return _heuristic_match(movement, invoice, expected_amount)


def find_linked_movement(
    invoice: Invoice,
    movements: Iterable[Movement],
    expected_amount: Optional[Decimal] = None,
    use_heuristic: bool = True,
) -> Optional[Movement]:
    """First movement linked to the invoice, explicit references preferred."""
    fallback: Optional[Movement] = None
    for movement in movements:
        if movement.source_invoice_id == invoice.id:
            return movement
        if fallback is None and is_linked(movement, invoice, expected_amount, use_heuristic):
            fallback = movement
    return fallback
