"""Invoice classifier.

Decides from invoice metadata whether a movement should be produced and,
if so, its type and sign. Pure: no repository access, no logging.

Callers must validate first (see reconciliation.materializer.validate);
classify() assumes a known document type and direction.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from core.models.canonical import (
    DIRECTION_TO_MOVEMENT_TYPE,
    Direction,
    Invoice,
    InvoiceKind,
    MovementType,
)


AUTO_INVOICE_REASON = "auto-invoice already accounted for"


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one invoice."""
    should_skip: bool
    direction: MovementType
    is_negative_amount: bool
    kind: InvoiceKind
    reason: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "should_skip": self.should_skip,
            "direction": self.direction.value,
            "is_negative_amount": self.is_negative_amount,
            "kind": self.kind.value,
            "reason": self.reason,
        }


def classify(invoice: Invoice) -> Classification:
    """Classify a validated invoice.

    - Self-billed documents are always skipped, whatever their amount or
      direction.
    - outgoing -> income, incoming -> expense.
    - Credit notes keep their direction but flip the sign.
    """
    kind = invoice.kind
    direction = invoice.direction_enum
    if kind is None or direction is None:
        raise ValueError(
            f"Invoice {invoice.id} must be validated before classification "
            f"(invoice_type={invoice.invoice_type!r}, direction={invoice.direction!r})"
        )

    movement_type = DIRECTION_TO_MOVEMENT_TYPE[direction]

    if kind.skips_movement:
        return Classification(
            should_skip=True,
            direction=movement_type,
            is_negative_amount=False,
            kind=kind,
            reason=AUTO_INVOICE_REASON,
        )

    if kind.negates_amount:
        reason = (
            "credit note reduces income"
            if direction is Direction.OUTGOING
            else "credit note reduces expense"
        )
        return Classification(
            should_skip=False,
            direction=movement_type,
            is_negative_amount=True,
            kind=kind,
            reason=reason,
        )

    return Classification(
        should_skip=False,
        direction=movement_type,
        is_negative_amount=False,
        kind=kind,
        reason=f"{direction.value} invoice recorded as {movement_type.value}",
    )
