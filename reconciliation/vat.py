"""VAT calculator.

Converts between net ("imponibile"), VAT ("imposta") and gross ("totale")
amounts for a VAT code definition.

Rounding: every currency amount is quantized to 2 decimals with
ROUND_HALF_UP, which on Decimal means "round half away from zero"
(2.675 -> 2.68, -2.675 -> -2.68). Banker's rounding is never used.

from_gross never derives VAT independently: it rounds the net and takes
vat = gross - net, so net + vat == gross holds exactly and a net amount
survives from_net -> from_gross within one cent.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from core.errors import InvalidVatCodeError
from core.models.canonical import VatCode


CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

_EXEMPT_PREFIXES = ("N1", "N2", "N3", "N4", "N5", "N7")


@dataclass(frozen=True)
class VatBreakdown:
    """Result of a VAT calculation."""
    net: Decimal
    vat: Decimal
    gross: Decimal
    percentage: Decimal
    natura: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "net": str(self.net),
            "vat": str(self.vat),
            "gross": str(self.gross),
            "percentage": str(self.percentage),
            "natura": self.natura,
        }


def round2(value: Decimal) -> Decimal:
    """Quantize a currency amount to cents, half away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def validate_vat_code(vat_code: VatCode) -> None:
    """Refuse contradictory VAT code definitions.

    Raises:
        InvalidVatCodeError: negative percentage, or natura combined with
            a non-zero percentage
    """
    if vat_code.percentage is None:
        raise InvalidVatCodeError(vat_code.id, "percentage is missing")
    if vat_code.percentage < ZERO:
        raise InvalidVatCodeError(vat_code.id, f"negative percentage {vat_code.percentage}")
    if vat_code.natura and vat_code.percentage != ZERO:
        raise InvalidVatCodeError(
            vat_code.id,
            f"natura {vat_code.natura} set together with percentage {vat_code.percentage}",
        )


def from_net(net_amount: Decimal, vat_code: VatCode) -> VatBreakdown:
    """Compute VAT and gross from a net amount."""
    validate_vat_code(vat_code)
    net = round2(net_amount)

    if vat_code.natura:
        return VatBreakdown(net=net, vat=round2(ZERO), gross=net,
                            percentage=vat_code.percentage, natura=vat_code.natura)

    vat = round2(net * vat_code.percentage / HUNDRED)
    return VatBreakdown(net=net, vat=vat, gross=net + vat,
                        percentage=vat_code.percentage, natura=vat_code.natura)


def from_gross(gross_amount: Decimal, vat_code: VatCode) -> VatBreakdown:
    """Split a gross amount into net and VAT ("scorporo")."""
    validate_vat_code(vat_code)
    gross = round2(gross_amount)

    if vat_code.natura or vat_code.percentage == ZERO:
        return VatBreakdown(net=gross, vat=round2(ZERO), gross=gross,
                            percentage=vat_code.percentage, natura=vat_code.natura)

    net = round2(gross / (1 + vat_code.percentage / HUNDRED))
    return VatBreakdown(net=net, vat=gross - net, gross=gross,
                        percentage=vat_code.percentage, natura=vat_code.natura)


def is_reverse_charge(natura: Optional[str]) -> bool:
    """N6.x codes are reverse charge ("inversione contabile")."""
    return bool(natura) and natura.upper().startswith("N6")


def is_exempt(natura: Optional[str]) -> bool:
    """Excluded, non-taxable, exempt, margin scheme or VAT paid in another EU state."""
    return bool(natura) and natura.upper().startswith(_EXEMPT_PREFIXES)


def regime_description(vat_code: VatCode) -> str:
    """Human-readable VAT regime label for a code."""
    natura = (vat_code.natura or "").upper()
    if natura:
        if natura.startswith("N1"):
            return "Operazione esclusa da IVA"
        if natura.startswith("N2"):
            return "Operazione non soggetta a IVA"
        if natura.startswith("N3"):
            return "Operazione non imponibile"
        if natura == "N4":
            return "Operazione esente da IVA"
        if natura == "N5":
            return "Regime del margine"
        if natura.startswith("N6"):
            return "Inversione contabile (Reverse Charge)"
        if natura == "N7":
            return "IVA assolta in altro stato UE"

    if vat_code.percentage and vat_code.percentage > ZERO:
        return f"IVA {vat_code.percentage.normalize():f}%"

    return "IVA 0%"
