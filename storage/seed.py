"""
Reference data seeding.

Standard Italian VAT codes: the ordinary and reduced rates plus the
natura codes used on electronic invoices for operations without VAT.
"""

from decimal import Decimal
from typing import List

from core.models.canonical import VatCode
from core.observability.logging import get_logger

from storage.sqlite_repository import SqliteLedgerRepository


logger = get_logger(__name__)


STANDARD_VAT_CODES: List[VatCode] = [
    # Rates
    VatCode(id="iva-22", code="22", percentage=Decimal("22.00"), description="Aliquota ordinaria 22%"),
    VatCode(id="iva-10", code="10", percentage=Decimal("10.00"), description="Aliquota ridotta 10%"),
    VatCode(id="iva-5", code="5", percentage=Decimal("5.00"), description="Aliquota ridotta 5%"),
    VatCode(id="iva-4", code="4", percentage=Decimal("4.00"), description="Aliquota minima 4%"),

    # Excluded / non-taxable / exempt
    VatCode(id="n1", code="N1", natura="N1", description="Escluse ex art. 15"),
    VatCode(id="n2-1", code="N2.1", natura="N2.1", description="Non soggette ad IVA ai sensi degli artt. da 7 a 7-septies"),
    VatCode(id="n2-2", code="N2.2", natura="N2.2", description="Non soggette - altri casi"),
    VatCode(id="n3-1", code="N3.1", natura="N3.1", description="Non imponibili - esportazioni"),
    VatCode(id="n3-2", code="N3.2", natura="N3.2", description="Non imponibili - cessioni intracomunitarie"),
    VatCode(id="n4", code="N4", natura="N4", description="Esenti"),
    VatCode(id="n5", code="N5", natura="N5", description="Regime del margine / IVA non esposta in fattura"),

    # Reverse charge
    VatCode(id="n6-1", code="N6.1", natura="N6.1", description="Inversione contabile - cessione di rottami"),
    VatCode(id="n6-2", code="N6.2", natura="N6.2", description="Inversione contabile - cessione di oro e argento"),
    VatCode(id="n6-3", code="N6.3", natura="N6.3", description="Inversione contabile - subappalto nel settore edile"),
    VatCode(id="n6-9", code="N6.9", natura="N6.9", description="Inversione contabile - altri casi"),

    VatCode(id="n7", code="N7", natura="N7", description="IVA assolta in altro stato UE"),
]


def seed_standard_vat_codes(repository: SqliteLedgerRepository) -> int:
    """
    Seed the standard VAT codes. Existing codes with the same id are replaced.

    Returns:
        Number of codes seeded
    """
    for vat_code in STANDARD_VAT_CODES:
        repository.save_vat_code(vat_code)

    logger.info(f"Seeded {len(STANDARD_VAT_CODES)} VAT codes", extra_fields={"db_path": str(repository.db_path)})
    return len(STANDARD_VAT_CODES)
