"""VAT endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_repository
from core.errors import VatCodeNotFoundError
from core.models.canonical import VatCode
from models.api_responses import (
    ErrorResponse,
    VatCalculationRequest,
    VatCalculationResponse,
    VatCodeResponse,
)
from reconciliation.vat import from_gross, from_net, regime_description
from storage.repository import LedgerRepository


router = APIRouter()


def _vat_code_response(vat_code: VatCode) -> VatCodeResponse:
    return VatCodeResponse(
        id=vat_code.id,
        code=vat_code.code,
        percentage=vat_code.percentage,
        natura=vat_code.natura,
        description=vat_code.description,
        is_active=vat_code.is_active,
        regime=regime_description(vat_code),
    )


@router.post(
    "/calculate",
    response_model=VatCalculationResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def calculate_vat(
    body: VatCalculationRequest,
    repository: LedgerRepository = Depends(get_repository),
) -> VatCalculationResponse:
    """Split an amount into net, VAT and gross.

    calculationType "from_imponibile" treats the amount as net,
    "from_totale" as gross. A self-contradictory code is refused with 400.
    """
    vat_code = repository.get_vat_code(body.vat_code_id)
    if vat_code is None:
        raise VatCodeNotFoundError(body.vat_code_id)

    if body.calculation_type == "from_totale":
        breakdown = from_gross(body.amount, vat_code)
    else:
        breakdown = from_net(body.amount, vat_code)

    return VatCalculationResponse(
        net=breakdown.net,
        vat=breakdown.vat,
        gross=breakdown.gross,
        vat_code=_vat_code_response(vat_code),
        regime=regime_description(vat_code),
    )


@router.get("/codes", response_model=List[VatCodeResponse])
async def list_vat_codes(
    active_only: bool = Query(False, alias="activeOnly"),
    repository: LedgerRepository = Depends(get_repository),
) -> List[VatCodeResponse]:
    """List VAT code definitions."""
    return [
        _vat_code_response(vat_code)
        for vat_code in repository.get_vat_codes()
        if vat_code.is_active or not active_only
    ]
