"""Capital-gains report endpoints."""

from fastapi import APIRouter, Depends, Query

from src.ledger.api.dependencies import get_ledger
from src.ledger.errors import ValidationError
from src.ledger.service.ledger_service import LedgerService

router = APIRouter(prefix="/tax", tags=["Tax"])


@router.get("/summary")
async def tax_summary(
    tax_year: str | None = Query(default=None, alias="taxYear"),
    ledger: LedgerService = Depends(get_ledger),
):
    if not tax_year:
        raise ValidationError("taxYear required")
    report = await ledger.tax_summary(tax_year)
    return report.model_dump(mode="json")


@router.get("/preview")
async def tax_preview(
    from_date: str | None = Query(default=None, alias="from"),
    to_date: str | None = Query(default=None, alias="to"),
    ledger: LedgerService = Depends(get_ledger),
):
    if not from_date or not to_date:
        raise ValidationError("from and to required")
    report = await ledger.tax_preview(from_date, to_date)
    return report.model_dump(mode="json")
