"""Trade REST endpoints."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ValidationError as PydanticValidationError

from src.ledger.api.dependencies import get_ledger
from src.ledger.errors import ValidationError
from src.ledger.model.listing import TradeFilters
from src.ledger.service.ledger_service import LedgerService

router = APIRouter(prefix="/trades", tags=["Trades"])


class LockRequest(BaseModel):
    """Body of a bulk lock request."""

    ids: list[str]


@router.get("")
async def list_trades(
    asset: str | None = None,
    side: str | None = None,
    from_ts: int | None = Query(default=None, alias="from"),
    to_ts: int | None = Query(default=None, alias="to"),
    limit: int | None = None,
    cursor: str | None = None,
    ledger: LedgerService = Depends(get_ledger),
):
    try:
        filters = TradeFilters(asset=asset, side=side, from_ts=from_ts, to_ts=to_ts)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e) from e

    page = await ledger.list_trades(filters, limit=limit, cursor=cursor)
    return {
        "count": page.count,
        "next_cursor": page.next_cursor,
        "trades": [trade.model_dump(mode="json") for trade in page.trades],
    }


@router.post("", status_code=201)
async def create_trade(data: dict, ledger: LedgerService = Depends(get_ledger)):
    trade = await ledger.create_trade(data)
    return trade.model_dump(mode="json")


# Declared before the /{trade_id} routes so "lock" is not taken for an id
@router.post("/lock")
async def lock_trades(body: LockRequest, ledger: LedgerService = Depends(get_ledger)):
    locked = await ledger.lock_trades(body.ids)
    return {"ok": True, "locked": locked}


@router.get("/{trade_id}")
async def get_trade(trade_id: str, ledger: LedgerService = Depends(get_ledger)):
    trade = await ledger.get_trade(trade_id)
    return trade.model_dump(mode="json")


@router.put("/{trade_id}")
async def update_trade(
    trade_id: str, data: dict, ledger: LedgerService = Depends(get_ledger)
):
    trade = await ledger.update_trade(trade_id, data)
    return trade.model_dump(mode="json")


@router.delete("/{trade_id}")
async def delete_trade(trade_id: str, ledger: LedgerService = Depends(get_ledger)):
    await ledger.delete_trade(trade_id)
    return {"ok": True}
