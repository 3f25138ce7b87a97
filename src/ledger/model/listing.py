"""
Listing filters and pages for trade queries.
"""

from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field

from src.ledger.enums import AssetSymbol, TradeSide
from src.ledger.model.trade import Trade


class TradeFilters(BaseModel):
    """Optional constraints applied to a trade listing. Time bounds are inclusive."""

    asset: AssetSymbol | None = None
    side: TradeSide | None = None
    from_ts: int | None = Field(default=None, ge=0)
    to_ts: int | None = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)

    def matches(self, trade: Trade) -> bool:
        """Check whether a trade passes every filter."""
        if self.asset is not None and trade.asset != self.asset:
            return False
        if self.side is not None and trade.side != self.side:
            return False
        if self.from_ts is not None and trade.ts < self.from_ts:
            return False
        if self.to_ts is not None and trade.ts > self.to_ts:
            return False
        return True


class TradePage(BaseModel):
    """
    One page of a reverse-chronological listing.

    `next_cursor` is None only when the scan reached the end of the ledger.
    """

    trades: Sequence[Trade] = Field(default_factory=list)
    next_cursor: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def count(self) -> int:
        """Number of trades on the page."""
        return len(self.trades)

    @property
    def has_more(self) -> bool:
        """Check whether another page may follow."""
        return self.next_cursor is not None
