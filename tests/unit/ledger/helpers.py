"""Test helpers for ledger tests."""

import itertools
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from src.ledger.domain.calendar import LONDON_TZ, to_millis
from src.ledger.enums import FeeCurrency, FxSource
from src.ledger.errors import UpstreamError
from src.ledger.model.trade import DerivedValuation, Trade, TradeDraft, pad_ts
from src.ledger.storage.kv import InMemoryKeyValueStore
from src.ledger.storage.ledger_store import LedgerStore

_ids = itertools.count(1)


def london_ts(
    year: int,
    month: int,
    day: int,
    hour: int = 12,
    minute: int = 0,
    second: int = 0,
    millisecond: int = 0,
) -> int:
    """
    Epoch milliseconds for a London wall-clock time.

    Example:
        ts = london_ts(2024, 4, 6, 0, 0)  # first instant of 2024-25
    """
    moment = datetime(
        year, month, day, hour, minute, second, millisecond * 1000, tzinfo=LONDON_TZ
    )
    return to_millis(moment)


def new_store() -> LedgerStore:
    """Create a ledger store over a fresh in-memory backend."""
    return LedgerStore(InMemoryKeyValueStore())


class FakeFxProvider:
    """
    In-memory FX provider that records every lookup.

    Satisfies FxRateProviderProtocol.
    """

    def __init__(
        self,
        default_rate: Decimal | str = "23.50",
        rates: dict[date, Decimal] | None = None,
        fail: bool = False,
    ) -> None:
        """Initialize with a default rate and optional per-day overrides."""
        self.default_rate = Decimal(default_rate)
        self.rates = rates or {}
        self.fail = fail
        self.calls: list[date] = []

    async def rate_on(self, day: date) -> Decimal:
        """Return the configured rate for the day."""
        self.calls.append(day)
        if self.fail:
            raise UpstreamError(f"FX provider unreachable for {day}")
        return self.rates.get(day, self.default_rate)


class TradeBuilder:
    """Builder for creating test trades and trade payloads."""

    def __init__(self) -> None:
        """Initialize with sensible defaults: 1 ETH bought at £1,000."""
        self._id: str | None = None
        self._locked = False
        self._valued = True
        self._data: dict[str, Any] = {
            "ts": london_ts(2024, 5, 1),
            "asset": "ETH",
            "side": "BUY",
            "quantity": "1",
            "price_gbp": "1000",
        }

    def with_id(self, trade_id: str) -> "TradeBuilder":
        """Set an explicit id."""
        self._id = trade_id
        return self

    def at(self, ts: int) -> "TradeBuilder":
        """Set the timestamp in epoch milliseconds."""
        self._data["ts"] = ts
        return self

    def on(self, year: int, month: int, day: int, hour: int = 12) -> "TradeBuilder":
        """Set the timestamp from a London date and hour."""
        self._data["ts"] = london_ts(year, month, day, hour)
        return self

    def buy(self, quantity: str | int | Decimal, price_gbp: str | int | Decimal) -> "TradeBuilder":
        """Make this a buy of quantity at a GBP unit price."""
        self._data["side"] = "BUY"
        self._data["quantity"] = str(quantity)
        return self.with_price_gbp(price_gbp)

    def sell(self, quantity: str | int | Decimal, price_gbp: str | int | Decimal) -> "TradeBuilder":
        """Make this a sell of quantity at a GBP unit price."""
        self._data["side"] = "SELL"
        self._data["quantity"] = str(quantity)
        return self.with_price_gbp(price_gbp)

    def buying(self, quantity: str | int | Decimal) -> "TradeBuilder":
        """Make this a buy of quantity, keeping the current price."""
        self._data["side"] = "BUY"
        self._data["quantity"] = str(quantity)
        return self

    def selling(self, quantity: str | int | Decimal) -> "TradeBuilder":
        """Make this a sell of quantity, keeping the current price."""
        self._data["side"] = "SELL"
        self._data["quantity"] = str(quantity)
        return self

    def with_asset(self, asset: str) -> "TradeBuilder":
        """Set the asset symbol."""
        self._data["asset"] = asset
        return self

    def with_price_gbp(self, price: str | int | Decimal) -> "TradeBuilder":
        """Price the trade in GBP."""
        self._data["price_gbp"] = str(price)
        self._data.pop("price_zar", None)
        return self

    def with_price_zar(
        self, price: str | int | Decimal, fx: str | int | Decimal | None = None
    ) -> "TradeBuilder":
        """Price the trade in ZAR, with an optional GBP/ZAR rate."""
        self._data.pop("price_gbp", None)
        self._data["price_zar"] = str(price)
        if fx is not None:
            self._data["fx_gbp_zar"] = str(fx)
        return self

    def with_fx(self, fx: str | int | Decimal) -> "TradeBuilder":
        """Set the GBP/ZAR rate."""
        self._data["fx_gbp_zar"] = str(fx)
        return self

    def with_fee(self, amount: str | int | Decimal, currency: str = "GBP") -> "TradeBuilder":
        """Attach a fee."""
        self._data["fee"] = {"amount": str(amount), "currency": currency}
        return self

    def with_venue(self, venue: str) -> "TradeBuilder":
        """Set the venue."""
        self._data["venue"] = venue
        return self

    def locked(self) -> "TradeBuilder":
        """Mark the built trade as locked."""
        self._locked = True
        return self

    def unvalued(self) -> "TradeBuilder":
        """Build the trade without a derived valuation."""
        self._valued = False
        return self

    def build_payload(self) -> dict[str, Any]:
        """Build as a raw client payload."""
        return dict(self._data)

    def build_draft(self) -> TradeDraft:
        """Build as a TradeDraft."""
        return TradeDraft.model_validate(self._data)

    def build(self) -> Trade:
        """
        Build as a stored Trade.

        GBP-priced trades are valued directly; ZAR-priced trades need an fx
        rate set. Fees in ZAR are not supported here.
        """
        trade_id = self._id or f"{pad_ts(self._data['ts'])}-{next(_ids):08x}"
        trade = self.build_draft().to_trade(trade_id, locked=self._locked)
        if not self._valued:
            return trade
        return trade.model_copy(update={"derived": self._derive(trade)})

    @staticmethod
    def _derive(trade: Trade) -> DerivedValuation:
        if trade.price_gbp is not None:
            per_unit = trade.price_gbp
            source = FxSource.USER if trade.fx_gbp_zar is not None else FxSource.NONE
        else:
            assert trade.price_zar is not None and trade.fx_gbp_zar is not None
            per_unit = trade.price_zar / trade.fx_gbp_zar
            source = FxSource.USER

        fee_gbp = None
        if trade.fee is not None:
            match trade.fee.currency:
                case FeeCurrency.GBP:
                    fee_gbp = trade.fee.amount
                case FeeCurrency.ASSET:
                    fee_gbp = trade.fee.amount * per_unit
                case _:
                    raise ValueError("ZAR fees need the resolver")

        return DerivedValuation(
            per_unit_gbp=per_unit,
            gbp_proceeds_or_cost=per_unit * trade.quantity,
            fee_gbp=fee_gbp,
            fx_source=source,
        )
