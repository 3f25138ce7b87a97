"""
Trade domain model.

A trade is one buy or sell execution. Clients supply a `TradeDraft`; the
ledger assigns the id, resolves the GBP valuation and persists a `Trade`.
"""

import secrets
from decimal import Decimal
from typing import Annotated

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from src.ledger.domain.calendar import tax_year_label
from src.ledger.domain.primitives import Money, Quantity
from src.ledger.enums import AssetSymbol, FxSource, TradeSide, TradeVenue

PositiveDecimal = Annotated[Decimal, Field(gt=Decimal("0"))]

TS_WIDTH = 13


def pad_ts(ts: int) -> str:
    """Zero-pad a millisecond timestamp so lexicographic order is chronological."""
    return str(ts).zfill(TS_WIDTH)


def new_trade_id(ts: int) -> str:
    """Build an id that sorts by trade time, with a random suffix for uniqueness."""
    return f"{pad_ts(ts)}-{secrets.token_hex(4)}"


class DerivedValuation(BaseModel):
    """
    GBP valuation computed for a trade.

    Never supplied by clients; always recomputed on create and update.
    """

    per_unit_gbp: Decimal = Field(description="GBP price per unit of the asset")
    gbp_proceeds_or_cost: Decimal = Field(
        description="Per-unit GBP price times quantity, before fees"
    )
    fee_gbp: Decimal | None = Field(default=None, description="Fee converted to GBP")
    fx_source: FxSource = Field(
        default=FxSource.NONE, description="Where the GBP/ZAR rate came from"
    )

    model_config = ConfigDict(frozen=True)


class TradeFields(BaseModel):
    """Fields a client controls, shared by drafts and stored trades."""

    ts: int = Field(
        ge=0,
        lt=10**TS_WIDTH,
        description="Execution time in epoch milliseconds (UTC)",
    )
    asset: AssetSymbol = Field(description="Traded asset")
    side: TradeSide = Field(description="BUY or SELL")
    quantity: PositiveDecimal = Field(description="Units of the asset traded")
    price_gbp: PositiveDecimal | None = Field(
        default=None,
        validation_alias=AliasChoices("price_gbp", "priceGBP"),
        description="Per-unit price in GBP",
    )
    price_zar: PositiveDecimal | None = Field(
        default=None,
        validation_alias=AliasChoices("price_zar", "priceZAR"),
        description="Per-unit price in ZAR",
    )
    fx_gbp_zar: PositiveDecimal | None = Field(
        default=None, description="ZAR per GBP for the trade's day"
    )
    fee: Money | None = Field(default=None, description="Fee charged on the trade")
    venue: TradeVenue | None = Field(default=None, description="Execution venue")
    notes: str | None = Field(default=None, description="Free-form notes")

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, value: object) -> object:
        """Accept loosely formatted sides such as "buy" or "s"."""
        if isinstance(value, str):
            return TradeSide.from_exchange(value)
        return value


class TradeDraft(TradeFields):
    """
    Client input for creating or replacing a trade.

    A draft must carry something a GBP price can be derived from; whether a
    ZAR price can actually be converted is decided during valuation.
    """

    @model_validator(mode="after")
    def require_valuation_input(self) -> "TradeDraft":
        """Reject drafts with neither a GBP nor a ZAR price."""
        if self.price_gbp is None and self.price_zar is None:
            raise ValueError("GBP valuation required: supply price_gbp or price_zar")
        return self

    def to_trade(self, trade_id: str, locked: bool = False) -> "Trade":
        """Attach identity to the draft. The result is not yet valued."""
        return Trade(id=trade_id, locked=locked, **self.model_dump())


class Trade(TradeFields):
    """
    Domain model for a stored trade.

    The model is frozen; changes produce new instances via `model_copy`.
    """

    id: str = Field(
        min_length=1, pattern=r"^[^:\s]+$", description="Opaque, immutable trade id"
    )
    locked: bool = Field(default=False, description="Locked trades are immutable")
    derived: DerivedValuation | None = Field(
        default=None, description="Resolved GBP valuation"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def tax_year(self) -> str:
        """UK tax-year label the trade falls in."""
        return tax_year_label(self.ts)

    @property
    def is_buy(self) -> bool:
        """Check if this is an acquisition."""
        return self.side == TradeSide.BUY

    @property
    def is_sell(self) -> bool:
        """Check if this is a disposal."""
        return self.side == TradeSide.SELL

    def format_summary(self) -> str:
        """Format trade as human-readable summary."""
        price = (
            f"£{self.derived.per_unit_gbp:,.2f}"
            if self.derived
            else "unvalued"
        )
        qty = Quantity(value=self.quantity).format_display()
        summary = f"{self.side.value} {qty} {self.asset.value} @ {price}"
        return f"{summary} (fee {self.fee})" if self.fee else summary
