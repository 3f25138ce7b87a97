"""
Capital-gains report models.

Match lines and disposal reports are produced fresh on every matching run and
never persisted. They are frozen so a computed report can be shared safely.
"""

from collections.abc import Sequence
from decimal import Decimal

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from src.ledger.domain.primitives import Quantity, Sterling
from src.ledger.enums import AssetSymbol, MatchRule

ZERO = Decimal("0")


class MatchLine(BaseModel):
    """One matched slice of a disposal."""

    rule: MatchRule = Field(description="Identification rule applied")
    buy_ref: str | None = Field(
        default=None, description="Matched acquisition (absent for the pool)"
    )
    matched_qty: Decimal = Field(description="Quantity matched by this line")
    proceeds_gbp: Decimal = Field(description="Net proceeds attributable")
    allowable_cost_gbp: Decimal = Field(description="Allowable cost attributed")
    gain_gbp: Decimal = Field(description="Proceeds minus allowable cost")

    model_config = ConfigDict(frozen=True)


class FlatMatchLine(MatchLine):
    """A match line carrying its parent disposal's reference."""

    sell_ref: str
    asset: AssetSymbol
    ts: int


class PoolSnapshot(BaseModel):
    """
    Section 104 pool state for one asset.

    Average cost is zero for an empty pool.
    """

    total_qty: Decimal = Field(default=ZERO, ge=ZERO)
    total_cost_gbp: Decimal = Field(default=ZERO)
    avg_cost_gbp: Decimal = Field(default=ZERO, ge=ZERO)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_totals(cls, total_qty: Decimal, total_cost_gbp: Decimal) -> "PoolSnapshot":
        """Build a snapshot, deriving the average cost."""
        avg = total_cost_gbp / total_qty if total_qty > 0 else ZERO
        return cls(total_qty=total_qty, total_cost_gbp=total_cost_gbp, avg_cost_gbp=avg)

    @classmethod
    def empty(cls) -> "PoolSnapshot":
        """An empty pool."""
        return cls()

    @property
    def is_empty(self) -> bool:
        """Check if the pool holds nothing."""
        return self.total_qty == 0


def empty_pools() -> dict[AssetSymbol, PoolSnapshot]:
    """A zeroed snapshot for every asset."""
    return {asset: PoolSnapshot.empty() for asset in AssetSymbol}


class DisposalReport(BaseModel):
    """Full breakdown of one sell trade."""

    sell_ref: str
    ts: int
    asset: AssetSymbol
    quantity: Decimal
    gross_proceeds_gbp: Decimal
    disposal_fees_gbp: Decimal
    net_proceeds_gbp: Decimal
    matches: Sequence[MatchLine] = Field(default_factory=list)
    total_gain_gbp: Decimal = ZERO
    unmatched_qty: Decimal = Field(
        default=ZERO, description="Quantity left unmatched by an exhausted pool"
    )
    issues: Sequence[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def matched_qty(self) -> Decimal:
        """Total quantity matched across all rules."""
        return sum((m.matched_qty for m in self.matches), ZERO)

    @property
    def has_issues(self) -> bool:
        """Check if the disposal carries warnings."""
        return bool(self.issues)

    def flattened(self) -> list[FlatMatchLine]:
        """Match lines tagged with this disposal's reference."""
        return [
            FlatMatchLine(
                **m.model_dump(), sell_ref=self.sell_ref, asset=self.asset, ts=self.ts
            )
            for m in self.matches
        ]

    def format_summary(self) -> str:
        """Format disposal as human-readable summary."""
        qty = Quantity(value=self.quantity).format_display()
        total = Sterling(value=self.total_gain_gbp)
        kind = "loss" if total.is_loss() else "gain"
        amount = Sterling(value=abs(self.total_gain_gbp))
        return f"SELL {qty} {self.asset.value}: {kind} {amount} ({len(self.matches)} matches)"


class GainTotals(BaseModel):
    """Gain totals for a report, overall and per asset."""

    overall_gain_gbp: Decimal = ZERO
    by_asset: dict[AssetSymbol, Decimal] = Field(
        default_factory=lambda: {asset: ZERO for asset in AssetSymbol}
    )

    model_config = ConfigDict(frozen=True)


class TaxReport(BaseModel):
    """
    Capital-gains report over a tax year or an arbitrary window.
    """

    label: str
    window_start: int
    window_end: int
    disposals: Sequence[DisposalReport] = Field(default_factory=list)
    match_lines: Sequence[FlatMatchLine] = Field(default_factory=list)
    pools: dict[AssetSymbol, PoolSnapshot] = Field(default_factory=empty_pools)
    totals: GainTotals = Field(default_factory=GainTotals)
    issues: Sequence[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def disposals_frame(self) -> pd.DataFrame:
        """Disposals as a DataFrame indexed by sell reference."""
        columns = [
            "sell_ref",
            "ts",
            "asset",
            "quantity",
            "gross_proceeds_gbp",
            "disposal_fees_gbp",
            "net_proceeds_gbp",
            "total_gain_gbp",
            "unmatched_qty",
        ]
        rows = [d.model_dump(include=set(columns)) for d in self.disposals]
        return pd.DataFrame(rows, columns=columns).set_index("sell_ref")

    def match_lines_frame(self) -> pd.DataFrame:
        """Flattened match lines as a DataFrame, one row per line."""
        columns = list(FlatMatchLine.model_fields)
        rows = [line.model_dump() for line in self.match_lines]
        return pd.DataFrame(rows, columns=columns)

    def gain_by_rule(self) -> dict[MatchRule, Decimal]:
        """Total gain contributed by each identification rule."""
        totals = {rule: ZERO for rule in MatchRule}
        for line in self.match_lines:
            totals[line.rule] += line.gain_gbp
        return totals
