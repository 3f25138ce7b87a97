"""
HMRC share-identification matching.

Disposals are matched against acquisitions in three ordered passes:

1. Same day: acquisitions on the same London civil day.
2. Thirty days: acquisitions on the following 1 to 30 civil days.
3. Section 104: the asset's weighted-average-cost pool.

The engine is a pure, synchronous computation over an already loaded and
valued trade set. Trades become immutable `MatchableTrade` records indexed
by id; each pass takes a `MatchingState` and returns a new one, so no pass
mutates another's view of a trade.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.ledger.domain.calendar import uk_day
from src.ledger.enums import AssetSymbol, MatchRule, TradeSide
from src.ledger.errors import InvariantViolation
from src.ledger.model.report import DisposalReport, MatchLine, PoolSnapshot, empty_pools
from src.ledger.model.trade import Trade

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
MATCH_WINDOW_DAYS = 30
# Shortfalls below this are rounding noise, not pool exhaustion
POOL_TOLERANCE = Decimal("0.0000001")
POOL_EXHAUSTED = "Section 104 pool exhausted for portion of disposal"


class MatchableTrade(BaseModel):
    """
    A valued trade reduced to what matching needs.

    Buys carry their all-in acquisition cost per unit (price plus fee); sells
    carry their proceeds net of the disposal fee.
    """

    id: str
    ts: int
    day: date
    asset: AssetSymbol
    side: TradeSide
    quantity: Decimal
    cost_per_unit: Decimal = ZERO
    gross_proceeds_gbp: Decimal = ZERO
    disposal_fees_gbp: Decimal = ZERO
    net_proceeds_gbp: Decimal = ZERO
    net_proceeds_per_unit: Decimal = ZERO

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_trade(cls, trade: Trade) -> "MatchableTrade":
        """
        Build a matching record from a valued trade.

        Raises:
            InvariantViolation: If the trade has no usable derived valuation

        """
        derived = trade.derived
        if derived is None:
            raise InvariantViolation(f"Trade {trade.id} missing derived values")
        if not derived.per_unit_gbp.is_finite():
            raise InvariantViolation(f"Trade {trade.id} missing per-unit GBP")

        fee = derived.fee_gbp or ZERO
        base = {
            "id": trade.id,
            "ts": trade.ts,
            "day": uk_day(trade.ts),
            "asset": trade.asset,
            "side": trade.side,
            "quantity": trade.quantity,
        }
        if trade.is_buy:
            acquisition_cost = derived.gbp_proceeds_or_cost + fee
            return cls(**base, cost_per_unit=acquisition_cost / trade.quantity)

        gross = derived.gbp_proceeds_or_cost
        net = gross - fee
        return cls(
            **base,
            gross_proceeds_gbp=gross,
            disposal_fees_gbp=fee,
            net_proceeds_gbp=net,
            net_proceeds_per_unit=net / trade.quantity,
        )

    @property
    def is_buy(self) -> bool:
        """Check if this is an acquisition."""
        return self.side == TradeSide.BUY

    @property
    def is_sell(self) -> bool:
        """Check if this is a disposal."""
        return self.side == TradeSide.SELL


def _chronological(trade: MatchableTrade) -> tuple[int, str]:
    return (trade.ts, trade.id)


class MatchingState(BaseModel):
    """
    Bookkeeping shared by the passes, keyed by trade id.

    Frozen: a pass reads one state and produces the next through a
    `StateWriter`.
    """

    remaining: Mapping[str, Decimal] = Field(default_factory=dict)
    matches: Mapping[str, tuple[MatchLine, ...]] = Field(default_factory=dict)
    issues: Mapping[str, tuple[str, ...]] = Field(default_factory=dict)
    unmatched: Mapping[str, Decimal] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def initial(cls, trades: Iterable[MatchableTrade]) -> "MatchingState":
        """Every trade starts with its full quantity unmatched."""
        return cls(remaining={t.id: t.quantity for t in trades})

    def begin(self) -> "StateWriter":
        """Open a working copy for one pass."""
        return StateWriter(self)

    def disposal_report(self, sell: MatchableTrade) -> DisposalReport:
        """Assemble the report for one sell from its accumulated matches."""
        matches = self.matches.get(sell.id, ())
        return DisposalReport(
            sell_ref=sell.id,
            ts=sell.ts,
            asset=sell.asset,
            quantity=sell.quantity,
            gross_proceeds_gbp=sell.gross_proceeds_gbp,
            disposal_fees_gbp=sell.disposal_fees_gbp,
            net_proceeds_gbp=sell.net_proceeds_gbp,
            matches=list(matches),
            total_gain_gbp=sum((m.gain_gbp for m in matches), ZERO),
            unmatched_qty=self.unmatched.get(sell.id, ZERO),
            issues=list(self.issues.get(sell.id, ())),
        )


class StateWriter:
    """Mutable working copy of a MatchingState, private to one pass."""

    def __init__(self, state: MatchingState) -> None:
        """Copy the state's mappings."""
        self.remaining: dict[str, Decimal] = dict(state.remaining)
        self._matches: dict[str, list[MatchLine]] = {
            k: list(v) for k, v in state.matches.items()
        }
        self._issues: dict[str, list[str]] = {k: list(v) for k, v in state.issues.items()}
        self._unmatched: dict[str, Decimal] = dict(state.unmatched)

    def apply_match(
        self,
        sell: MatchableTrade,
        qty: Decimal,
        rule: MatchRule,
        allowable_cost_gbp: Decimal,
        buy: MatchableTrade | None = None,
    ) -> None:
        """Record a match and consume quantity from both sides."""
        if qty <= 0:
            return
        proceeds = sell.net_proceeds_per_unit * qty
        self._matches.setdefault(sell.id, []).append(
            MatchLine(
                rule=rule,
                buy_ref=buy.id if buy else None,
                matched_qty=qty,
                proceeds_gbp=proceeds,
                allowable_cost_gbp=allowable_cost_gbp,
                gain_gbp=proceeds - allowable_cost_gbp,
            )
        )
        self.remaining[sell.id] = max(ZERO, self.remaining[sell.id] - qty)
        if buy is not None:
            self.remaining[buy.id] = max(ZERO, self.remaining[buy.id] - qty)

    def flag_unmatched(self, sell: MatchableTrade, qty: Decimal, issue: str) -> None:
        """Give up on part of a disposal, recording why."""
        self._issues.setdefault(sell.id, []).append(issue)
        self._unmatched[sell.id] = self._unmatched.get(sell.id, ZERO) + qty
        self.remaining[sell.id] = ZERO

    def finish(self) -> MatchingState:
        """Freeze the working copy into the next state."""
        return MatchingState(
            remaining=self.remaining,
            matches={k: tuple(v) for k, v in self._matches.items()},
            issues={k: tuple(v) for k, v in self._issues.items()},
            unmatched=self._unmatched,
        )


class MatchingResult(BaseModel):
    """Output of a matching run."""

    disposals: Sequence[DisposalReport] = Field(default_factory=list)
    pools: dict[AssetSymbol, PoolSnapshot] = Field(default_factory=empty_pools)
    issues: Sequence[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


# =============================================================================
# PASSES
# =============================================================================


def match_same_day(
    trades_by_asset: Mapping[AssetSymbol, Sequence[MatchableTrade]],
    state: MatchingState,
) -> MatchingState:
    """
    Match each day's sells against that day's buys, earliest first on both sides.
    """
    writer = state.begin()

    for trades in trades_by_asset.values():
        buys_by_day: dict[date, list[MatchableTrade]] = defaultdict(list)
        sells_by_day: dict[date, list[MatchableTrade]] = defaultdict(list)
        for trade in trades:
            (buys_by_day if trade.is_buy else sells_by_day)[trade.day].append(trade)

        for day, sells in sells_by_day.items():
            buys = sorted(buys_by_day.get(day, []), key=_chronological)
            for sell in sorted(sells, key=_chronological):
                for buy in buys:
                    if writer.remaining[sell.id] <= 0:
                        break
                    if writer.remaining[buy.id] <= 0:
                        continue
                    qty = min(writer.remaining[sell.id], writer.remaining[buy.id])
                    writer.apply_match(
                        sell, qty, MatchRule.SAME_DAY, qty * buy.cost_per_unit, buy
                    )

    return writer.finish()


def match_within_30_days(
    trades_by_asset: Mapping[AssetSymbol, Sequence[MatchableTrade]],
    state: MatchingState,
) -> MatchingState:
    """
    Match remaining sells against later buys 1 to 30 civil days ahead.

    Sells are taken earliest first and each consumes eligible buys earliest
    first until it is fully matched.
    """
    writer = state.begin()

    for trades in trades_by_asset.values():
        sells = sorted((t for t in trades if t.is_sell), key=_chronological)
        buys = sorted((t for t in trades if t.is_buy), key=_chronological)

        for sell in sells:
            if writer.remaining[sell.id] <= 0:
                continue
            for buy in buys:
                if writer.remaining[buy.id] <= 0:
                    continue
                if buy.ts <= sell.ts:
                    continue
                gap = (buy.day - sell.day).days
                if gap <= 0 or gap > MATCH_WINDOW_DAYS:
                    continue
                qty = min(writer.remaining[sell.id], writer.remaining[buy.id])
                writer.apply_match(
                    sell, qty, MatchRule.WITHIN_30_DAYS, qty * buy.cost_per_unit, buy
                )
                if writer.remaining[sell.id] <= 0:
                    break

    return writer.finish()


def _snapshot(
    pools: Mapping[AssetSymbol, tuple[Decimal, Decimal]],
) -> dict[AssetSymbol, PoolSnapshot]:
    return {
        asset: PoolSnapshot.from_totals(qty, cost) for asset, (qty, cost) in pools.items()
    }


def match_section_104(
    chronological: Sequence[MatchableTrade],
    state: MatchingState,
    snapshot_at: int | None = None,
) -> tuple[MatchingState, dict[AssetSymbol, PoolSnapshot]]:
    """
    Sweep all trades in time order through the per-asset pools.

    Buys add their unmatched quantity at cost; sells draw their unmatched
    quantity at the pool's average cost. A sell larger than the pool takes
    what is there and flags the rest; the pool never goes negative.

    Args:
        chronological: Every trade, sorted by (timestamp, id)
        state: State after the same-day and thirty-day passes
        snapshot_at: Capture the pools as of this timestamp; None means the
            final state

    Returns:
        The final state and the captured pool snapshot

    """
    writer = state.begin()
    pools: dict[AssetSymbol, tuple[Decimal, Decimal]] = {
        asset: (ZERO, ZERO) for asset in AssetSymbol
    }
    closing: dict[AssetSymbol, PoolSnapshot] | None = None

    for trade in chronological:
        pool_qty, pool_cost = pools[trade.asset]
        remaining = writer.remaining[trade.id]

        if trade.is_buy:
            if remaining > 0:
                pools[trade.asset] = (
                    pool_qty + remaining,
                    pool_cost + remaining * trade.cost_per_unit,
                )
                writer.remaining[trade.id] = ZERO
        elif remaining > 0:
            avg_cost = pool_cost / pool_qty if pool_qty > 0 else ZERO
            matched = min(remaining, pool_qty)
            if matched > 0:
                allowable = matched * avg_cost
                writer.apply_match(trade, matched, MatchRule.SECTION_104, allowable)
                left_qty = pool_qty - matched
                left_cost = max(ZERO, pool_cost - allowable) if left_qty > 0 else ZERO
                pools[trade.asset] = (left_qty, left_cost)

            shortfall = writer.remaining[trade.id]
            if shortfall > POOL_TOLERANCE:
                logger.warning(
                    f"Pool for {trade.asset.value} exhausted by {trade.id}: "
                    f"{shortfall} left unmatched"
                )
                writer.flag_unmatched(trade, shortfall, POOL_EXHAUSTED)
            writer.remaining[trade.id] = ZERO

        if snapshot_at is not None and trade.ts <= snapshot_at:
            closing = _snapshot(pools)

    if closing is None:
        closing = _snapshot(pools) if snapshot_at is None else empty_pools()

    return writer.finish(), closing


# =============================================================================
# ENTRY POINT
# =============================================================================


def compute_matches(
    trades: Iterable[Trade],
    snapshot_at: int | None = None,
) -> MatchingResult:
    """
    Run all three passes over a valued trade set.

    Args:
        trades: Valued trades, any order, any mix of assets
        snapshot_at: Timestamp at which to capture the closing pools

    Returns:
        MatchingResult with one disposal report per sell (chronological),
        the pool snapshot and every accumulated issue

    Raises:
        InvariantViolation: If any trade is unvalued or ids repeat

    """
    records = [MatchableTrade.from_trade(t) for t in trades]
    chronological = sorted(records, key=_chronological)

    seen: set[str] = set()
    for record in chronological:
        if record.id in seen:
            raise InvariantViolation(f"Trade {record.id} appears more than once")
        seen.add(record.id)

    by_asset: dict[AssetSymbol, list[MatchableTrade]] = defaultdict(list)
    for record in chronological:
        by_asset[record.asset].append(record)

    state = MatchingState.initial(chronological)
    state = match_same_day(by_asset, state)
    state = match_within_30_days(by_asset, state)
    state, pools = match_section_104(chronological, state, snapshot_at)

    disposals = [state.disposal_report(t) for t in chronological if t.is_sell]
    issues = [f"{d.sell_ref}: {text}" for d in disposals for text in d.issues]

    return MatchingResult(disposals=disposals, pools=pools, issues=issues)
