"""
Capital-gains report assembly.

Reports run the matching engine over every trade that can influence the
window, then keep only the disposals that fall inside it. Trades up to 30
days after the window still matter: a late sell can be matched by a buy in
the following month.
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from src.ledger.domain.calendar import (
    MS_PER_DAY,
    ReportWindow,
    parse_tax_year,
    window_for_dates,
)
from src.ledger.enums import AssetSymbol
from src.ledger.model.report import GainTotals, TaxReport
from src.ledger.model.trade import Trade
from src.ledger.service.matching import MATCH_WINDOW_DAYS, compute_matches

ZERO = Decimal("0")
LOOKAROUND_MS = MATCH_WINDOW_DAYS * MS_PER_DAY


def tax_year_load_window(tax_year: str) -> tuple[ReportWindow, int]:
    """
    Parse a tax year and compute the latest trade time it depends on.

    Returns:
        The tax-year window and the inclusive load bound

    """
    window = parse_tax_year(tax_year)
    return window, window.end + LOOKAROUND_MS


def build_tax_year_report(tax_year: str, trades: Iterable[Trade]) -> TaxReport:
    """
    Build the report for one UK tax year (6 April to 5 April).

    Args:
        tax_year: Label in YYYY-YY form
        trades: Valued trades; anything later than 30 days past the tax
            year is ignored

    Raises:
        ValidationError: If the label is malformed

    """
    window, load_until = tax_year_load_window(tax_year)
    relevant = [t for t in trades if t.ts <= load_until]
    return _build(window, relevant)


def build_window_report(from_date: date, to_date: date, trades: Iterable[Trade]) -> TaxReport:
    """
    Build a preview report over whole London days from one date to another.

    Only trades within 30 days either side of the window are matched.

    Raises:
        ValidationError: If the window is inverted

    """
    window = window_for_dates(from_date, to_date)
    lower = window.start - LOOKAROUND_MS
    upper = window.end + LOOKAROUND_MS
    relevant = [t for t in trades if lower <= t.ts <= upper]
    return _build(window, relevant)


def _build(window: ReportWindow, trades: list[Trade]) -> TaxReport:
    result = compute_matches(trades, snapshot_at=window.end)

    disposals = [d for d in result.disposals if window.contains(d.ts)]

    by_asset = {asset: ZERO for asset in AssetSymbol}
    for disposal in disposals:
        by_asset[disposal.asset] += disposal.total_gain_gbp

    return TaxReport(
        label=window.label,
        window_start=window.start,
        window_end=window.end,
        disposals=disposals,
        match_lines=[line for d in disposals for line in d.flattened()],
        pools=result.pools,
        totals=GainTotals(
            overall_gain_gbp=sum(by_asset.values(), ZERO),
            by_asset=by_asset,
        ),
        issues=result.issues,
    )
