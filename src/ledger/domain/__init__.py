"""
Ledger Domain Layer.

This package contains the value primitives and the UK civil calendar rules
that the storage, valuation and matching layers share.

Key principles:
- Storage and computation use neutral types (Decimal, int milliseconds)
- Primitives add formatting and safe arithmetic on top
- Calendar logic is always London civil time, never UTC dates
"""

from src.ledger.domain.calendar import (
    LONDON_TZ,
    MS_PER_DAY,
    ReportWindow,
    day_diff,
    parse_tax_year,
    parse_uk_date,
    tax_year_label,
    to_london,
    uk_day,
    window_for_dates,
)
from src.ledger.domain.primitives import Money, Quantity, Sterling

__all__ = [
    "LONDON_TZ",
    "MS_PER_DAY",
    "Money",
    "Quantity",
    "ReportWindow",
    "Sterling",
    "day_diff",
    "parse_tax_year",
    "parse_uk_date",
    "tax_year_label",
    "to_london",
    "uk_day",
    "window_for_dates",
]
