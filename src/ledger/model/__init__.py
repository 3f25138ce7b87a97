"""Ledger data models."""

from src.ledger.model.listing import TradeFilters, TradePage
from src.ledger.model.report import (
    DisposalReport,
    FlatMatchLine,
    GainTotals,
    MatchLine,
    PoolSnapshot,
    TaxReport,
)
from src.ledger.model.trade import DerivedValuation, Trade, TradeDraft

__all__ = [
    "DerivedValuation",
    "DisposalReport",
    "FlatMatchLine",
    "GainTotals",
    "MatchLine",
    "PoolSnapshot",
    "TaxReport",
    "Trade",
    "TradeDraft",
    "TradeFilters",
    "TradePage",
]
