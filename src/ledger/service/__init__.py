"""Ledger application services."""

from src.ledger.service.fx import CachedFxProvider, RateCache
from src.ledger.service.ledger_service import LedgerService
from src.ledger.service.matching import MatchingResult, compute_matches
from src.ledger.service.reports import build_tax_year_report, build_window_report
from src.ledger.service.valuation import ValuationResolver

__all__ = [
    "CachedFxProvider",
    "LedgerService",
    "MatchingResult",
    "RateCache",
    "ValuationResolver",
    "build_tax_year_report",
    "build_window_report",
    "compute_matches",
]
