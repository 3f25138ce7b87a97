"""Frankfurter FX provider adapter."""

from src.ledger.adapters.frankfurter.client import FrankfurterClient, FrankfurterQuote

__all__ = ["FrankfurterClient", "FrankfurterQuote"]
