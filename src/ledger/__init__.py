"""UK capital-gains trade ledger package."""

from src.ledger.model import TaxReport, Trade
from src.ledger.service import LedgerService

__all__ = ["LedgerService", "TaxReport", "Trade"]
