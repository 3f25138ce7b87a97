"""Ledger collaborator protocols."""

from src.ledger.protocols.ledger import (
    FxRateProviderProtocol,
    KeyValueStoreProtocol,
)

__all__ = [
    "FxRateProviderProtocol",
    "KeyValueStoreProtocol",
]
