"""HTTP surface for the trade ledger."""

from src.ledger.api.app import create_app

__all__ = ["create_app"]
