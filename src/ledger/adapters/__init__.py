"""
External collaborator adapters.

This package isolates third-party APIs behind the ledger's protocols.
Currently supported:
- Frankfurter: daily GBP/ZAR reference rates
"""

__all__: list[str] = []
