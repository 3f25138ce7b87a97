"""
Protocol Layer for the Trade Ledger.

This module defines the contracts between the ledger core and its two
collaborators: the ordered key-value backend it persists into, and the
foreign-exchange provider it values ZAR trades with. Concrete backends and
providers satisfy these protocols structurally, without inheriting from them.

Key design principles:
- Ordered storage: lexicographic key order is the only ordering guarantee
- Atomic batches: multi-key writes are all-or-nothing
- Narrow collaborators: the FX provider maps one civil date to one rate
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable

# =============================================================================
# STORAGE PROTOCOLS
# =============================================================================


@runtime_checkable
class KeyValueStoreProtocol(Protocol):
    """
    Protocol for an ordered string key-value backend.

    Semantic Role: Durable persistence substrate
    Relationships:
    - Used by: LedgerStore for primary records and index markers
    - Ordering: Keys iterate in lexicographic order
    - Semantic Guarantees: A batch is applied entirely or not at all

    Any backend with prefix scans and ordered iteration satisfies the
    ledger's needs.
    """

    def get(self, key: str) -> str | None:
        """
        Get the value stored under a key.

        Semantic Role: Point lookup
        Relationships:
        - Absence: Returns None rather than raising

        Args:
            key: Exact key to read

        Returns:
            Stored value or None if absent

        """
        ...

    def scan(
        self,
        prefix: str,
        start_after: str | None = None,
        reverse: bool = False,
        limit: int | None = None,
    ) -> list[tuple[str, str]]:
        """
        Scan keys sharing a prefix, in key order.

        Semantic Role: Ordered range read
        Relationships:
        - Pagination: `start_after` excludes that key and everything before
          it in scan direction
        - Direction: `reverse` walks from the greatest key downwards

        Args:
            prefix: Key prefix to scan
            start_after: Exclusive resume point
            reverse: Scan in descending key order
            limit: Maximum number of pairs returned

        Returns:
            List of (key, value) pairs

        """
        ...

    def write_batch(
        self,
        puts: Iterable[tuple[str, str]] = (),
        deletes: Iterable[str] = (),
    ) -> None:
        """
        Apply deletes then puts atomically.

        Semantic Role: Multi-key mutation
        Relationships:
        - Consistency: Keeps primary records and their index markers in step
        - Ordering: Deletes apply first, so a batch may delete and re-put a key

        Args:
            puts: (key, value) pairs to write
            deletes: Keys to remove; absent keys are ignored

        """
        ...


# =============================================================================
# COLLABORATOR PROTOCOLS
# =============================================================================


@runtime_checkable
class FxRateProviderProtocol(Protocol):
    """
    Protocol for a daily GBP to ZAR exchange-rate source.

    Semantic Role: External valuation input
    Relationships:
    - Used by: ValuationResolver when a ZAR-priced trade has no rate
    - Failure: Raises UpstreamError when unreachable or rate-less
    - Retries: Not performed by callers of this protocol
    """

    async def rate_on(self, day: date) -> Decimal:
        """
        Get the GBP to ZAR rate for a civil date.

        Semantic Role: Day-level rate lookup
        Relationships:
        - Units: ZAR per 1 GBP
        - Determinism: Historical rates do not change once published

        Args:
            day: London civil date of the trade

        Returns:
            Rate as Decimal

        """
        ...
