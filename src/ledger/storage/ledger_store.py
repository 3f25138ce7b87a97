"""
Trade ledger persistence with derived secondary indexes.

The store writes each trade as a primary record plus two index markers
(by asset and by tax year). Every read and write goes through a single
asyncio lock, so no caller can observe a primary record whose index entries
are half written. Backend calls run in a worker thread to keep blocking
I/O off the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from src.ledger.config import StorageConfig
from src.ledger.enums import AssetSymbol
from src.ledger.errors import ConflictError, NotFoundError, ValidationError
from src.ledger.model.listing import TradeFilters, TradePage
from src.ledger.model.trade import Trade
from src.ledger.protocols.ledger import KeyValueStoreProtocol
from src.ledger.storage.keys import (
    INDEX_MARKER,
    TRADE_PREFIX,
    asset_index_prefix,
    index_keys,
    tax_year_index_prefix,
    trade_id_from_index_key,
    trade_id_from_key,
    trade_key,
)

logger = logging.getLogger(__name__)


class LedgerStore:
    """
    Ordered, indexed persistence for trades.

    Features:
    - Primary records and index markers written in one atomic batch
    - Reverse-chronological cursor pagination with in-memory filters
    - Ascending full scans for chronological replay
    """

    def __init__(
        self,
        kv: KeyValueStoreProtocol,
        config: StorageConfig | None = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            kv: Ordered key-value backend
            config: Storage configuration (defaults from environment)

        """
        self.kv = kv
        self.config = config or StorageConfig()
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def put(self, trade: Trade, previous: Trade | None = None) -> None:
        """
        Write a trade and its index entries.

        Args:
            trade: Valued trade to store
            previous: Prior version of the trade; removed first if its id differs

        Raises:
            ValidationError: If the id is empty or the trade is unvalued

        """
        async with self._lock:
            await self._put(trade, previous)

    async def replace(self, trade: Trade) -> Trade:
        """
        Replace an existing, unlocked trade.

        Returns:
            The stored trade

        Raises:
            NotFoundError: If no trade has this id
            ConflictError: If the stored trade is locked

        """
        async with self._lock:
            existing = await self._read(trade.id)
            if existing is None:
                raise NotFoundError(trade.id)
            if existing.locked:
                raise ConflictError(trade.id)

            updated = trade.model_copy(update={"locked": existing.locked})
            await self._put(updated, existing)
            return updated

    async def delete(self, trade_id: str) -> Trade:
        """
        Delete an unlocked trade and both of its index entries.

        Returns:
            The deleted trade

        Raises:
            NotFoundError: If no trade has this id
            ConflictError: If the trade is locked

        """
        async with self._lock:
            existing = await self._read(trade_id)
            if existing is None:
                raise NotFoundError(trade_id)
            if existing.locked:
                raise ConflictError(trade_id)

            await asyncio.to_thread(self.kv.write_batch, deletes=self._record_keys(existing))
            logger.debug(f"Deleted trade {trade_id}")
            return existing

    async def lock(self, trade_ids: Iterable[str]) -> list[str]:
        """
        Lock every listed trade that exists; absent ids are skipped.

        Returns:
            Ids that exist and are now locked

        """
        locked: list[str] = []
        async with self._lock:
            for trade_id in trade_ids:
                existing = await self._read(trade_id)
                if existing is None:
                    continue
                if not existing.locked:
                    await self._put(existing.model_copy(update={"locked": True}), existing)
                    logger.debug(f"Locked trade {trade_id}")
                locked.append(trade_id)
        return locked

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, trade_id: str) -> Trade | None:
        """Get a trade by id, or None if absent."""
        async with self._lock:
            return await self._read(trade_id)

    async def require(self, trade_id: str) -> Trade:
        """
        Get a trade by id.

        Raises:
            NotFoundError: If no trade has this id

        """
        trade = await self.get(trade_id)
        if trade is None:
            raise NotFoundError(trade_id)
        return trade

    async def list(
        self,
        filters: TradeFilters | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> TradePage:
        """
        List trades newest first, resuming strictly after a cursor.

        Pages of the primary index are over-fetched and filtered in memory
        until `limit` matches are collected or the ledger is exhausted. A
        cursor is returned only when the page is full.

        Args:
            filters: Asset, side and time constraints
            limit: Page size, clamped to the configured maximum
            cursor: Id returned by the previous page

        Returns:
            TradePage with the matching trades and the resume cursor

        """
        filters = filters or TradeFilters()
        limit = self._clamp_limit(limit)
        page_size = limit * self.config.overfetch_factor

        result: list[Trade] = []
        start_after = trade_key(cursor) if cursor else None
        last_key: str | None = None

        async with self._lock:
            while len(result) < limit:
                page = await asyncio.to_thread(
                    self.kv.scan,
                    TRADE_PREFIX,
                    start_after=start_after,
                    reverse=True,
                    limit=page_size,
                )
                if not page:
                    break

                for key, raw in page:
                    last_key = key
                    start_after = key
                    trade = Trade.model_validate_json(raw)
                    if filters.matches(trade):
                        result.append(trade)
                        if len(result) == limit:
                            break

                if len(page) < page_size:
                    break

        next_cursor = (
            trade_id_from_key(last_key)
            if len(result) == limit and last_key is not None
            else None
        )
        return TradePage(trades=result, next_cursor=next_cursor)

    async def load_all(
        self,
        start: int | None = None,
        end: int | None = None,
    ) -> list[Trade]:
        """
        Load every trade in an inclusive time window, oldest first.

        Args:
            start: Earliest timestamp to include
            end: Latest timestamp to include

        Returns:
            Trades sorted by (timestamp, id)

        """
        trades: list[Trade] = []
        start_after: str | None = None
        page_size = self.config.load_page_size

        async with self._lock:
            while True:
                page = await asyncio.to_thread(
                    self.kv.scan, TRADE_PREFIX, start_after=start_after, limit=page_size
                )
                if not page:
                    break
                for key, raw in page:
                    start_after = key
                    trade = Trade.model_validate_json(raw)
                    if start is not None and trade.ts < start:
                        continue
                    if end is not None and trade.ts > end:
                        continue
                    trades.append(trade)
                if len(page) < page_size:
                    break

        trades.sort(key=lambda t: (t.ts, t.id))
        return trades

    async def ids_by_asset(self, asset: AssetSymbol) -> list[str]:
        """Trade ids for one asset, oldest first, from the asset index."""
        return await self._scan_index(asset_index_prefix(asset))

    async def ids_by_tax_year(self, label: str) -> list[str]:
        """Trade ids in one tax year, oldest first, from the tax-year index."""
        return await self._scan_index(tax_year_index_prefix(label))

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    async def _read(self, trade_id: str) -> Trade | None:
        raw = await asyncio.to_thread(self.kv.get, trade_key(trade_id))
        return Trade.model_validate_json(raw) if raw is not None else None

    async def _put(self, trade: Trade, previous: Trade | None) -> None:
        if not trade.id:
            raise ValidationError("Trade id missing")
        if trade.derived is None:
            raise ValidationError(f"Trade {trade.id} has no GBP valuation")

        deletes: list[str] = []
        if previous is not None and previous.id != trade.id:
            stored_previous = await self._read(previous.id) or previous
            deletes.extend(self._record_keys(stored_previous))

        # Index keys move when asset or timestamp change
        existing = await self._read(trade.id)
        if existing is not None:
            deletes.extend(index_keys(existing))

        puts = [(trade_key(trade.id), trade.model_dump_json())]
        puts.extend((key, INDEX_MARKER) for key in index_keys(trade))

        await asyncio.to_thread(self.kv.write_batch, puts=puts, deletes=deletes)
        logger.debug(f"Stored trade {trade.id}")

    def _record_keys(self, trade: Trade) -> list[str]:
        return [trade_key(trade.id), *index_keys(trade)]

    async def _scan_index(self, prefix: str) -> list[str]:
        async with self._lock:
            entries = await asyncio.to_thread(self.kv.scan, prefix)
        return [trade_id_from_index_key(key) for key, _ in entries]

    def _clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.config.default_page_limit
        return max(1, min(limit, self.config.max_page_limit))
