"""
Ledger service: the mutation flow and report entry points.

Mutations run one at a time, in arrival order, under a single asyncio lock:
each validates its payload, resolves the GBP valuation (possibly awaiting the
FX provider) and only then writes to the store. A failed valuation therefore
never reaches storage.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from src.ledger.adapters.frankfurter.client import FrankfurterClient
from src.ledger.config import LedgerConfig
from src.ledger.domain.calendar import parse_uk_date, window_for_dates
from src.ledger.errors import ConflictError, ValidationError
from src.ledger.model.listing import TradeFilters, TradePage
from src.ledger.model.report import TaxReport
from src.ledger.model.trade import Trade, TradeDraft, new_trade_id
from src.ledger.service.fx import CachedFxProvider
from src.ledger.service.reports import (
    LOOKAROUND_MS,
    build_tax_year_report,
    build_window_report,
    tax_year_load_window,
)
from src.ledger.service.valuation import ValuationResolver
from src.ledger.storage.kv import build_key_value_store
from src.ledger.storage.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Single-writer facade over one user's ledger.

    Features:
    - Serialised mutations (create, update, delete, lock)
    - Valuation before persistence
    - Tax-year and arbitrary-window capital-gains reports
    """

    def __init__(
        self,
        store: LedgerStore,
        resolver: ValuationResolver,
        fx_client: FrankfurterClient | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            store: Trade persistence
            resolver: GBP valuation
            fx_client: HTTP FX client owned by this service, closed on shutdown

        """
        self.store = store
        self.resolver = resolver
        self._fx_client = fx_client
        self._mutation_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: LedgerConfig) -> "LedgerService":
        """Wire a service from configuration."""
        store = LedgerStore(build_key_value_store(config.storage), config.storage)
        fx_client = FrankfurterClient(config.fx)
        provider = CachedFxProvider(fx_client, maxsize=config.fx.cache_max_size)
        return cls(store, ValuationResolver(provider), fx_client=fx_client)

    async def aclose(self) -> None:
        """Release the FX client."""
        if self._fx_client is not None:
            await self._fx_client.aclose()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_trade(self, payload: Mapping[str, Any] | TradeDraft) -> Trade:
        """
        Validate, value and store a new trade.

        Raises:
            ValidationError: If required fields or valuation inputs are missing
            UpstreamError: If the FX rate lookup fails

        """
        draft = self._parse(payload)
        async with self._mutation_lock:
            trade = draft.to_trade(new_trade_id(draft.ts))
            valued = await self.resolver.resolve(trade)
            await self.store.put(valued)
        logger.info(f"Created trade {valued.id}: {valued.format_summary()}")
        return valued

    async def update_trade(
        self, trade_id: str, payload: Mapping[str, Any] | TradeDraft
    ) -> Trade:
        """
        Replace every client field of an unlocked trade.

        The id never changes; the valuation is recomputed from the new inputs.

        Raises:
            NotFoundError: If the trade does not exist
            ConflictError: If the trade is locked
            ValidationError: If the payload is invalid

        """
        draft = self._parse(payload)
        async with self._mutation_lock:
            existing = await self.store.require(trade_id)
            if existing.locked:
                raise ConflictError(trade_id)
            valued = await self.resolver.resolve(draft.to_trade(trade_id))
            stored = await self.store.replace(valued)
        logger.info(f"Updated trade {trade_id}")
        return stored

    async def delete_trade(self, trade_id: str) -> None:
        """
        Delete an unlocked trade.

        Raises:
            NotFoundError: If the trade does not exist
            ConflictError: If the trade is locked

        """
        async with self._mutation_lock:
            await self.store.delete(trade_id)
        logger.info(f"Deleted trade {trade_id}")

    async def lock_trades(self, trade_ids: Iterable[str]) -> list[str]:
        """Lock the listed trades that exist; returns the ids locked."""
        async with self._mutation_lock:
            locked = await self.store.lock(trade_ids)
        logger.info(f"Locked {len(locked)} trades")
        return locked

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_trade(self, trade_id: str) -> Trade:
        """Get a trade; raises NotFoundError if absent."""
        return await self.store.require(trade_id)

    async def list_trades(
        self,
        filters: TradeFilters | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> TradePage:
        """List trades newest first."""
        return await self.store.list(filters, limit=limit, cursor=cursor)

    async def tax_summary(self, tax_year: str) -> TaxReport:
        """
        Capital-gains report for one tax year.

        Raises:
            ValidationError: If the label is malformed

        """
        _, load_until = tax_year_load_window(tax_year)
        trades = await self.store.load_all(end=load_until)
        return self._log_issues(build_tax_year_report(tax_year, trades))

    async def tax_preview(self, from_date: date | str, to_date: date | str) -> TaxReport:
        """
        Capital-gains report over an arbitrary date range.

        Raises:
            ValidationError: If a date is malformed or the range is inverted

        """
        start = parse_uk_date(from_date) if isinstance(from_date, str) else from_date
        end = parse_uk_date(to_date) if isinstance(to_date, str) else to_date
        window = window_for_dates(start, end)

        trades = await self.store.load_all(
            start=window.start - LOOKAROUND_MS,
            end=window.end + LOOKAROUND_MS,
        )
        return self._log_issues(build_window_report(start, end, trades))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _log_issues(report: TaxReport) -> TaxReport:
        for disposal in report.disposals:
            if disposal.has_issues:
                issues = "; ".join(disposal.issues)
                logger.warning(f"{report.label}: {disposal.format_summary()}: {issues}")
        return report

    @staticmethod
    def _parse(payload: Mapping[str, Any] | TradeDraft) -> TradeDraft:
        if isinstance(payload, TradeDraft):
            return payload
        try:
            return TradeDraft.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e
