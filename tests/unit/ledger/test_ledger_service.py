"""
Tests for LedgerService.

Tests the mutation flow (validate, value, persist), the single-writer
lock and the report entry points.
"""

import asyncio
import logging
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.ledger.config import LedgerConfig, StorageConfig
from src.ledger.enums import AssetSymbol, FxSource
from src.ledger.errors import ConflictError, NotFoundError, UpstreamError, ValidationError
from src.ledger.model.listing import TradeFilters
from src.ledger.service.ledger_service import LedgerService
from src.ledger.service.valuation import ValuationResolver
from src.ledger.storage.kv import InMemoryKeyValueStore
from tests.unit.ledger.helpers import FakeFxProvider, TradeBuilder, london_ts, new_store


def _service(fx: FakeFxProvider | None = None) -> LedgerService:
    return LedgerService(new_store(), ValuationResolver(fx or FakeFxProvider()))


class TestCreateTrade:
    """Test trade creation."""

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_values(self) -> None:
        """Test a created trade is valued, stored and gets a time-ordered id."""
        # Given: A service and a GBP-priced payload
        service = _service()
        payload = TradeBuilder().at(london_ts(2024, 5, 1)).buy(2, 1000).build_payload()

        # When: Creating the trade
        trade = await service.create_trade(payload)

        # Then: It is stored with an id derived from its timestamp
        assert trade.id.startswith(f"{trade.ts:013d}-")
        assert trade.derived.gbp_proceeds_or_cost == Decimal("2000")
        assert await service.get_trade(trade.id) == trade

    @pytest.mark.asyncio
    async def test_create_rejects_invalid_payload(self) -> None:
        """Test pydantic errors surface as ledger validation errors."""
        service = _service()
        payload = TradeBuilder().build_payload()
        del payload["quantity"]

        with pytest.raises(ValidationError, match="quantity"):
            await service.create_trade(payload)

    @pytest.mark.asyncio
    async def test_upstream_failure_persists_nothing(self) -> None:
        """Test a failed FX lookup leaves the store untouched."""
        service = _service(FakeFxProvider(fail=True))
        payload = TradeBuilder().with_price_zar("47000").build_payload()

        with pytest.raises(UpstreamError):
            await service.create_trade(payload)

        assert (await service.list_trades()).count == 0

    @pytest.mark.asyncio
    async def test_create_with_mock_provider(self) -> None:
        """Test the resolver awaits the injected provider for the trade's day."""
        provider = AsyncMock()
        provider.rate_on.return_value = Decimal("20")
        service = LedgerService(new_store(), ValuationResolver(provider))
        payload = TradeBuilder().on(2024, 5, 1).with_price_zar("40000").build_payload()

        trade = await service.create_trade(payload)

        provider.rate_on.assert_awaited_once_with(date(2024, 5, 1))
        assert trade.derived.per_unit_gbp == Decimal("2000")
        assert trade.derived.fx_source == FxSource.EXTERNAL


class TestUpdateTrade:
    """Test full replacement of a trade."""

    @pytest.mark.asyncio
    async def test_update_recomputes_valuation(self) -> None:
        """Test an update keeps the id and revalues from new inputs."""
        service = _service()
        created = await service.create_trade(TradeBuilder().buy(1, 1000).build_payload())

        updated = await service.update_trade(
            created.id, TradeBuilder().with_asset("BTC").buy(2, 3000).build_payload()
        )

        assert updated.id == created.id
        assert updated.derived.gbp_proceeds_or_cost == Decimal("6000")
        stored = await service.get_trade(created.id)
        assert stored.asset.value == "BTC"

    @pytest.mark.asyncio
    async def test_update_missing(self) -> None:
        """Test updating an unknown id."""
        service = _service()
        with pytest.raises(NotFoundError):
            await service.update_trade("missing", TradeBuilder().build_payload())

    @pytest.mark.asyncio
    async def test_update_locked(self) -> None:
        """Test a locked trade refuses updates before any valuation happens."""
        fx = FakeFxProvider()
        service = _service(fx)
        created = await service.create_trade(TradeBuilder().build_payload())
        await service.lock_trades([created.id])

        with pytest.raises(ConflictError):
            await service.update_trade(
                created.id, TradeBuilder().with_price_zar("1").build_payload()
            )
        assert fx.calls == []


class TestDeleteAndLock:
    """Test deletion and locking."""

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        """Test a deleted trade is gone."""
        service = _service()
        created = await service.create_trade(TradeBuilder().build_payload())

        await service.delete_trade(created.id)

        with pytest.raises(NotFoundError):
            await service.get_trade(created.id)

    @pytest.mark.asyncio
    async def test_delete_locked(self) -> None:
        """Test a locked trade cannot be deleted."""
        service = _service()
        created = await service.create_trade(TradeBuilder().build_payload())
        assert await service.lock_trades([created.id, "ghost"]) == [created.id]

        with pytest.raises(ConflictError):
            await service.delete_trade(created.id)


class TestConcurrency:
    """Test the single-writer guarantee."""

    @pytest.mark.asyncio
    async def test_concurrent_creates_all_land(self) -> None:
        """Test concurrent creations neither collide nor lose writes."""
        service = _service(FakeFxProvider())
        payloads = [
            TradeBuilder().on(2024, 5, 1 + i % 28).with_price_zar(str(1000 + i)).build_payload()
            for i in range(25)
        ]

        created = await asyncio.gather(*(service.create_trade(p) for p in payloads))

        assert len({t.id for t in created}) == 25
        page = await service.list_trades(limit=100)
        assert page.count == 25

    @pytest.mark.asyncio
    async def test_listing_with_filters(self) -> None:
        """Test listing passes filters through."""
        service = _service()
        await service.create_trade(TradeBuilder().with_asset("BTC").build_payload())
        await service.create_trade(TradeBuilder().with_asset("ETH").build_payload())

        page = await service.list_trades(TradeFilters(asset=AssetSymbol.BTC))

        assert [t.asset for t in page.trades] == [AssetSymbol.BTC]


class TestReports:
    """Test report entry points."""

    @pytest.mark.asyncio
    async def test_tax_summary(self) -> None:
        """Test a tax-year summary over stored trades."""
        service = _service()
        await service.create_trade(TradeBuilder().on(2024, 5, 1, hour=9).buy(1, 1000).build_payload())
        await service.create_trade(TradeBuilder().on(2024, 5, 1, hour=15).sell(1, 1200).build_payload())

        report = await service.tax_summary("2024-25")

        assert report.totals.overall_gain_gbp == Decimal("200")

    @pytest.mark.asyncio
    async def test_tax_summary_logs_unmatched_disposals(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test a sell with nothing to match against is logged as a warning."""
        service = _service()
        await service.create_trade(TradeBuilder().on(2024, 5, 1).sell(1, 900).build_payload())

        with caplog.at_level(logging.WARNING, logger="src.ledger.service.ledger_service"):
            await service.tax_summary("2024-25")

        assert "2024-25: SELL 1 ETH: gain £0.00 (0 matches)" in caplog.text

    @pytest.mark.asyncio
    async def test_tax_summary_bad_label(self) -> None:
        """Test malformed labels."""
        with pytest.raises(ValidationError):
            await _service().tax_summary("2024")

    @pytest.mark.asyncio
    async def test_tax_preview(self) -> None:
        """Test a window preview parses its dates."""
        service = _service()
        await service.create_trade(TradeBuilder().on(2024, 5, 1, hour=9).buy(1, 1000).build_payload())
        await service.create_trade(TradeBuilder().on(2024, 5, 2).sell(1, 900).build_payload())

        report = await service.tax_preview("2024-05-02", "2024-05-02")

        assert report.label == "2024-05-02 to 2024-05-02"
        assert report.totals.overall_gain_gbp == Decimal("-100")

    @pytest.mark.asyncio
    async def test_tax_preview_bad_dates(self) -> None:
        """Test malformed and inverted ranges."""
        service = _service()
        with pytest.raises(ValidationError):
            await service.tax_preview("2024-13-01", "2024-12-01")
        with pytest.raises(ValidationError):
            await service.tax_preview("2024-06-01", "2024-05-01")


class TestFromConfig:
    """Test wiring a service from configuration."""

    @pytest.mark.asyncio
    async def test_from_config_uses_configured_backend(self) -> None:
        """Test the service is built on the configured store."""
        config = LedgerConfig(storage=StorageConfig(backend="memory"))

        service = LedgerService.from_config(config)

        assert isinstance(service.store.kv, InMemoryKeyValueStore)
        await service.aclose()
