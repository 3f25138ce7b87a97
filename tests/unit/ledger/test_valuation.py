"""
Tests for ValuationResolver.

Covers each pricing path, every fee currency, FX provenance and the
idempotence of re-resolving a valued trade.
"""

from datetime import date
from decimal import Decimal

import pytest

from src.ledger.enums import FxSource
from src.ledger.errors import UpstreamError, ValidationError
from src.ledger.service.fx import CachedFxProvider
from src.ledger.service.valuation import ValuationResolver
from tests.unit.ledger.helpers import FakeFxProvider, TradeBuilder, london_ts


class TestValuationResolver:
    """Test GBP valuation of trades."""

    @pytest.mark.asyncio
    async def test_gbp_price(self) -> None:
        """Test a GBP price needs no FX lookup."""
        # Given: A GBP-priced trade with a GBP fee
        fx = FakeFxProvider()
        resolver = ValuationResolver(fx)
        trade = TradeBuilder().buy(2, 1500).with_fee("3.50").unvalued().build()

        # When: Resolving
        valued = await resolver.resolve(trade)

        # Then: Values come straight from the inputs
        assert valued.derived is not None
        assert valued.derived.per_unit_gbp == Decimal("1500")
        assert valued.derived.gbp_proceeds_or_cost == Decimal("3000")
        assert valued.derived.fee_gbp == Decimal("3.50")
        assert valued.derived.fx_source == FxSource.NONE
        assert fx.calls == []

    @pytest.mark.asyncio
    async def test_gbp_price_with_user_fx(self) -> None:
        """Test a supplied rate is reported as USER even when unused for price."""
        resolver = ValuationResolver(FakeFxProvider())
        trade = TradeBuilder().buy(1, 1000).with_fx("23").unvalued().build()

        valued = await resolver.resolve(trade)

        assert valued.derived.fx_source == FxSource.USER

    @pytest.mark.asyncio
    async def test_zar_price_with_user_fx(self) -> None:
        """Test ZAR converted at the supplied rate."""
        fx = FakeFxProvider()
        resolver = ValuationResolver(fx)
        trade = TradeBuilder().with_price_zar("47000", fx="23.5").unvalued().build()

        valued = await resolver.resolve(trade)

        assert valued.derived.per_unit_gbp == Decimal("2000")
        assert valued.derived.fx_source == FxSource.USER
        assert fx.calls == []

    @pytest.mark.asyncio
    async def test_zar_price_fetches_rate_for_london_day(self) -> None:
        """Test the external rate is looked up for the London civil date and stored."""
        # Given: A ZAR trade at 00:30 BST (still the previous day in UTC)
        fx = FakeFxProvider(rates={date(2024, 7, 1): Decimal("24")})
        resolver = ValuationResolver(fx)
        trade = (
            TradeBuilder()
            .at(london_ts(2024, 7, 1, 0, 30))
            .with_price_zar("48000")
            .unvalued()
            .build()
        )

        # When: Resolving
        valued = await resolver.resolve(trade)

        # Then: The London date's rate was used and recorded on the trade
        assert fx.calls == [date(2024, 7, 1)]
        assert valued.fx_gbp_zar == Decimal("24")
        assert valued.derived.per_unit_gbp == Decimal("2000")
        assert valued.derived.fx_source == FxSource.EXTERNAL

    @pytest.mark.asyncio
    async def test_resolution_is_idempotent(self) -> None:
        """Test re-resolving a valued trade changes nothing and fetches nothing."""
        fx = FakeFxProvider(default_rate="23.5")
        resolver = ValuationResolver(fx)
        trade = TradeBuilder().with_price_zar("47000").with_fee("94", "ZAR").unvalued().build()

        once = await resolver.resolve(trade)
        twice = await resolver.resolve(once)

        assert twice.derived == once.derived
        assert twice.fx_gbp_zar == once.fx_gbp_zar
        assert twice.derived.fx_source == FxSource.EXTERNAL
        assert len(fx.calls) == 1

    @pytest.mark.asyncio
    async def test_asset_fee(self) -> None:
        """Test a fee in asset units is valued at the trade's unit price."""
        resolver = ValuationResolver(FakeFxProvider())
        trade = TradeBuilder().buy(1, 2000).with_fee("0.001", "ASSET").unvalued().build()

        valued = await resolver.resolve(trade)

        assert valued.derived.fee_gbp == Decimal("2.000")

    @pytest.mark.asyncio
    async def test_zar_fee_with_gbp_price_fetches_rate(self) -> None:
        """Test a ZAR fee on a GBP trade pulls a rate without storing it."""
        fx = FakeFxProvider(default_rate="25")
        resolver = ValuationResolver(fx)
        trade = TradeBuilder().buy(1, 1000).with_fee("50", "ZAR").unvalued().build()

        valued = await resolver.resolve(trade)

        assert valued.derived.fee_gbp == Decimal("2")
        assert valued.derived.fx_source == FxSource.EXTERNAL
        assert valued.fx_gbp_zar is None
        assert len(fx.calls) == 1

    @pytest.mark.asyncio
    async def test_no_fee(self) -> None:
        """Test fee_gbp is absent without a fee."""
        resolver = ValuationResolver(FakeFxProvider())
        valued = await resolver.resolve(TradeBuilder().unvalued().build())
        assert valued.derived.fee_gbp is None

    @pytest.mark.asyncio
    async def test_missing_price(self) -> None:
        """Test a trade with no price at all cannot be valued."""
        resolver = ValuationResolver(FakeFxProvider())
        trade = TradeBuilder().unvalued().build().model_copy(update={"price_gbp": None})

        with pytest.raises(ValidationError, match="GBP valuation required"):
            await resolver.resolve(trade)

    @pytest.mark.asyncio
    async def test_provider_failure_propagates(self) -> None:
        """Test upstream failures surface unchanged."""
        resolver = ValuationResolver(FakeFxProvider(fail=True))
        trade = TradeBuilder().with_price_zar("47000").unvalued().build()

        with pytest.raises(UpstreamError):
            await resolver.resolve(trade)

    @pytest.mark.asyncio
    async def test_same_day_rate_fetched_once(self) -> None:
        """Test the cached provider serves a second trade on the same day."""
        # Given: A resolver behind the date cache
        upstream = FakeFxProvider(default_rate="23.5")
        resolver = ValuationResolver(CachedFxProvider(upstream))
        first = TradeBuilder().on(2024, 5, 1, hour=9).with_price_zar("47000").unvalued().build()
        second = TradeBuilder().on(2024, 5, 1, hour=17).with_price_zar("23500").unvalued().build()

        # When: Both are resolved
        await resolver.resolve(first)
        valued = await resolver.resolve(second)

        # Then: One upstream call
        assert upstream.calls == [date(2024, 5, 1)]
        assert valued.derived.per_unit_gbp == Decimal("1000")
