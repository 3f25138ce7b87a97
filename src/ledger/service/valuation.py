"""
GBP valuation of trades.

The resolver turns a trade's raw price inputs (GBP and/or ZAR, optional FX
rate, fee in GBP, ZAR or asset units) into its canonical GBP figures. The
only side effect is an FX lookup for the trade's London civil date, made only
when a GBP figure cannot be derived otherwise.
"""

import logging
from decimal import Decimal

from src.ledger.domain.calendar import uk_day
from src.ledger.enums import FeeCurrency, FxSource
from src.ledger.errors import ValidationError
from src.ledger.model.trade import DerivedValuation, Trade
from src.ledger.protocols.ledger import FxRateProviderProtocol

logger = logging.getLogger(__name__)


class ValuationResolver:
    """
    Resolves the derived GBP valuation of a trade.

    Re-resolving an already valued trade yields identical derived fields: a
    rate fetched on first resolution is stored on the trade and keeps its
    EXTERNAL provenance.
    """

    def __init__(self, fx_provider: FxRateProviderProtocol) -> None:
        """
        Initialize the resolver.

        Args:
            fx_provider: Source of daily GBP to ZAR rates

        """
        self.fx_provider = fx_provider

    async def resolve(self, trade: Trade) -> Trade:
        """
        Compute the derived valuation for a trade.

        Args:
            trade: Trade with price inputs

        Returns:
            Copy of the trade with `derived` set, and `fx_gbp_zar` filled in
            when it had to be fetched

        Raises:
            ValidationError: If no GBP price can be derived
            UpstreamError: If the FX provider fails (propagated unchanged)

        """
        updates: dict[str, object] = {}
        fx = trade.fx_gbp_zar

        if trade.price_gbp is not None:
            per_unit = trade.price_gbp
            fx_source = FxSource.USER if fx is not None else FxSource.NONE
        elif trade.price_zar is not None:
            if fx is None:
                fx = await self._fetch_rate(trade)
                updates["fx_gbp_zar"] = fx
                fx_source = FxSource.EXTERNAL
            elif trade.derived is not None and trade.derived.fx_source == FxSource.EXTERNAL:
                fx_source = FxSource.EXTERNAL
            else:
                fx_source = FxSource.USER
            per_unit = trade.price_zar / fx
        else:
            raise ValidationError(f"GBP valuation required for trade {trade.id}")

        fee_gbp, fee_rate_fetched = await self._fee_in_gbp(trade, per_unit, fx)
        if fee_rate_fetched and fx_source == FxSource.NONE:
            fx_source = FxSource.EXTERNAL

        updates["derived"] = DerivedValuation(
            per_unit_gbp=per_unit,
            gbp_proceeds_or_cost=per_unit * trade.quantity,
            fee_gbp=fee_gbp,
            fx_source=fx_source,
        )
        return trade.model_copy(update=updates)

    async def _fee_in_gbp(
        self,
        trade: Trade,
        per_unit_gbp: Decimal,
        fx: Decimal | None,
    ) -> tuple[Decimal | None, bool]:
        """Convert the fee to GBP; the flag reports whether a rate was fetched."""
        fee = trade.fee
        if fee is None:
            return None, False

        match fee.currency:
            case FeeCurrency.GBP:
                return fee.amount, False
            case FeeCurrency.ASSET:
                return fee.amount * per_unit_gbp, False
            case FeeCurrency.ZAR:
                if fx is not None:
                    return fee.amount / fx, False
                rate = await self._fetch_rate(trade)
                return fee.amount / rate, True
            case _:
                raise ValidationError(f"Unsupported fee currency: {fee.currency}")

    async def _fetch_rate(self, trade: Trade) -> Decimal:
        day = uk_day(trade.ts)
        logger.debug(f"Resolving GBP/ZAR for trade {trade.id} on {day}")
        return await self.fx_provider.rate_on(day)
