"""
Enums for the trade ledger.

This module defines the closed vocabularies used across the ledger: the
supported assets, trade direction, fee currencies, the provenance of an FX
rate, and the HMRC share-identification rules a disposal can be matched by.

"""

from __future__ import annotations

import enum

# =============================================================================
# TRADE ENUMS
# =============================================================================


class AssetSymbol(str, enum.Enum):
    """
    Assets the ledger accepts.

    Every asset owns exactly one Section 104 pool.
    """

    ETH = "ETH"
    BTC = "BTC"
    USDT = "USDT"


class TradeSide(str, enum.Enum):
    """
    Direction of a trade.

    A BUY is an acquisition, a SELL is a disposal.
    """

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def from_exchange(cls, side: str) -> TradeSide:
        """
        Convert a loosely formatted side to the enum.

        Args:
            side: Side string (e.g., "buy", "SELL", "b", "s")

        Returns:
            Standardized TradeSide enum value

        """
        normalized = side.strip().lower()
        if normalized in {"buy", "b", "bid"}:
            return cls.BUY
        elif normalized in {"sell", "s", "ask"}:
            return cls.SELL
        else:
            raise ValueError(f"Invalid trade side: {side}")


class TradeVenue(str, enum.Enum):
    """Where a trade was executed."""

    LUNO = "LUNO"
    KRAKEN = "KRAKEN"
    OTHER = "OTHER"


class FeeCurrency(str, enum.Enum):
    """
    Denomination of a trade fee.

    ASSET means the fee was charged in units of the traded asset.
    """

    GBP = "GBP"
    ZAR = "ZAR"
    ASSET = "ASSET"


class FxSource(str, enum.Enum):
    """Provenance of the GBP/ZAR rate used to value a trade."""

    USER = "USER"  # Supplied with the trade
    EXTERNAL = "EXTERNAL"  # Looked up from the FX provider
    NONE = "NONE"  # No conversion was needed


# =============================================================================
# TAX ENUMS
# =============================================================================


class MatchRule(str, enum.Enum):
    """
    HMRC share identification rules, in the order they are applied.
    """

    SAME_DAY = "SAME_DAY"
    WITHIN_30_DAYS = "WITHIN_30_DAYS"
    SECTION_104 = "SECTION_104"
