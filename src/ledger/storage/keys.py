"""
Key layout for the ledger.

    trade:<id>                              -> Trade JSON
    by-asset:<asset>:<padded ts>:<id>       -> marker
    by-taxyear:<label>:<padded ts>:<id>     -> marker

Index keys sort chronologically within their prefix because timestamps are
zero-padded to a fixed width.
"""

from src.ledger.enums import AssetSymbol
from src.ledger.model.trade import Trade, pad_ts

TRADE_PREFIX = "trade:"
ASSET_INDEX_PREFIX = "by-asset:"
TAX_YEAR_INDEX_PREFIX = "by-taxyear:"
INDEX_MARKER = "1"


def trade_key(trade_id: str) -> str:
    """Primary record key."""
    return f"{TRADE_PREFIX}{trade_id}"


def trade_id_from_key(key: str) -> str:
    """Recover the trade id from a primary record key."""
    return key.removeprefix(TRADE_PREFIX)


def asset_index_prefix(asset: AssetSymbol) -> str:
    """Prefix of every asset index entry for one asset."""
    return f"{ASSET_INDEX_PREFIX}{asset.value}:"


def tax_year_index_prefix(label: str) -> str:
    """Prefix of every tax-year index entry for one tax year."""
    return f"{TAX_YEAR_INDEX_PREFIX}{label}:"


def index_keys(trade: Trade) -> tuple[str, str]:
    """Both secondary index keys for a trade, derived from its current fields."""
    ts = pad_ts(trade.ts)
    return (
        f"{asset_index_prefix(trade.asset)}{ts}:{trade.id}",
        f"{tax_year_index_prefix(trade.tax_year)}{ts}:{trade.id}",
    )


def trade_id_from_index_key(key: str) -> str:
    """
    Recover the trade id from an index key.

    Ids never contain ':' so the id is everything after the last separator.
    """
    return key.rsplit(":", 1)[1]
