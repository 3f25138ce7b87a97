"""Trade ledger persistence."""

from src.ledger.storage.kv import (
    InMemoryKeyValueStore,
    SqliteKeyValueStore,
    build_key_value_store,
)
from src.ledger.storage.ledger_store import LedgerStore

__all__ = [
    "InMemoryKeyValueStore",
    "LedgerStore",
    "SqliteKeyValueStore",
    "build_key_value_store",
]
