"""
Storage Layer for the visitor ledger

Provides:
- LedgerStore abstraction (InMemory for tests, JSON file for real runs)
- Scoped persist-or-discard transactions
- Path and driver configuration
"""

from .store import (
    LedgerStore,
    LedgerTransaction,
    InMemoryLedgerStore,
    JsonFileLedgerStore,
    StoreError,
    ConcurrencyError,
    create_store,
    ensure_data_files,
)
from .config import StoreConfig, StoreDriver, get_store_driver

__all__ = [
    "LedgerStore",
    "LedgerTransaction",
    "InMemoryLedgerStore",
    "JsonFileLedgerStore",
    "StoreError",
    "ConcurrencyError",
    "create_store",
    "ensure_data_files",
    "StoreConfig",
    "StoreDriver",
    "get_store_driver",
]
