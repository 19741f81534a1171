"""Storage services package."""

from smartledger.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStore,
    LedgerStorageInterface,
    StorageConnectionError,
    StorageError,
)
from smartledger.services.storage.key_value import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from smartledger.services.storage.ledger_storage import (
    KeyValueAuditStorage,
    KeyValueLedgerStorage,
)

__all__ = [
    "AuditStorageInterface",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueAuditStorage",
    "KeyValueLedgerStorage",
    "KeyValueStore",
    "LedgerStorageInterface",
    "StorageConnectionError",
    "StorageError",
]
