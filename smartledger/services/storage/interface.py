"""
Abstract Storage Interfaces

DESIGN DECISION: Business logic talks to these interfaces only.
The persistence engine underneath is a plain get/set key-value service; the
ledger storage layers JSON documents on top of it.

The interface is intentionally small. The ledger is always written as a whole
list (replace-whole-list semantics), never row by row.
"""

from abc import ABC, abstractmethod
from typing import Optional

from smartledger.models.audit import AuditEvent
from smartledger.models.transaction import BudgetSettings, Transaction


class KeyValueStore(ABC):
    """A string-to-string store (the local storage engine)."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key was never set."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Raises:
            StorageError: If the write fails
        """
        pass


class LedgerStorageInterface(ABC):
    """
    Persistence collaborator for the ledger and user settings.

    Loads MUST tolerate first runs and malformed data by returning an empty
    list / default settings. Saves raise StorageError on failure.
    """

    @abstractmethod
    def load_transactions(self) -> list[Transaction]:
        pass

    @abstractmethod
    def save_transactions(self, transactions: list[Transaction]) -> None:
        pass

    @abstractmethod
    def load_settings(self) -> BudgetSettings:
        pass

    @abstractmethod
    def save_settings(self, settings: BudgetSettings) -> None:
        pass

    @abstractmethod
    def load_api_key(self) -> Optional[str]:
        """API key saved from the settings screen, if any."""
        pass

    @abstractmethod
    def save_api_key(self, api_key: str) -> None:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Could not reach the storage backend."""
    pass
