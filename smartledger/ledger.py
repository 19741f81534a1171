"""
Ledger

The single writer over the persisted transaction list.

DESIGN DECISION: Every mutation builds a new list, saves it whole, and only
then swaps the in-memory snapshot. If the save raises StorageError the
ledger still holds exactly what it held before.

Order is insertion order: new transactions are appended, replacements keep
their position. Display ordering (newest day first) belongs to the queries.
"""

from typing import Iterable, Optional

import structlog

from smartledger.models.transaction import Transaction
from smartledger.services.storage.interface import LedgerStorageInterface


logger = structlog.get_logger(__name__)


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class TransactionNotFoundError(LedgerError):
    """No transaction with the given id."""
    pass


class DuplicateTransactionError(LedgerError):
    """A transaction with the same id is already in the ledger."""
    pass


class Ledger:
    """
    In-memory snapshot of the ledger, kept in sync with storage.

    Usage:
        ledger = Ledger(storage)
        ledger.load()
        ledger.add(tx)
        for tx in ledger.transactions: ...
    """

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage
        self._transactions: tuple[Transaction, ...] = ()

    def load(self) -> tuple[Transaction, ...]:
        """Read the persisted list (tolerant: bad data loads as empty)."""
        self._transactions = tuple(self._storage.load_transactions())
        logger.info("ledger_loaded", count=len(self._transactions))
        return self._transactions

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self._transactions

    def __len__(self) -> int:
        return len(self._transactions)

    def __iter__(self):
        return iter(self._transactions)

    def get(self, transaction_id: str) -> Optional[Transaction]:
        for tx in self._transactions:
            if tx.id == transaction_id:
                return tx
        return None

    def _index_of(self, transaction_id: str) -> int:
        for index, tx in enumerate(self._transactions):
            if tx.id == transaction_id:
                return index
        raise TransactionNotFoundError(f"Transaction not found: {transaction_id}")

    def _commit(self, transactions: list[Transaction]) -> None:
        self._storage.save_transactions(transactions)
        self._transactions = tuple(transactions)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add(self, tx: Transaction) -> Transaction:
        self.add_many([tx])
        return tx

    def add_many(self, transactions: Iterable[Transaction]) -> list[Transaction]:
        """
        Append transactions in the given order with one write.

        Raises:
            DuplicateTransactionError: If any id is already present (or
                repeated within the input)
        """
        transactions = list(transactions)
        if not transactions:
            return []

        seen = {tx.id for tx in self._transactions}
        for tx in transactions:
            if tx.id in seen:
                raise DuplicateTransactionError(f"Duplicate transaction id: {tx.id}")
            seen.add(tx.id)

        self._commit(list(self._transactions) + transactions)
        logger.info("ledger_appended", count=len(transactions), total=len(self._transactions))
        return transactions

    def replace(self, tx: Transaction) -> Transaction:
        """Swap in an edited transaction with the same id, keeping its position."""
        index = self._index_of(tx.id)
        updated = list(self._transactions)
        updated[index] = tx
        self._commit(updated)
        logger.info("ledger_replaced", transaction_id=tx.id)
        return tx

    def remove(self, transaction_id: str) -> Transaction:
        index = self._index_of(transaction_id)
        updated = list(self._transactions)
        removed = updated.pop(index)
        self._commit(updated)
        logger.info("ledger_removed", transaction_id=transaction_id)
        return removed

    def replace_all(self, transactions: Iterable[Transaction]) -> None:
        """Replace the whole ledger (backup import)."""
        transactions = list(transactions)
        self._commit(transactions)
        logger.info("ledger_replaced_all", count=len(transactions))
