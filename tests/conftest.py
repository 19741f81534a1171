"""Test fixtures for SmartLedger."""

import os
from datetime import datetime
from uuid import uuid4

import pytest

# Set test environment before importing app modules
os.environ["SMARTLEDGER_COMMIT_SETTLE_DELAY_SECONDS"] = "0"

from smartledger.config import AppSettings, get_settings
from smartledger.ingestion import CandidateNormalizer
from smartledger.ledger import Ledger
from smartledger.models import Category, Transaction, TransactionDraft, TransactionKind
from smartledger.services.storage import (
    InMemoryKeyValueStore,
    KeyValueLedgerStorage,
    StorageError,
)


get_settings.cache_clear()


@pytest.fixture
def now():
    """A fixed 'current time' in the middle of a month."""
    return datetime(2024, 5, 15, 12, 30)


@pytest.fixture
def app_settings():
    return AppSettings(commit_settle_delay_seconds=0)


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def storage(kv_store):
    return KeyValueLedgerStorage(kv_store)


@pytest.fixture
def ledger(storage):
    ledger = Ledger(storage)
    ledger.load()
    return ledger


@pytest.fixture
def normalizer(app_settings):
    return CandidateNormalizer(app_settings)


@pytest.fixture
def make_draft():
    """Factory for drafts with sensible defaults."""
    def _make(amount=1000, kind=TransactionKind.EXPENSE, category=Category.FOOD, **kwargs):
        return TransactionDraft(
            amount_minor_units=amount,
            kind=kind,
            category=category,
            **kwargs,
        )
    return _make


@pytest.fixture
def make_transaction(now):
    """Factory for committed transactions."""
    def _make(amount=1000, kind=TransactionKind.EXPENSE, category=Category.FOOD, **kwargs):
        kwargs.setdefault("id", uuid4().hex)
        kwargs.setdefault("occurred_at", now)
        kwargs.setdefault("created_at", now)
        return Transaction(
            amount_minor_units=amount,
            kind=kind,
            category=category,
            **kwargs,
        )
    return _make


class FailingStorage(KeyValueLedgerStorage):
    """Ledger storage whose writes fail on demand."""

    def __init__(self):
        super().__init__(InMemoryKeyValueStore())
        self.fail_writes = False

    def save_transactions(self, transactions):
        if self.fail_writes:
            raise StorageError("disk full")
        super().save_transactions(transactions)


@pytest.fixture
def failing_storage():
    return FailingStorage()
