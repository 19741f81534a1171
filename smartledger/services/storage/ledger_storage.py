"""
Ledger Storage on top of a Key-Value Store

Transactions, user settings, the saved API key and the audit trail each live
under their own key as a JSON document.

TOLERANCE RULES:
- Missing key (first run) -> empty list / default settings / None
- Malformed document -> same fallback, logged as a warning
- A single malformed transaction inside an otherwise valid list is skipped
  and logged; the rest still load
- Writes propagate StorageError
"""

import json
from typing import Optional

import structlog
from pydantic import ValidationError

from smartledger.config import get_settings
from smartledger.models.audit import AuditEvent
from smartledger.models.transaction import BudgetSettings, Transaction
from smartledger.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStore,
    LedgerStorageInterface,
)


logger = structlog.get_logger(__name__)


def _dump(payload) -> str:
    return json.dumps(payload, ensure_ascii=False)


class KeyValueLedgerStorage(LedgerStorageInterface):
    """LedgerStorageInterface backed by any KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        default_settings: Optional[BudgetSettings] = None,
    ):
        self._store = store
        self._keys = get_settings().storage
        if default_settings is None:
            default_settings = BudgetSettings(
                monthly_budget_minor_units=get_settings().app.default_monthly_budget_minor_units,
            )
        self._default_settings = default_settings

    def _read_json(self, key: str):
        raw = self._store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("stored_document_malformed", key=key, error=str(e))
            return None

    def load_transactions(self) -> list[Transaction]:
        data = self._read_json(self._keys.transactions_key)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning(
                "stored_document_malformed",
                key=self._keys.transactions_key,
                error="expected a list",
            )
            return []

        transactions = []
        for position, item in enumerate(data):
            try:
                transactions.append(Transaction.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "stored_transaction_skipped",
                    position=position,
                    error=str(e),
                )
        return transactions

    def save_transactions(self, transactions: list[Transaction]) -> None:
        payload = [tx.model_dump(mode="json") for tx in transactions]
        self._store.set(self._keys.transactions_key, _dump(payload))

    def load_settings(self) -> BudgetSettings:
        data = self._read_json(self._keys.settings_key)
        if data is None:
            return self._default_settings.model_copy()
        try:
            return BudgetSettings.model_validate(data)
        except ValidationError as e:
            logger.warning("stored_settings_invalid", error=str(e))
            return self._default_settings.model_copy()

    def save_settings(self, settings: BudgetSettings) -> None:
        self._store.set(self._keys.settings_key, _dump(settings.model_dump(mode="json")))

    def load_api_key(self) -> Optional[str]:
        value = self._store.get(self._keys.api_key_key)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def save_api_key(self, api_key: str) -> None:
        self._store.set(self._keys.api_key_key, api_key.strip())


class KeyValueAuditStorage(AuditStorageInterface):
    """
    Append-only audit trail stored as one JSON list.

    The list is capped at StorageSettings.max_audit_events; the oldest
    events are dropped first.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._key = get_settings().storage.audit_key
        self._max_events = get_settings().storage.max_audit_events

    def _read_events(self) -> list[dict]:
        raw = self._store.get(self._key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return []
        return data if isinstance(data, list) else []

    def append_event(self, event: AuditEvent) -> bool:
        events = self._read_events()
        events.append(event.model_dump(mode="json"))
        if self._max_events and len(events) > self._max_events:
            events = events[-self._max_events:]
        self._store.set(self._key, _dump(events))
        return True

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        recent = []
        for item in reversed(self._read_events()):
            if len(recent) >= limit:
                break
            try:
                recent.append(AuditEvent.model_validate(item))
            except ValidationError:
                continue
        return recent
