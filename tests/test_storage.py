"""Tests for the key-value stores and the audit trail."""

import json

import pytest

from smartledger.audit import AuditLogger, create_correlation_id
from smartledger.models import AuditEventBuilder, AuditEventType, AuditSeverity
from smartledger.services.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueAuditStorage,
    KeyValueLedgerStorage,
    StorageError,
)


class TestJsonFileStore:

    def test_missing_file_is_empty(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path / "data.json")
        assert store.get("anything") is None

    def test_set_then_get(self, tmp_path):
        path = tmp_path / "nested" / "data.json"
        store = JsonFileKeyValueStore(path)
        store.set("a", "1")
        store.set("b", "二")
        assert store.get("a") == "1"
        assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1", "b": "二"}

    def test_no_temp_files_left(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path / "data.json")
        store.set("a", "1")
        assert [p.name for p in tmp_path.iterdir()] == ["data.json"]

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("not json", encoding="utf-8")
        store = JsonFileKeyValueStore(path)
        assert store.get("a") is None
        store.set("a", "1")
        assert store.get("a") == "1"

    def test_non_object_reads_as_empty(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("[1, 2]", encoding="utf-8")
        assert JsonFileKeyValueStore(path).get("0") is None

    def test_unwritable_location_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        store = JsonFileKeyValueStore(blocker / "data.json")
        with pytest.raises(StorageError):
            store.set("a", "1")

    def test_ledger_survives_restart(self, tmp_path, make_transaction):
        path = tmp_path / "data.json"
        KeyValueLedgerStorage(JsonFileKeyValueStore(path)).save_transactions(
            [make_transaction(1250, id="t1", note="午饭")]
        )
        [tx] = KeyValueLedgerStorage(JsonFileKeyValueStore(path)).load_transactions()
        assert (tx.id, tx.amount_minor_units, tx.note) == ("t1", 1250, "午饭")


class TestAuditStorage:

    def test_newest_first(self):
        storage = KeyValueAuditStorage(InMemoryKeyValueStore())
        storage.append_event(AuditEventBuilder.transaction_deleted("first"))
        storage.append_event(AuditEventBuilder.transaction_deleted("second"))
        assert [e.entity_id for e in storage.get_recent_events()] == ["second", "first"]
        assert len(storage.get_recent_events(limit=1)) == 1

    def test_capped(self, monkeypatch):
        storage = KeyValueAuditStorage(InMemoryKeyValueStore())
        monkeypatch.setattr(storage, "_max_events", 3)
        for i in range(5):
            storage.append_event(AuditEventBuilder.transaction_deleted(str(i)))
        assert [e.entity_id for e in storage.get_recent_events()] == ["4", "3", "2"]


class TestAuditLogger:

    def test_persists_events(self):
        logger = AuditLogger(KeyValueAuditStorage(InMemoryKeyValueStore()))
        logger.log_transaction_created("t1", "EXPENSE", 500, source="manual")
        [event] = logger.recent()
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.entity_id == "t1"

    def test_without_storage(self):
        logger = AuditLogger()
        assert logger.log(AuditEventBuilder.transaction_deleted("t1")) is True
        assert logger.recent() == []

    def test_storage_failure_is_swallowed(self):
        class Broken(KeyValueAuditStorage):
            def append_event(self, event):
                raise StorageError("disk full")

        logger = AuditLogger(Broken(InMemoryKeyValueStore()))
        assert logger.log(AuditEventBuilder.transaction_deleted("t1")) is False

    def test_error_severity(self):
        storage = KeyValueAuditStorage(InMemoryKeyValueStore())
        AuditLogger(storage).log_error("StorageError", "disk full")
        [event] = storage.get_recent_events()
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"

    def test_correlation_ids_unique(self):
        assert create_correlation_id() != create_correlation_id()
