"""End-to-end tests for the ledger session (AI agent mocked)."""

from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from smartledger.agents import CredentialMissingError, ParsingServiceError
from smartledger.audit import AuditLogger
from smartledger.ingestion import EditCandidate, EditExisting, ModeConflictError, NewManual
from smartledger.ledger import TransactionNotFoundError
from smartledger.models import AuditEventType, Category, TransactionKind
from smartledger.orchestrator import (
    IngestionOutcome,
    LedgerSession,
    SessionBusyError,
    create_session,
)
from smartledger.services.backup import ImportRejectedError
from smartledger.services.storage import (
    InMemoryKeyValueStore,
    KeyValueAuditStorage,
    StorageError,
)


@pytest.fixture
def agent():
    agent = MagicMock()
    agent.parse_text = AsyncMock(return_value=None)
    agent.parse_image = AsyncMock(return_value=[])
    return agent


@pytest.fixture
def audit_storage():
    return KeyValueAuditStorage(InMemoryKeyValueStore())


@pytest.fixture
def session(storage, agent, audit_storage, app_settings):
    return LedgerSession(
        storage,
        agent=agent,
        audit_logger=AuditLogger(audit_storage),
        app_settings=app_settings,
    )


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.get_recent_events()]


class TestManualEntry:

    @pytest.mark.asyncio
    async def test_keypad_entry_commits_expense(self, session, now):
        session.begin_new_entry(now)
        session.entry_form.note = "午饭"
        session.entry_keypad.press_many(["1", "2", "+", "3"])
        result = await session.finish_keypad_entry(now)

        assert result.mode == "new_manual"
        assert result.transaction.amount_minor_units == 1500
        assert result.transaction.note == "午饭"
        assert result.remaining_budget_minor_units == 500000 - 1500
        assert session.modes.is_idle
        assert len(session.transactions) == 1

    def test_manual_refund(self, session, now):
        form = session.begin_new_entry(now)
        form.refund = True
        result = session.complete_entry(2000, now)
        assert result.transaction.amount_minor_units == -2000
        assert result.transaction.note == "退款"
        assert result.remaining_budget_minor_units is None

    def test_edit_existing_keeps_identity(self, session, now):
        session.begin_new_entry(now)
        original = session.complete_entry(1000, now).transaction

        form = session.begin_edit_transaction(original.id)
        form.category = Category.TRANSPORT
        edited = session.complete_entry(1800, datetime(2024, 5, 20)).transaction

        assert edited.id == original.id
        assert edited.created_at == original.created_at
        assert [tx.amount_minor_units for tx in session.transactions] == [1800]
        assert session.transactions[0].category == Category.TRANSPORT

    def test_delete_editing_transaction(self, session, now, audit_storage):
        session.begin_new_entry(now)
        tx = session.complete_entry(1000, now).transaction
        session.begin_edit_transaction(tx.id)
        session.delete_editing_transaction()
        assert session.transactions == ()
        assert AuditEventType.TRANSACTION_DELETED in event_types(audit_storage)

    def test_failed_write_keeps_entry_open(self, failing_storage, agent, app_settings, now):
        session = LedgerSession(failing_storage, agent=agent, app_settings=app_settings)
        session.begin_new_entry(now)
        failing_storage.fail_writes = True
        with pytest.raises(StorageError):
            session.complete_entry(500, now)
        assert session.modes.mode == NewManual()
        assert session.transactions == ()

    def test_complete_without_entry(self, session):
        with pytest.raises(ModeConflictError):
            session.complete_entry(100)


class TestTextIngestion:

    @pytest.mark.asyncio
    async def test_text_commits_directly(self, session, agent, make_draft, now, audit_storage):
        agent.parse_text.return_value = make_draft(3500, note="", tags=["报销"])
        result = await session.submit_text("午饭 35 报销", now)

        assert result.outcome == IngestionOutcome.SINGLE_DRAFT_COMMITTED
        [tx] = session.transactions
        assert tx.amount_minor_units == 3500
        assert tx.note == "报销款"
        assert len(session.batch) == 0
        assert AuditEventType.TEXT_PARSED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_blank_text_ignored(self, session, agent):
        result = await session.submit_text("   ")
        assert result.outcome == IngestionOutcome.IGNORED
        agent.parse_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_recognized(self, session):
        result = await session.submit_text("你好")
        assert result.outcome == IngestionOutcome.NOTHING_RECOGNIZED
        assert session.transactions == ()

    @pytest.mark.asyncio
    async def test_credential_missing(self, session, agent):
        agent.parse_text.side_effect = CredentialMissingError("no key")
        result = await session.submit_text("午饭 35")
        assert result.outcome == IngestionOutcome.CREDENTIAL_MISSING
        assert not session.is_processing

    @pytest.mark.asyncio
    async def test_service_failure(self, session, agent):
        agent.parse_text.side_effect = ParsingServiceError("timeout")
        result = await session.submit_text("午饭 35")
        assert result.outcome == IngestionOutcome.SERVICE_FAILURE
        assert result.message == "timeout"

    @pytest.mark.asyncio
    async def test_entry_blocked_while_processing(self, session, agent):
        async def slow_parse(text):
            with pytest.raises(SessionBusyError):
                session.begin_new_entry()
            return None

        agent.parse_text.side_effect = slow_parse
        await session.submit_text("午饭 35")
        assert not session.is_processing


class TestImageBatch:

    @pytest.fixture
    def drafts(self, make_draft):
        return [
            make_draft(1200, note="地铁", category=Category.TRANSPORT),
            make_draft(3000, note="超市", category=Category.SHOPPING),
            make_draft(-500, note="退货", category=Category.SHOPPING),
        ]

    @pytest.mark.asyncio
    async def test_image_goes_to_review(self, session, agent, drafts):
        agent.parse_image.return_value = drafts
        result = await session.submit_image(b"img", "image/png")

        assert result.outcome == IngestionOutcome.BATCH_READY
        assert result.candidate_count == 3
        assert session.transactions == ()
        assert session.batch.selected_indices == (0, 1, 2)
        agent.parse_image.assert_awaited_once_with(b"img", "image/png")

    @pytest.mark.asyncio
    async def test_empty_image_leaves_empty_batch(self, session, agent, drafts):
        agent.parse_image.return_value = drafts
        await session.submit_image(b"first")
        agent.parse_image.return_value = []
        result = await session.submit_image(b"second")
        assert result.outcome == IngestionOutcome.NOTHING_RECOGNIZED
        assert len(session.batch) == 0

    @pytest.mark.asyncio
    async def test_failed_image_leaves_empty_batch(self, session, agent, drafts, audit_storage):
        agent.parse_image.return_value = drafts
        await session.submit_image(b"first")
        agent.parse_image.side_effect = ParsingServiceError("timeout")
        result = await session.submit_image(b"second")
        assert result.outcome == IngestionOutcome.SERVICE_FAILURE
        assert len(session.batch) == 0
        assert AuditEventType.BATCH_DISCARDED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_commit_subset(self, session, agent, drafts, now, audit_storage):
        agent.parse_image.return_value = drafts
        await session.submit_image(b"img")
        session.toggle_candidate(1)
        committed = session.commit_selected_candidates(now)

        assert [tx.amount_minor_units for tx in committed] == [1200, -500]
        assert [d.note for d in session.batch.drafts] == ["超市"]
        assert AuditEventType.BATCH_COMMITTED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_edit_candidate_then_commit(self, session, agent, drafts, now):
        agent.parse_image.return_value = drafts
        await session.submit_image(b"img")

        form = session.begin_edit_candidate(0, now)
        assert session.modes.mode == EditCandidate(0)
        form.note = ""
        result = session.complete_entry(1500)
        assert result.candidate_index == 0
        assert session.batch[0].amount_minor_units == 1500
        assert session.batch[0].note == "地铁"

        session.batch.clear_selection()
        session.toggle_candidate(0)
        [tx] = session.commit_selected_candidates(now)
        assert tx.amount_minor_units == 1500

    @pytest.mark.asyncio
    async def test_append_candidate(self, session, agent, drafts, now):
        agent.parse_image.return_value = drafts
        await session.submit_image(b"img")

        form = session.begin_append_candidate(now)
        form.kind = TransactionKind.INCOME
        result = session.complete_entry(800)
        assert result.candidate_index == 3
        assert session.batch[3].note == "手动添加"
        assert session.batch.is_selected(3)

    @pytest.mark.asyncio
    async def test_candidate_entry_blocks_commit_and_new_image(self, session, agent, drafts, now):
        agent.parse_image.return_value = drafts
        await session.submit_image(b"img")
        session.begin_edit_candidate(1, now)
        with pytest.raises(ModeConflictError):
            session.commit_selected_candidates(now)
        with pytest.raises(ModeConflictError):
            session.discard_selected_candidates()
        with pytest.raises(ModeConflictError):
            await session.submit_image(b"again")

    @pytest.mark.asyncio
    async def test_discard_selected(self, session, agent, drafts):
        agent.parse_image.return_value = drafts
        await session.submit_image(b"img")
        session.toggle_candidate(2)
        assert session.discard_selected_candidates() == 2
        assert [d.note for d in session.batch.drafts] == ["退货"]
        assert session.transactions == ()

    @pytest.mark.asyncio
    async def test_abandon_batch_for_manual_entry(self, session, agent, drafts, now):
        agent.parse_image.return_value = drafts
        await session.submit_image(b"img")
        session.abandon_batch_for_manual_entry(now)
        assert len(session.batch) == 0
        assert session.modes.mode == NewManual()

    @pytest.mark.asyncio
    async def test_review_flags_duplicates(self, session, agent, make_draft, now):
        session.begin_new_entry(now)
        session.entry_form.note = "地铁"
        session.complete_entry(1200, now)

        agent.parse_image.return_value = [
            make_draft(1200, note="地铁", occurred_at=now),
            make_draft(0),
        ]
        await session.submit_image(b"img")
        reviews = session.review_batch(today=now.date())

        assert [r.selected for r in reviews] == [True, True]
        assert reviews[0].validation.issues[0].issue_type == "possible_duplicate"
        assert reviews[1].validation.issues[0].issue_type == "zero_amount"


class TestSettingsAndBackup:

    def test_update_budget(self, session, storage):
        assert session.update_budget("2500.50") is True
        assert session.settings.monthly_budget_minor_units == 250050
        assert storage.load_settings().monthly_budget_minor_units == 250050

    def test_invalid_budget_ignored(self, session):
        assert session.update_budget("abc") is False
        assert session.update_budget("-5") is False
        assert session.settings.monthly_budget_minor_units == 500000

    def test_toggles_persist(self, session, storage):
        assert session.toggle_sound() is False
        assert session.toggle_haptics() is False
        assert storage.load_settings().sound_enabled is False

    def test_save_api_key(self, session, storage):
        session.save_api_key(" abc ")
        assert storage.load_api_key() == "abc"

    def test_backup_round_trip(self, session, now):
        for amount in (100, 200):
            session.begin_new_entry(now)
            session.complete_entry(amount, now)
        filename, payload = session.export_backup(date(2024, 5, 15))
        assert filename == "smartledger_backup_2024-05-15.json"

        before = session.transactions
        session.import_backup("[]")
        assert session.transactions == ()
        assert session.import_backup(payload) == 2
        assert session.transactions == before

    def test_import_blocked_while_editing(self, session, now):
        session.begin_new_entry(now)
        tx = session.complete_entry(1000, now).transaction
        session.begin_edit_transaction(tx.id)
        with pytest.raises(ModeConflictError):
            session.import_backup("[]")
        assert session.transactions == (tx,)
        assert session.modes.mode == EditExisting(tx.id)

    def test_vanished_edit_target_returns_to_idle(self, session, now):
        session.begin_new_entry(now)
        tx = session.complete_entry(1000, now).transaction
        session.begin_edit_transaction(tx.id)
        session.ledger.remove(tx.id)
        with pytest.raises(TransactionNotFoundError):
            session.complete_entry(500, now)
        assert session.modes.is_idle
        session.begin_new_entry(now)

    def test_rejected_import_leaves_ledger(self, session, now, audit_storage):
        session.begin_new_entry(now)
        session.complete_entry(100, now)
        with pytest.raises(ImportRejectedError):
            session.import_backup('[{"id": "x"}]')
        assert len(session.transactions) == 1
        assert AuditEventType.BACKUP_REJECTED in event_types(audit_storage)

    def test_figures(self, session, now):
        session.begin_new_entry(now)
        session.complete_entry(1000, now)
        form = session.begin_new_entry(now)
        form.kind = TransactionKind.INCOME
        form.category = Category.SALARY
        session.complete_entry(5000, now)

        assert session.summary(now.date()).balance_minor_units == 4000
        assert session.totals().net_minor_units == 4000
        assert [c.category for c in session.category_breakdown()] == [Category.FOOD]
        assert len(session.day_groups()) == 1
        assert session.search("50.00")[0].kind == TransactionKind.INCOME


class TestCreateSession:

    def test_file_backed_session_reloads(self, tmp_path, app_settings, now):
        path = tmp_path / "ledger.json"
        first = create_session(path, app_settings=app_settings)
        first.begin_new_entry(now)
        first.complete_entry(700, now)

        second = create_session(path, app_settings=app_settings)
        assert [tx.amount_minor_units for tx in second.transactions] == [700]

    def test_in_memory_session(self, app_settings):
        session = create_session(use_file_storage=False, app_settings=app_settings)
        assert session.transactions == ()
