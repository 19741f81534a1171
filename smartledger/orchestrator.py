"""
Main Orchestrator for SmartLedger

This module ties together all the components and defines the end-to-end
flows of a ledger session:
1. Manual entry (keypad -> form -> normalize -> ledger)
2. Text parsing (text -> AI draft -> normalize -> ledger, no review)
3. Image parsing (image -> AI drafts -> batch review -> commit selected)
4. Settings and backups

DESIGN DECISION: The session enforces the boundaries:
- Nothing reaches the ledger except through the normalizer
- Image results always pause in the batch for human review
- One entry mode at a time, and no entry while an AI call is running
- Every ledger change and reconciliation decision is audited
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from smartledger.agents import (
    CredentialMissingError,
    ParsingError,
    TransactionParsingAgent,
)
from smartledger.audit import AuditLogger, create_correlation_id
from smartledger.config import AppSettings, get_settings
from smartledger.ingestion import (
    AppendToCandidate,
    CandidateBatch,
    CandidateNormalizer,
    EditCandidate,
    EditExisting,
    EmptyParseResultError,
    EntryForm,
    ModeConflictError,
    ModeController,
    NewManual,
)
from smartledger.keypad import FeedbackDispatcher
from smartledger.keypad.feedback import HapticSink, SoundSink
from smartledger.keypad.evaluator import to_minor_units
from smartledger.ledger import Ledger, TransactionNotFoundError
from smartledger.models import (
    AuditEventBuilder,
    BudgetSettings,
    CandidateReview,
    Transaction,
    TransactionDraft,
    TransactionKind,
)
from smartledger.queries import (
    CategoryTotal,
    DayGroup,
    LedgerSummary,
    LedgerTotals,
    expense_by_category,
    group_by_day,
    search,
    summarize,
    totals,
)
from smartledger.services.backup import (
    ImportRejectedError,
    backup_filename,
    export_transactions,
    parse_backup,
)
from smartledger.services.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueAuditStorage,
    KeyValueLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from smartledger.validation import DraftValidator


class SessionBusyError(Exception):
    """An AI parse is in progress; entry actions are disabled until it ends."""
    pass


class IngestionOutcome(str, Enum):
    SINGLE_DRAFT_COMMITTED = "single_draft_committed"
    BATCH_READY = "batch_ready"
    NOTHING_RECOGNIZED = "nothing_recognized"
    CREDENTIAL_MISSING = "credential_missing"
    SERVICE_FAILURE = "service_failure"
    IGNORED = "ignored"


class IngestionResult(BaseModel):
    """What happened to one text or image submission."""

    outcome: IngestionOutcome
    transactions: list[Transaction] = Field(default_factory=list)
    candidate_count: int = 0
    message: Optional[str] = None
    correlation_id: Optional[UUID] = None


class EntryResult(BaseModel):
    """Where a completed keypad entry went."""

    mode: str
    transaction: Optional[Transaction] = None
    candidate_index: Optional[int] = None
    remaining_budget_minor_units: Optional[int] = None


class LedgerSession:
    """
    One user's ledger session.

    Settings and the ledger are loaded once at construction. All mutation
    goes through this object.

    Usage:
        session = create_session()
        session.begin_new_entry()
        session.entry_keypad.press_many("25")
        result = await session.finish_keypad_entry()
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        agent: Optional[TransactionParsingAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
        haptic: Optional[HapticSink] = None,
        sound: Optional[SoundSink] = None,
    ):
        self._storage = storage
        self._app = app_settings or get_settings().app
        self._audit = audit_logger or AuditLogger()
        self._agent = agent or TransactionParsingAgent(api_key_provider=storage.load_api_key)

        self._settings = storage.load_settings()
        self._feedback = FeedbackDispatcher(self._settings, haptic=haptic, sound=sound)

        self._ledger = Ledger(storage)
        self._ledger.load()

        self._normalizer = CandidateNormalizer(self._app)
        self._batch = CandidateBatch()
        self._modes = ModeController(
            feedback=self._feedback,
            settle_delay_seconds=self._app.commit_settle_delay_seconds,
        )
        self._processing = False
        self._batch_correlation_id: Optional[UUID] = None

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self._ledger.transactions

    @property
    def settings(self) -> BudgetSettings:
        return self._settings

    @property
    def batch(self) -> CandidateBatch:
        return self._batch

    @property
    def modes(self) -> ModeController:
        return self._modes

    @property
    def entry_form(self) -> Optional[EntryForm]:
        return self._modes.form

    @property
    def entry_keypad(self):
        return self._modes.keypad

    @property
    def is_processing(self) -> bool:
        return self._processing

    def _require_not_busy(self) -> None:
        if self._processing:
            raise SessionBusyError("AI parsing in progress")

    def _log_created(
        self,
        tx: Transaction,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self._audit.log_transaction_created(
            transaction_id=tx.id,
            kind=tx.kind.value if isinstance(tx.kind, TransactionKind) else str(tx.kind),
            amount_minor_units=tx.amount_minor_units,
            source=source,
            correlation_id=correlation_id,
        )

    def _require_no_candidate_entry(self) -> None:
        if isinstance(self._modes.mode, (EditCandidate, AppendToCandidate)):
            raise ModeConflictError("Finish or cancel the candidate entry first")

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def _apply_settings(self, **changes) -> BudgetSettings:
        updated = self._settings.model_copy(update=changes)
        self._storage.save_settings(updated)
        self._settings = updated
        self._feedback.settings = updated
        self._audit.log(AuditEventBuilder.settings_changed(changes))
        return updated

    def update_budget(self, text: str) -> bool:
        """
        Set the monthly budget from decimal text ("3000", "2500.50").

        Invalid or negative input is ignored. Returns whether it was applied.
        """
        try:
            value = Decimal((text or "").strip())
        except InvalidOperation:
            return False
        if not value.is_finite() or value < 0:
            return False
        self._apply_settings(monthly_budget_minor_units=to_minor_units(value))
        return True

    def toggle_sound(self) -> bool:
        return self._apply_settings(sound_enabled=not self._settings.sound_enabled).sound_enabled

    def toggle_haptics(self) -> bool:
        return self._apply_settings(
            haptics_enabled=not self._settings.haptics_enabled
        ).haptics_enabled

    def save_api_key(self, api_key: str) -> None:
        self._storage.save_api_key(api_key)
        self._audit.log(AuditEventBuilder.settings_changed({"api_key": "updated"}))

    # =========================================================================
    # ENTRY WORKFLOW
    # =========================================================================

    def begin_new_entry(self, now: Optional[datetime] = None) -> EntryForm:
        self._require_not_busy()
        return self._modes.begin_new_manual(now)

    def begin_edit_transaction(self, transaction_id: str) -> EntryForm:
        self._require_not_busy()
        tx = self._ledger.get(transaction_id)
        if tx is None:
            raise TransactionNotFoundError(f"Transaction not found: {transaction_id}")
        return self._modes.begin_edit_existing(tx)

    def begin_edit_candidate(self, index: int, now: Optional[datetime] = None) -> EntryForm:
        self._require_not_busy()
        return self._modes.begin_edit_candidate(index, self._batch[index], now)

    def begin_append_candidate(self, now: Optional[datetime] = None) -> EntryForm:
        self._require_not_busy()
        return self._modes.begin_append_to_batch(now)

    def cancel_entry(self) -> None:
        self._modes.reset()

    async def finish_keypad_entry(self, now: Optional[datetime] = None) -> EntryResult:
        """Press OK on the active keypad and route the amount."""
        self._require_not_busy()
        keypad = self._modes.keypad
        if keypad is None:
            raise ModeConflictError("No entry in progress")
        amount = await keypad.complete()
        return self.complete_entry(amount, now)

    def complete_entry(self, amount_minor_units: int, now: Optional[datetime] = None) -> EntryResult:
        """
        Route a completed amount according to the active mode.

        The mode is reset only after the target write succeeded; on a
        StorageError the entry stays open.
        """
        self._require_not_busy()
        mode = self._modes.mode
        form = self._modes.form
        if form is None:
            raise ModeConflictError("No entry in progress")

        amount = abs(int(amount_minor_units))

        if isinstance(mode, EditCandidate):
            result = self._complete_candidate_edit(mode.index, amount, form)
        elif isinstance(mode, AppendToCandidate):
            result = self._complete_candidate_append(amount, form)
        elif isinstance(mode, NewManual):
            result = self._complete_new_manual(amount, form, now)
        elif isinstance(mode, EditExisting):
            result = self._complete_edit_existing(mode.transaction_id, amount, form, now)
        else:
            raise ModeConflictError("No entry in progress")

        self._modes.reset()
        return result

    def _form_draft(self, amount: int, form: EntryForm, note: str) -> TransactionDraft:
        return TransactionDraft(
            amount_minor_units=amount,
            kind=form.kind,
            category=form.category,
            note=note,
            tags=form.tags(),
            occurred_at=form.occurred_at,
            confidence=1.0,
        )

    def _complete_candidate_edit(self, index: int, amount: int, form: EntryForm) -> EntryResult:
        current = self._batch[index]
        draft = self._form_draft(amount, form, form.note.strip() or current.note)
        self._batch.replace(index, draft)
        self._audit.log(AuditEventBuilder.candidate_edited(index, self._batch_correlation_id))
        return EntryResult(mode="edit_candidate", candidate_index=index)

    def _complete_candidate_append(self, amount: int, form: EntryForm) -> EntryResult:
        tags = form.tags()
        note = form.note.strip() or ("" if tags else self._app.manual_note)
        draft = self._form_draft(amount, form, note)
        if form.refund and form.kind == TransactionKind.EXPENSE:
            draft = draft.model_copy(update={"amount_minor_units": -amount})
        index = self._batch.append(draft)
        self._audit.log(AuditEventBuilder.candidate_appended(index, self._batch_correlation_id))
        return EntryResult(mode="append_candidate", candidate_index=index)

    def _complete_new_manual(
        self,
        amount: int,
        form: EntryForm,
        now: Optional[datetime],
    ) -> EntryResult:
        tx = self._normalizer.normalize(self._form_draft(amount, form, form.note), now=now)
        self._ledger.add(tx)
        self._log_created(tx, "manual")

        remaining = None
        if tx.kind == TransactionKind.EXPENSE and tx.amount_minor_units > 0:
            remaining = self.summary(today=(now or datetime.now()).date()).remaining_budget_minor_units
        return EntryResult(
            mode="new_manual",
            transaction=tx,
            remaining_budget_minor_units=remaining,
        )

    def _complete_edit_existing(
        self,
        transaction_id: str,
        amount: int,
        form: EntryForm,
        now: Optional[datetime],
    ) -> EntryResult:
        existing = self._ledger.get(transaction_id)
        if existing is None:
            self._modes.reset()
            raise TransactionNotFoundError(f"Transaction not found: {transaction_id}")
        tx = self._normalizer.normalize(
            self._form_draft(amount, form, form.note),
            now=now,
            transaction_id=existing.id,
            created_at=existing.created_at,
        )
        self._ledger.replace(tx)
        self._audit.log(AuditEventBuilder.transaction_updated(tx.id, tx.amount_minor_units))
        return EntryResult(mode="edit_existing", transaction=tx)

    def delete_editing_transaction(self) -> Transaction:
        """Delete the transaction open in the edit form."""
        self._require_not_busy()
        mode = self._modes.mode
        if not isinstance(mode, EditExisting):
            raise ModeConflictError("No ledger transaction is being edited")
        removed = self._ledger.remove(mode.transaction_id)
        self._audit.log(AuditEventBuilder.transaction_deleted(removed.id))
        self._modes.reset()
        return removed

    # =========================================================================
    # AI INGESTION
    # =========================================================================

    def _parse_failure(
        self,
        error: ParsingError,
        source: str,
        correlation_id: UUID,
    ) -> IngestionResult:
        if isinstance(error, CredentialMissingError):
            self._audit.log(AuditEventBuilder.parse_credential_missing(source, correlation_id))
            return IngestionResult(
                outcome=IngestionOutcome.CREDENTIAL_MISSING,
                message="Gemini API key missing or rejected",
                correlation_id=correlation_id,
            )
        self._audit.log(AuditEventBuilder.parse_failed(source, str(error), correlation_id))
        return IngestionResult(
            outcome=IngestionOutcome.SERVICE_FAILURE,
            message=str(error),
            correlation_id=correlation_id,
        )

    def _nothing_recognized(self, source: str, correlation_id: UUID) -> IngestionResult:
        self._audit.log(AuditEventBuilder.parse_nothing_recognized(source, correlation_id))
        return IngestionResult(
            outcome=IngestionOutcome.NOTHING_RECOGNIZED,
            correlation_id=correlation_id,
        )

    async def submit_text(self, text: str, now: Optional[datetime] = None) -> IngestionResult:
        """
        Parse one transaction from text and commit it directly.

        Text parses skip batch review: the single draft is normalized and
        appended to the ledger.
        """
        if not (text or "").strip():
            return IngestionResult(outcome=IngestionOutcome.IGNORED)
        self._require_not_busy()

        correlation_id = create_correlation_id()
        self._processing = True
        try:
            draft = await self._agent.parse_text(text.strip())
        except ParsingError as e:
            return self._parse_failure(e, "text", correlation_id)
        finally:
            self._processing = False

        if draft is None:
            return self._nothing_recognized("text", correlation_id)

        self._audit.log(AuditEventBuilder.parse_completed("text", 1, correlation_id))
        tx = self._normalizer.normalize(draft, now=now)
        self._ledger.add(tx)
        self._log_created(tx, "text", correlation_id)
        return IngestionResult(
            outcome=IngestionOutcome.SINGLE_DRAFT_COMMITTED,
            transactions=[tx],
            candidate_count=1,
            correlation_id=correlation_id,
        )

    async def submit_image(
        self,
        image: Union[bytes, str],
        mime_type: str = "image/jpeg",
    ) -> IngestionResult:
        """
        Parse every transaction in an image into the review batch.

        Any previous batch is dropped before the call, so a failed or empty
        parse leaves an empty batch. A non-empty result becomes the new batch
        with all items selected.
        """
        self._require_not_busy()
        self._require_no_candidate_entry()
        self._drop_batch()

        correlation_id = create_correlation_id()
        self._processing = True
        try:
            drafts = await self._agent.parse_image(image, mime_type)
        except ParsingError as e:
            return self._parse_failure(e, "image", correlation_id)
        finally:
            self._processing = False

        try:
            self._batch.receive(drafts)
        except EmptyParseResultError:
            return self._nothing_recognized("image", correlation_id)

        self._batch_correlation_id = correlation_id
        self._audit.log(AuditEventBuilder.parse_completed("image", len(drafts), correlation_id))
        self._audit.log(AuditEventBuilder.batch_received(len(drafts), correlation_id))
        return IngestionResult(
            outcome=IngestionOutcome.BATCH_READY,
            candidate_count=len(drafts),
            correlation_id=correlation_id,
        )

    # =========================================================================
    # BATCH REVIEW
    # =========================================================================

    def toggle_candidate(self, index: int) -> bool:
        return self._batch.toggle(index)

    def select_all_candidates(self) -> None:
        self._batch.select_all()

    def review_batch(self, today: Optional[date] = None) -> list[CandidateReview]:
        """Drafts with their selection state and review findings."""
        validator = DraftValidator(self._app, existing=self._ledger.transactions)
        return [
            CandidateReview(
                index=index,
                draft=draft,
                selected=self._batch.is_selected(index),
                validation=validator.validate(draft, today),
            )
            for index, draft in enumerate(self._batch.drafts)
        ]

    def commit_selected_candidates(self, now: Optional[datetime] = None) -> list[Transaction]:
        """Commit the selected candidates in batch order with one ledger write."""
        self._require_not_busy()
        self._require_no_candidate_entry()
        try:
            committed = self._batch.commit(self._normalizer, self._ledger, now=now)
        except StorageError as e:
            self._audit.log_error(
                error_type="batch_commit_failed",
                error_message=str(e),
                correlation_id=self._batch_correlation_id,
            )
            raise

        if committed:
            for tx in committed:
                self._log_created(tx, "batch", self._batch_correlation_id)
            self._audit.log(AuditEventBuilder.batch_committed(
                [tx.id for tx in committed],
                remaining=len(self._batch),
                correlation_id=self._batch_correlation_id,
            ))
        return committed

    def discard_selected_candidates(self) -> int:
        self._require_not_busy()
        self._require_no_candidate_entry()
        discarded = self._batch.discard_selected()
        if discarded:
            self._audit.log(AuditEventBuilder.batch_discarded(
                discarded,
                remaining=len(self._batch),
                correlation_id=self._batch_correlation_id,
            ))
        return discarded

    def abandon_batch_for_manual_entry(self, now: Optional[datetime] = None) -> EntryForm:
        """Drop the batch (and any open entry) and start a blank manual entry."""
        self._require_not_busy()
        self._modes.reset()
        self._drop_batch()
        return self._modes.begin_new_manual(now)

    def _drop_batch(self) -> None:
        discarded = len(self._batch)
        self._batch.clear()
        if discarded:
            self._audit.log(AuditEventBuilder.batch_discarded(
                discarded,
                remaining=0,
                correlation_id=self._batch_correlation_id,
            ))
        self._batch_correlation_id = None

    # =========================================================================
    # BACKUP
    # =========================================================================

    def export_backup(self, today: Optional[date] = None) -> tuple[str, str]:
        """
        Returns:
            (filename, JSON payload)
        """
        payload = export_transactions(self._ledger.transactions)
        self._audit.log(AuditEventBuilder.backup_exported(len(self._ledger)))
        return backup_filename(today), payload

    def import_backup(self, payload: Union[str, bytes]) -> int:
        """
        Replace the ledger with a backup.

        Raises:
            ImportRejectedError: The payload is invalid (ledger unchanged)
            ModeConflictError: An entry is open; finish or cancel it first
        """
        self._require_not_busy()
        if not self._modes.is_idle:
            raise ModeConflictError("Finish or cancel the open entry before importing")
        try:
            transactions = parse_backup(payload)
        except ImportRejectedError as e:
            self._audit.log(AuditEventBuilder.backup_rejected(str(e)))
            raise
        self._ledger.replace_all(transactions)
        self._audit.log(AuditEventBuilder.backup_imported(len(transactions)))
        return len(transactions)

    # =========================================================================
    # FIGURES
    # =========================================================================

    def summary(self, today: Optional[date] = None) -> LedgerSummary:
        return summarize(self._ledger.transactions, self._settings, today)

    def totals(self) -> LedgerTotals:
        return totals(self._ledger.transactions)

    def category_breakdown(self, limit: Optional[int] = None) -> list[CategoryTotal]:
        return expense_by_category(
            self._ledger.transactions,
            limit or self._app.top_category_count,
        )

    def search(self, term: Optional[str]) -> list[Transaction]:
        return search(self._ledger.transactions, term)

    def day_groups(self, term: Optional[str] = None) -> list[DayGroup]:
        return group_by_day(self.search(term))


def create_session(
    data_file: Optional[Union[str, Path]] = None,
    use_file_storage: bool = True,
    app_settings: Optional[AppSettings] = None,
) -> LedgerSession:
    """
    Factory function to create a ready session.

    Args:
        data_file: JSON file for the key-value store (defaults to
                   StorageSettings.data_file)
        use_file_storage: Set to False to keep everything in memory
                          (testing, demos)
    """
    if use_file_storage:
        store = JsonFileKeyValueStore(data_file or get_settings().storage.data_file)
    else:
        store = InMemoryKeyValueStore()

    storage = KeyValueLedgerStorage(store)
    audit_logger = AuditLogger(KeyValueAuditStorage(store))
    return LedgerSession(
        storage=storage,
        audit_logger=audit_logger,
        app_settings=app_settings,
    )
