"""
Ingestion Mode Controller

Exactly one entry mode is active at a time. The mode decides where the
keypad's completed amount goes:

    Idle               no entry in progress
    NewManual          create a ledger transaction
    EditExisting(id)   replace a ledger transaction
    EditCandidate(i)   replace batch item i
    AppendToCandidate  add a manual item to the batch

DESIGN DECISION: Modes are plain frozen dataclasses and the controller only
allows entering a mode from Idle. Whoever finishes an entry (commit, cancel,
delete) calls reset().
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from smartledger.keypad.feedback import FeedbackDispatcher
from smartledger.keypad.keypad import AmountKeypad
from smartledger.models.transaction import (
    TAG_REFUND,
    TAG_REIMBURSABLE,
    Category,
    CategoryValue,
    KindValue,
    Transaction,
    TransactionDraft,
    TransactionKind,
)


class ModeConflictError(Exception):
    """An entry mode was requested while another entry is in progress."""
    pass


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class NewManual:
    pass


@dataclass(frozen=True)
class EditExisting:
    transaction_id: str


@dataclass(frozen=True)
class EditCandidate:
    index: int


@dataclass(frozen=True)
class AppendToCandidate:
    pass


EntryMode = Union[Idle, NewManual, EditExisting, EditCandidate, AppendToCandidate]


@dataclass
class EntryForm:
    """
    The fields of the entry form.

    amount_minor_units is always an absolute value while editing; the
    sign is decided by the refund flag at commit time.
    """
    amount_minor_units: int = 0
    kind: KindValue = TransactionKind.EXPENSE
    category: CategoryValue = Category.FOOD
    note: str = ""
    occurred_at: datetime = field(default_factory=datetime.now)
    reimbursable: bool = False
    refund: bool = False

    def set_amount(self, minor_units: int) -> None:
        self.amount_minor_units = minor_units

    def tags(self) -> list[str]:
        tags = []
        if self.reimbursable:
            tags.append(TAG_REIMBURSABLE)
        if self.refund:
            tags.append(TAG_REFUND)
        return tags

    @classmethod
    def blank(cls, now: Optional[datetime] = None) -> "EntryForm":
        return cls(occurred_at=now or datetime.now())

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "EntryForm":
        return cls(
            amount_minor_units=abs(tx.amount_minor_units),
            kind=tx.kind,
            category=tx.category,
            note=tx.note,
            occurred_at=tx.occurred_at,
            reimbursable=tx.is_reimbursable,
            refund=tx.is_refund,
        )

    @classmethod
    def from_draft(cls, draft: TransactionDraft, now: Optional[datetime] = None) -> "EntryForm":
        return cls(
            amount_minor_units=abs(draft.amount_minor_units),
            kind=draft.kind,
            category=draft.category or Category.OTHER,
            note=draft.note,
            occurred_at=draft.occurred_at or now or datetime.now(),
            reimbursable=draft.is_reimbursable,
            refund=draft.is_refund or (
                draft.kind == TransactionKind.EXPENSE and draft.amount_minor_units < 0
            ),
        )


class ModeController:
    """
    Tracks the active entry mode, its form and its keypad.

    Usage:
        controller.begin_new_manual()
        controller.keypad.press_many("42")
        amount = await controller.keypad.complete()
        ... route by controller.mode ...
        controller.reset()
    """

    def __init__(
        self,
        feedback: Optional[FeedbackDispatcher] = None,
        settle_delay_seconds: float = 0.0,
    ):
        self._feedback = feedback or FeedbackDispatcher()
        self._settle_delay = settle_delay_seconds
        self._mode: EntryMode = Idle()
        self._form: Optional[EntryForm] = None
        self._keypad: Optional[AmountKeypad] = None

    @property
    def mode(self) -> EntryMode:
        return self._mode

    @property
    def is_idle(self) -> bool:
        return isinstance(self._mode, Idle)

    @property
    def form(self) -> Optional[EntryForm]:
        return self._form

    @property
    def keypad(self) -> Optional[AmountKeypad]:
        return self._keypad

    def _enter(self, mode: EntryMode, form: EntryForm) -> EntryForm:
        if not self.is_idle:
            raise ModeConflictError(
                f"Cannot start {type(mode).__name__} while {type(self._mode).__name__} is active"
            )
        self._mode = mode
        self._form = form
        self._keypad = AmountKeypad(
            initial_minor_units=form.amount_minor_units,
            on_change=form.set_amount,
            feedback=self._feedback,
            settle_delay_seconds=self._settle_delay,
        )
        return form

    def begin_new_manual(self, now: Optional[datetime] = None) -> EntryForm:
        return self._enter(NewManual(), EntryForm.blank(now))

    def begin_edit_existing(self, tx: Transaction) -> EntryForm:
        return self._enter(EditExisting(tx.id), EntryForm.from_transaction(tx))

    def begin_edit_candidate(
        self,
        index: int,
        draft: TransactionDraft,
        now: Optional[datetime] = None,
    ) -> EntryForm:
        return self._enter(EditCandidate(index), EntryForm.from_draft(draft, now))

    def begin_append_to_batch(self, now: Optional[datetime] = None) -> EntryForm:
        return self._enter(AppendToCandidate(), EntryForm.blank(now))

    def reset(self) -> None:
        self._mode = Idle()
        self._form = None
        self._keypad = None
