"""
Candidate Normalizer

The single gate between a TransactionDraft and a committed Transaction.
Manual entry, text parsing and image parsing all pass through here, so the
sign, note and date rules are applied identically whatever the source.

SIGN RULES (Expense only; every other kind is stored as an absolute value):
1. Tagged refund            -> -abs(amount)
2. Untagged, raw negative   -> kept negative (the source already reconciled it)
3. Otherwise                -> abs(amount)

NOTE RULES (first match wins):
1. The draft's own non-blank note
2. Reimbursable tag -> reimbursement note
3. Refund tag       -> refund note
4. Default note
"""

from datetime import datetime
from typing import Iterable, Optional
from uuid import uuid4

from smartledger.config import AppSettings, get_settings
from smartledger.models.transaction import (
    TAG_REFUND,
    TAG_REIMBURSABLE,
    KindValue,
    Transaction,
    TransactionDraft,
    TransactionKind,
    canonical_tags,
    coerce_category,
    coerce_kind,
    to_local_naive,
)


def signed_amount(amount_minor_units: int, kind: KindValue, tags: Iterable[str]) -> int:
    """Apply the sign rules to a raw amount."""
    if kind == TransactionKind.EXPENSE:
        if TAG_REFUND in tags:
            return -abs(amount_minor_units)
        if amount_minor_units < 0:
            return amount_minor_units
    return abs(amount_minor_units)


class CandidateNormalizer:
    """
    Turns drafts into transactions.

    Usage:
        normalizer = CandidateNormalizer()
        tx = normalizer.normalize(draft)
        txs = normalizer.normalize_many(drafts)   # one shared timestamp
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self.settings = settings or get_settings().app

    def resolve_note(self, note: str, tags: Iterable[str]) -> str:
        note = (note or "").strip()
        if note:
            return note
        tags = list(tags)
        if TAG_REIMBURSABLE in tags:
            return self.settings.reimbursement_note
        if TAG_REFUND in tags:
            return self.settings.refund_note
        return self.settings.default_note

    def normalize(
        self,
        draft: TransactionDraft,
        now: Optional[datetime] = None,
        transaction_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Transaction:
        """
        Produce a committed Transaction from a draft.

        Args:
            draft: The candidate to commit
            now: Commit time (defaults to the current local time). Used for
                created_at and as the date when the draft has none.
            transaction_id: Keep an existing id (editing); a fresh one is
                generated otherwise
            created_at: Keep an existing creation time (editing)
        """
        now = to_local_naive(now) if now else datetime.now()

        tags = canonical_tags(draft.tags)
        kind = coerce_kind(draft.kind)
        category = coerce_category(draft.category)

        return Transaction(
            id=transaction_id or uuid4().hex,
            amount_minor_units=signed_amount(draft.amount_minor_units, kind, tags),
            kind=kind,
            category=category,
            note=self.resolve_note(draft.note, tags),
            occurred_at=draft.occurred_at or now,
            created_at=created_at or now,
            tags=tags,
        )

    def normalize_many(
        self,
        drafts: Iterable[TransactionDraft],
        now: Optional[datetime] = None,
    ) -> list[Transaction]:
        """Normalize a batch, in order, with one shared commit time."""
        now = to_local_naive(now) if now else datetime.now()
        return [self.normalize(draft, now=now) for draft in drafts]
