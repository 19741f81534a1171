"""
Candidate Review Checks

DESIGN DECISION: AI drafts are shown to the user before they are committed,
and this validator annotates them with anything worth a second look:

- zero amount (nothing was read)
- low parser confidence
- a date in the future
- a kind or category outside the known enumerations
- a negative income (the normalizer will store it as positive)
- a likely duplicate of something already in the ledger

IMPORTANT: Validation NEVER fixes or blocks anything.
It reports for human review; the normalizer decides what gets stored.
"""

from datetime import date, timedelta
from typing import Iterable, Optional

from smartledger.config import AppSettings, get_settings
from smartledger.keypad.evaluator import format_minor_units
from smartledger.models.review import ValidationIssue, ValidationResult
from smartledger.models.transaction import (
    Category,
    Transaction,
    TransactionDraft,
    TransactionKind,
)


class DraftValidator:
    """
    Reviews drafts before commit.

    Args:
        existing: Ledger transactions for duplicate detection.
                  If None, duplicate checking is skipped.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        existing: Optional[Iterable[Transaction]] = None,
    ):
        self._settings = settings or get_settings().app
        self._existing = list(existing) if existing is not None else None

    def validate(self, draft: TransactionDraft, today: Optional[date] = None) -> ValidationResult:
        today = today or date.today()
        issues: list[ValidationIssue] = []

        if draft.amount_minor_units == 0:
            issues.append(ValidationIssue(
                field="amount_minor_units",
                issue_type="zero_amount",
                message="Amount is zero",
                severity="warning",
                suggested_fix="Enter the amount with the keypad",
            ))

        if draft.confidence < self._settings.low_confidence_threshold:
            issues.append(ValidationIssue(
                field="confidence",
                issue_type="low_confidence",
                message=f"Recognition confidence is low ({draft.confidence:.0%})",
                severity="warning",
                suggested_fix="Check amount and category against the original",
            ))

        if draft.occurred_at is not None:
            latest = today + timedelta(days=self._settings.future_date_tolerance_days)
            if draft.occurred_at.date() > latest:
                issues.append(ValidationIssue(
                    field="occurred_at",
                    issue_type="future_date",
                    message=f"Date {draft.occurred_at.date().isoformat()} is in the future",
                    severity="warning",
                    suggested_fix="Verify the year and month",
                ))

        if not isinstance(draft.kind, TransactionKind):
            issues.append(ValidationIssue(
                field="kind",
                issue_type="unknown_kind",
                message=f"Unrecognized type '{draft.kind}'",
                severity="warning",
                suggested_fix="Pick expense or income",
            ))
        elif draft.kind == TransactionKind.INCOME and draft.amount_minor_units < 0:
            issues.append(ValidationIssue(
                field="amount_minor_units",
                issue_type="negative_income",
                message="Income has a negative amount and will be stored as positive",
                severity="info",
            ))

        if not isinstance(draft.category, Category):
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown_category",
                message=f"Unrecognized category '{draft.category}'",
                severity="info",
                suggested_fix="Pick one of the standard categories",
            ))

        duplicate = self._find_duplicate(draft)
        if duplicate is not None:
            issues.append(ValidationIssue(
                field="transaction",
                issue_type="possible_duplicate",
                message=(
                    f"Looks like an existing entry: {duplicate.note} "
                    f"{format_minor_units(duplicate.amount_minor_units)} "
                    f"on {duplicate.occurred_at.date().isoformat()}"
                ),
                severity="warning",
                suggested_fix="Deselect it if it is already recorded",
            ))

        return ValidationResult(issues=issues)

    def _find_duplicate(self, draft: TransactionDraft) -> Optional[Transaction]:
        """Same absolute amount, same day and same note as a ledger entry."""
        if not self._existing or draft.occurred_at is None or draft.amount_minor_units == 0:
            return None
        day = draft.occurred_at.date()
        note = draft.note.strip()
        for tx in self._existing:
            if (
                abs(tx.amount_minor_units) == abs(draft.amount_minor_units)
                and tx.occurred_at.date() == day
                and tx.note.strip() == note
            ):
                return tx
        return None

    def validate_many(
        self,
        drafts: Iterable[TransactionDraft],
        today: Optional[date] = None,
    ) -> list[ValidationResult]:
        return [self.validate(draft, today) for draft in drafts]
