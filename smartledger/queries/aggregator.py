"""
Ledger Aggregator

DESIGN DECISION: Every figure shown to the user is computed here, from the
transactions actually in the ledger, by pure functions. Nothing in this
module mutates its input or touches storage.

Sign conventions:
- balance: Expense subtracts, every other kind adds
- expense totals: Expense amounts as stored, so refunds (negative) reduce them
"""

from collections import defaultdict
from datetime import date, datetime
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from smartledger.keypad.evaluator import amount_to_expression, format_minor_units
from smartledger.models.transaction import (
    BudgetSettings,
    Category,
    CategoryValue,
    Transaction,
    TransactionKind,
    category_label,
)


# =============================================================================
# RESULT MODELS
# =============================================================================

class DayGroup(BaseModel):
    """Transactions of one calendar day, with the day's totals."""
    day: date
    transactions: list[Transaction] = Field(default_factory=list)
    expense_minor_units: int = 0
    income_minor_units: int = 0


class CategoryTotal(BaseModel):
    category: CategoryValue
    label: str
    amount_minor_units: int


class LedgerTotals(BaseModel):
    income_minor_units: int = 0
    expense_minor_units: int = 0

    @property
    def net_minor_units(self) -> int:
        return self.income_minor_units - self.expense_minor_units


class LedgerSummary(BaseModel):
    """Headline figures for the dashboard."""
    balance_minor_units: int
    monthly_expense_minor_units: int
    monthly_budget_minor_units: int
    remaining_budget_minor_units: int
    transaction_count: int

    @property
    def is_over_budget(self) -> bool:
        return self.remaining_budget_minor_units < 0


# =============================================================================
# FIGURES
# =============================================================================

def _category_key(category: CategoryValue) -> str:
    return category.value if isinstance(category, Category) else str(category)


def _is_expense(tx: Transaction) -> bool:
    return tx.kind == TransactionKind.EXPENSE


def _is_income(tx: Transaction) -> bool:
    return tx.kind == TransactionKind.INCOME


def balance(transactions: Iterable[Transaction]) -> int:
    """Sum of incomes minus sum of expenses."""
    total = 0
    for tx in transactions:
        if _is_expense(tx):
            total -= tx.amount_minor_units
        else:
            total += tx.amount_minor_units
    return total


def monthly_expense(
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
) -> int:
    """Expense total for the calendar month containing `today` (local time)."""
    today = today or date.today()
    return sum(
        tx.amount_minor_units
        for tx in transactions
        if _is_expense(tx)
        and tx.occurred_at.year == today.year
        and tx.occurred_at.month == today.month
    )


def remaining_budget(
    transactions: Iterable[Transaction],
    settings: BudgetSettings,
    today: Optional[date] = None,
) -> int:
    """Budget minus this month's expenses. Negative when over budget."""
    return settings.monthly_budget_minor_units - monthly_expense(transactions, today)


def totals(transactions: Iterable[Transaction]) -> LedgerTotals:
    income = 0
    expense = 0
    for tx in transactions:
        if _is_expense(tx):
            expense += tx.amount_minor_units
        elif _is_income(tx):
            income += tx.amount_minor_units
    return LedgerTotals(income_minor_units=income, expense_minor_units=expense)


def expense_by_category(
    transactions: Iterable[Transaction],
    limit: Optional[int] = None,
) -> list[CategoryTotal]:
    """
    Spending per category, largest first.

    Only positive expenses count; refunds are left out of the breakdown.
    """
    sums: dict[str, int] = defaultdict(int)
    originals: dict[str, CategoryValue] = {}
    for tx in transactions:
        if not _is_expense(tx) or tx.amount_minor_units <= 0:
            continue
        key = _category_key(tx.category)
        sums[key] += tx.amount_minor_units
        originals.setdefault(key, tx.category)

    ranked = sorted(sums.items(), key=lambda item: item[1], reverse=True)
    if limit is not None:
        ranked = ranked[:limit]

    return [
        CategoryTotal(
            category=originals[key],
            label=category_label(originals[key]),
            amount_minor_units=amount,
        )
        for key, amount in ranked
    ]


# =============================================================================
# LISTING
# =============================================================================

def _matches(tx: Transaction, term: str) -> bool:
    if term in tx.note.lower():
        return True
    if term in category_label(tx.category).lower():
        return True
    if term in _category_key(tx.category).lower():
        return True
    amount = tx.amount_minor_units
    short_form = ("-" if amount < 0 else "") + (amount_to_expression(amount) or "0")
    return term in format_minor_units(amount) or term in short_form


def search(transactions: Iterable[Transaction], term: Optional[str]) -> list[Transaction]:
    """
    Case-insensitive substring filter over note, category (display label or
    raw value) and amount ("12.50" as well as "12.5").

    A blank term returns every transaction.
    """
    transactions = list(transactions)
    term = (term or "").strip().lower()
    if not term:
        return transactions
    return [tx for tx in transactions if _matches(tx, term)]


def group_by_day(transactions: Iterable[Transaction]) -> list[DayGroup]:
    """
    Group by calendar day of occurred_at, most recent day first.

    Within a day, transactions keep their ledger order.
    """
    groups: dict[date, DayGroup] = {}
    for tx in transactions:
        day = tx.occurred_at.date()
        group = groups.get(day)
        if group is None:
            group = groups[day] = DayGroup(day=day)
        group.transactions.append(tx)
        if _is_expense(tx):
            group.expense_minor_units += tx.amount_minor_units
        elif _is_income(tx):
            group.income_minor_units += tx.amount_minor_units

    return [groups[day] for day in sorted(groups, reverse=True)]


def summarize(
    transactions: Iterable[Transaction],
    settings: BudgetSettings,
    today: Optional[date] = None,
) -> LedgerSummary:
    transactions = list(transactions)
    if isinstance(today, datetime):
        today = today.date()
    spent = monthly_expense(transactions, today)
    return LedgerSummary(
        balance_minor_units=balance(transactions),
        monthly_expense_minor_units=spent,
        monthly_budget_minor_units=settings.monthly_budget_minor_units,
        remaining_budget_minor_units=settings.monthly_budget_minor_units - spent,
        transaction_count=len(transactions),
    )
