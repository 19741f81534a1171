"""Read-only figures and listings over the ledger."""

from smartledger.queries.aggregator import (
    CategoryTotal,
    DayGroup,
    LedgerSummary,
    LedgerTotals,
    balance,
    expense_by_category,
    group_by_day,
    monthly_expense,
    remaining_budget,
    search,
    summarize,
    totals,
)

__all__ = [
    "CategoryTotal",
    "DayGroup",
    "LedgerSummary",
    "LedgerTotals",
    "balance",
    "expense_by_category",
    "group_by_day",
    "monthly_expense",
    "remaining_budget",
    "search",
    "summarize",
    "totals",
]
