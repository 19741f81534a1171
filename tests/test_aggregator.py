"""Tests for ledger figures, search and grouping."""

from datetime import date, datetime

from smartledger.models import BudgetSettings, Category, TransactionKind
from smartledger.queries import (
    balance,
    expense_by_category,
    group_by_day,
    monthly_expense,
    remaining_budget,
    search,
    summarize,
    totals,
)


TODAY = date(2024, 5, 15)


class TestFigures:

    def test_headline_figures(self, make_transaction):
        """Expense 100.00 and income 300.00 this month against a 500.00 budget."""
        txs = [
            make_transaction(10000),
            make_transaction(30000, kind=TransactionKind.INCOME, category=Category.SALARY),
        ]
        settings = BudgetSettings(monthly_budget_minor_units=50000)
        assert balance(txs) == 20000
        assert monthly_expense(txs, TODAY) == 10000
        assert remaining_budget(txs, settings, TODAY) == 40000

    def test_refund_reduces_expense_and_raises_balance(self, make_transaction):
        txs = [make_transaction(10000), make_transaction(-2500, tags=["refund"])]
        assert monthly_expense(txs, TODAY) == 7500
        assert balance(txs) == -7500

    def test_other_months_excluded(self, make_transaction):
        txs = [
            make_transaction(1000),
            make_transaction(5000, occurred_at=datetime(2024, 4, 30, 23, 59)),
            make_transaction(7000, occurred_at=datetime(2023, 5, 10)),
        ]
        assert monthly_expense(txs, TODAY) == 1000
        assert balance(txs) == -13000

    def test_unknown_kind_adds_to_balance(self, make_transaction):
        txs = [make_transaction(400, kind="LOAN")]
        assert balance(txs) == 400
        assert totals(txs).income_minor_units == 0

    def test_over_budget(self, make_transaction):
        summary = summarize(
            [make_transaction(60000)],
            BudgetSettings(monthly_budget_minor_units=50000),
            TODAY,
        )
        assert summary.remaining_budget_minor_units == -10000
        assert summary.is_over_budget
        assert summary.transaction_count == 1

    def test_summarize_accepts_datetime(self, make_transaction, now):
        summary = summarize([make_transaction(100)], BudgetSettings(), now)
        assert summary.monthly_expense_minor_units == 100

    def test_empty_ledger(self):
        summary = summarize([], BudgetSettings(), TODAY)
        assert summary.balance_minor_units == 0
        assert summary.remaining_budget_minor_units == 500000

    def test_totals(self, make_transaction):
        result = totals([
            make_transaction(300),
            make_transaction(1000, kind=TransactionKind.INCOME),
        ])
        assert result.expense_minor_units == 300
        assert result.income_minor_units == 1000
        assert result.net_minor_units == 700


class TestCategoryBreakdown:

    def test_largest_first_with_limit(self, make_transaction):
        txs = [
            make_transaction(100, category=Category.FOOD),
            make_transaction(500, category=Category.TRANSPORT),
            make_transaction(300, category=Category.FOOD),
            make_transaction(50, category=Category.SHOPPING),
        ]
        breakdown = expense_by_category(txs, limit=2)
        assert [(c.category, c.amount_minor_units) for c in breakdown] == [
            (Category.TRANSPORT, 500),
            (Category.FOOD, 400),
        ]
        assert breakdown[1].label == "餐饮"

    def test_refunds_and_income_left_out(self, make_transaction):
        txs = [
            make_transaction(-200, tags=["refund"]),
            make_transaction(900, kind=TransactionKind.INCOME, category=Category.SALARY),
        ]
        assert expense_by_category(txs) == []

    def test_raw_category_grouped(self, make_transaction):
        txs = [make_transaction(100, category="Pets"), make_transaction(200, category="Pets")]
        [only] = expense_by_category(txs)
        assert only.category == "Pets"
        assert only.label == "Pets"
        assert only.amount_minor_units == 300


class TestSearch:

    def test_blank_term_returns_all(self, make_transaction):
        txs = [make_transaction(), make_transaction()]
        assert search(txs, "  ") == txs
        assert search(txs, None) == txs

    def test_note_case_insensitive(self, make_transaction):
        coffee = make_transaction(note="Starbucks Coffee")
        txs = [coffee, make_transaction(note="taxi")]
        assert search(txs, "coffee") == [coffee]

    def test_category_label_and_raw_value(self, make_transaction):
        ride = make_transaction(category=Category.TRANSPORT)
        txs = [ride, make_transaction(category=Category.FOOD)]
        assert search(txs, "交通") == [ride]
        assert search(txs, "transport") == [ride]

    def test_amount_forms(self, make_transaction):
        lunch = make_transaction(1250)
        txs = [lunch, make_transaction(999)]
        assert search(txs, "12.50") == [lunch]
        assert search(txs, "12.5") == [lunch]

    def test_no_match(self, make_transaction):
        assert search([make_transaction(note="rent")], "xyz") == []


class TestGroupByDay:

    def test_most_recent_day_first(self, make_transaction):
        early = make_transaction(100, occurred_at=datetime(2024, 5, 1, 9))
        late_a = make_transaction(200, occurred_at=datetime(2024, 5, 3, 8))
        late_b = make_transaction(
            700, kind=TransactionKind.INCOME, occurred_at=datetime(2024, 5, 3, 20),
        )
        groups = group_by_day([early, late_a, late_b])

        assert [g.day for g in groups] == [date(2024, 5, 3), date(2024, 5, 1)]
        assert [tx.id for tx in groups[0].transactions] == [late_a.id, late_b.id]
        assert groups[0].expense_minor_units == 200
        assert groups[0].income_minor_units == 700

    def test_ledger_order_kept_within_day(self, make_transaction):
        """A later insert with an earlier time of day still comes second."""
        evening = make_transaction(100, occurred_at=datetime(2024, 5, 3, 21))
        morning = make_transaction(200, occurred_at=datetime(2024, 5, 3, 7))
        [group] = group_by_day([evening, morning])
        assert [tx.id for tx in group.transactions] == [evening.id, morning.id]

    def test_empty(self):
        assert group_by_day([]) == []
