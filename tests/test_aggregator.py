"""
Tests for the ledger aggregator.

The aggregator is pure, so every test builds its own snapshot.
"""

import pytest
from datetime import date, datetime
from decimal import Decimal

from src.models.ledger import Category, Transaction, TransactionType
from src.reports.aggregator import (
    MONTH_NAMES,
    AggregationError,
    available_years,
    month_bounds,
    recent_transactions,
    sort_for_display,
    summarize_month,
    summarize_year,
)


INCOME = TransactionType.INCOME
EXPENSE = TransactionType.EXPENSE


def tx(day: date, type_: TransactionType, category_id: str, amount, **extra) -> Transaction:
    return Transaction(
        date=day,
        type=type_,
        category_id=category_id,
        amount=Decimal(str(amount)),
        **extra,
    )


@pytest.fixture
def categories():
    return [
        Category(id="A", name="Donasi", type=INCOME),
        Category(id="B", name="Listrik", type=EXPENSE),
    ]


class TestSummarizeMonth:
    """Tests for monthly totals and breakdowns."""

    def test_donation_and_electricity_scenario(self, categories):
        """Test the basic income/expense month."""
        transactions = [
            tx(date(2024, 3, 1), INCOME, "A", 100000),
            tx(date(2024, 3, 15), EXPENSE, "B", 40000),
        ]

        summary = summarize_month(transactions, categories, 2024, 2)

        assert summary.total_income == Decimal("100000")
        assert summary.total_expense == Decimal("40000")
        assert summary.balance == Decimal("60000")
        assert [(c.name, c.total) for c in summary.income_breakdown] == [("Donasi", Decimal("100000"))]
        assert [(c.name, c.total) for c in summary.expense_breakdown] == [("Listrik", Decimal("40000"))]
        assert summary.period_start == date(2024, 3, 1)
        assert summary.period_end == date(2024, 3, 31)

    def test_empty_input_gives_zero_summary(self, categories):
        """Test that no transactions means zeros and empty lists."""
        summary = summarize_month([], categories, 2024, 0)
        assert summary.total_income == 0
        assert summary.total_expense == 0
        assert summary.balance == 0
        assert summary.income_breakdown == ()
        assert summary.expense_breakdown == ()
        assert summary.transactions == ()

    def test_month_boundaries_are_inclusive(self, categories):
        """Test first and last day belong to the month, neighbours don't."""
        transactions = [
            tx(date(2024, 1, 31), INCOME, "A", 1),
            tx(date(2024, 2, 1), INCOME, "A", 10),
            tx(date(2024, 2, 29), INCOME, "A", 100),
            tx(date(2024, 3, 1), INCOME, "A", 1000),
        ]
        summary = summarize_month(transactions, categories, 2024, 1)
        assert summary.total_income == Decimal("110")
        assert len(summary.transactions) == 2

    def test_iso_datetime_counts_by_written_date(self, categories):
        """Test a late-evening datetime stays in its written month."""
        late = Transaction(
            date="2024-03-31T23:59:59.000Z",
            type=INCOME,
            category_id="A",
            amount=500,
        )
        assert summarize_month([late], categories, 2024, 2).total_income == Decimal("500")
        assert summarize_month([late], categories, 2024, 3).total_income == 0

    def test_unknown_category_counts_in_totals_only(self, categories):
        """Test a dangling category id reaches the totals but no breakdown."""
        transactions = [
            tx(date(2024, 3, 5), INCOME, "A", 100),
            tx(date(2024, 3, 6), INCOME, "deleted", 50),
            tx(date(2024, 3, 7), EXPENSE, "deleted", 20),
        ]
        summary = summarize_month(transactions, categories, 2024, 2)
        assert summary.total_income == Decimal("150")
        assert summary.total_expense == Decimal("20")
        assert [c.category_id for c in summary.income_breakdown] == ["A"]
        assert summary.expense_breakdown == ()

    def test_breakdowns_sum_to_totals(self, categories):
        """Test breakdown totals equal type totals for consistent data."""
        transactions = [
            tx(date(2024, 5, d), INCOME if d % 2 else EXPENSE, "A" if d % 2 else "B", d * 1000)
            for d in range(1, 29)
        ]
        summary = summarize_month(transactions, categories, 2024, 4)
        assert sum(c.total for c in summary.income_breakdown) == summary.total_income
        assert sum(c.total for c in summary.expense_breakdown) == summary.total_expense
        assert summary.balance == summary.total_income - summary.total_expense

    def test_zero_total_categories_are_excluded(self, categories):
        """Test categories without activity don't appear."""
        summary = summarize_month(
            [tx(date(2024, 3, 1), INCOME, "A", 100)], categories, 2024, 2
        )
        assert summary.expense_breakdown == ()

    def test_breakdown_follows_category_order_and_declared_type(self):
        """Test breakdown uses the given order and each category's own type."""
        categories = [
            Category(id="Z", name="Zakat", type=INCOME),
            Category(id="S", name="SPP", type=INCOME),
        ]
        transactions = [
            tx(date(2024, 3, 1), INCOME, "S", 10),
            # Recorded as expense against an income category
            tx(date(2024, 3, 2), EXPENSE, "Z", 5),
        ]
        summary = summarize_month(transactions, categories, 2024, 2)
        assert [c.name for c in summary.income_breakdown] == ["Zakat", "SPP"]
        assert summary.total_expense == Decimal("5")

    def test_same_date_transactions_all_included(self, categories):
        """Test several entries on one day are all counted."""
        transactions = [tx(date(2024, 3, 10), INCOME, "A", 1) for _ in range(5)]
        summary = summarize_month(transactions, categories, 2024, 2)
        assert summary.total_income == Decimal("5")
        assert summary.transactions == tuple(transactions)

    def test_idempotent(self, categories):
        """Test identical input gives identical output."""
        transactions = [
            tx(date(2024, 3, 1), INCOME, "A", "100000.50"),
            tx(date(2024, 3, 15), EXPENSE, "B", "0.25"),
        ]
        assert summarize_month(transactions, categories, 2024, 2) == summarize_month(
            transactions, categories, 2024, 2
        )

    @pytest.mark.parametrize("month_index", [-1, 12])
    def test_month_index_out_of_range(self, categories, month_index):
        """Test an invalid month selector is a programming error."""
        with pytest.raises(ValueError):
            summarize_month([], categories, 2024, month_index)

    def test_non_date_fails_fast(self, categories):
        """Test a corrupt date raises instead of being skipped."""
        broken = Transaction.model_construct(
            id="bad", date="kemarin", type=INCOME, category_id="A",
            amount=Decimal("1"), description="", created_at=datetime(2024, 1, 1),
        )
        with pytest.raises(AggregationError):
            summarize_month([broken], categories, 2024, 0)

    def test_non_finite_amount_fails_fast(self, categories):
        """Test a corrupt amount raises instead of poisoning totals."""
        broken = Transaction.model_construct(
            id="bad", date=date(2024, 1, 3), type=INCOME, category_id="A",
            amount=Decimal("NaN"), description="", created_at=datetime(2024, 1, 1),
        )
        with pytest.raises(AggregationError):
            summarize_month([broken], categories, 2024, 0)


class TestSummarizeYear:
    """Tests for annual summaries."""

    def test_twelve_months_january_first(self):
        """Test the shape of an empty year."""
        summary = summarize_year([], 2024)
        assert len(summary.monthly_breakdown) == 12
        assert [m.month for m in summary.monthly_breakdown] == list(MONTH_NAMES)
        assert summary.monthly_breakdown[0].month == "Januari"
        assert summary.yearly_balance == 0

    def test_yearly_totals_equal_sum_of_months(self):
        """Test the yearly totals are the monthly sums."""
        transactions = [
            tx(date(2024, 1, 15), INCOME, "A", "1000.10"),
            tx(date(2024, 6, 30), EXPENSE, "B", "200.20"),
            tx(date(2024, 12, 31), INCOME, "A", "3000"),
            tx(date(2023, 12, 31), INCOME, "A", "999999"),
            tx(date(2025, 1, 1), EXPENSE, "B", "999999"),
        ]
        summary = summarize_year(transactions, 2024)

        assert summary.total_yearly_income == sum(m.total_income for m in summary.monthly_breakdown)
        assert summary.total_yearly_expense == sum(m.total_expense for m in summary.monthly_breakdown)
        assert summary.total_yearly_income == Decimal("4000.10")
        assert summary.total_yearly_expense == Decimal("200.20")
        assert summary.yearly_balance == Decimal("3799.90")
        assert summary.monthly_breakdown[5].balance == Decimal("-200.20")

    def test_year_matches_monthly_summaries(self, categories):
        """Test annual months agree with summarize_month."""
        transactions = [
            tx(date(2024, m, 1), INCOME, "A", m * 100) for m in range(1, 13)
        ] + [
            tx(date(2024, m, 28), EXPENSE, "B", m * 10) for m in range(1, 13)
        ]
        annual = summarize_year(transactions, 2024)
        for month in annual.monthly_breakdown:
            monthly = summarize_month(transactions, categories, 2024, month.month_index)
            assert month.total_income == monthly.total_income
            assert month.total_expense == monthly.total_expense
            assert month.balance == monthly.balance


class TestDisplayHelpers:
    """Tests for ordering and period helpers."""

    def test_month_bounds_leap_year(self):
        """Test February in a leap year."""
        assert month_bounds(2024, 1) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(2023, 1) == (date(2023, 2, 1), date(2023, 2, 28))

    def test_sort_for_display_newest_first(self):
        """Test date then creation time ordering."""
        older = tx(date(2024, 3, 1), INCOME, "A", 1, created_at=datetime(2024, 3, 1, 9))
        same_day_later = tx(date(2024, 3, 1), INCOME, "A", 2, created_at=datetime(2024, 3, 1, 10))
        newest = tx(date(2024, 3, 2), INCOME, "A", 3, created_at=datetime(2024, 3, 1, 8))
        assert sort_for_display([older, newest, same_day_later]) == [newest, same_day_later, older]

    def test_recent_transactions_limit(self):
        """Test the dashboard's latest entries."""
        transactions = [tx(date(2024, 3, d), INCOME, "A", d) for d in range(1, 11)]
        recent = recent_transactions(transactions, limit=5)
        assert [t.date.day for t in recent] == [10, 9, 8, 7, 6]

    def test_available_years_includes_current(self):
        """Test the report year picker options."""
        transactions = [
            tx(date(2022, 5, 1), INCOME, "A", 1),
            tx(date(2024, 5, 1), INCOME, "A", 1),
        ]
        assert available_years(transactions, 2025) == [2025, 2024, 2022]
        assert available_years([], 2025) == [2025]
