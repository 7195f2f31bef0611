"""
Ledger Aggregator

DESIGN DECISION: Aggregation is a set of PURE functions.
They receive an explicit snapshot of transactions and categories plus a
period selector and return new summary models. No storage access, no
clock, no global state.

The dashboard, the reports page and the PDF export all read the same
numbers, so they can never disagree with each other.

CRITICAL: Money is summed as Decimal. Float arithmetic would make the
yearly total drift from the sum of the monthly totals.
"""

import calendar
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from src.models.ledger import (
    AnnualSummary,
    Category,
    CategoryTotal,
    MonthlyBreakdown,
    MonthlySummary,
    Transaction,
    TransactionType,
)


MONTH_NAMES = (
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
)

ZERO = Decimal("0")


class AggregationError(Exception):
    """A transaction reached the aggregator with unusable data."""
    pass


# =============================================================================
# INPUT CHECKS
# =============================================================================

def _calendar_date(transaction: Transaction) -> date:
    value: Any = transaction.date
    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, date):
        raise AggregationError(
            f"Transaction {transaction.id} has a non-date value: {value!r}"
        )
    return value


def _amount(transaction: Transaction) -> Decimal:
    value: Any = transaction.amount
    if isinstance(value, bool) or not isinstance(value, (Decimal, int, float)):
        raise AggregationError(
            f"Transaction {transaction.id} has a non-numeric amount: {value!r}"
        )
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if not amount.is_finite():
        raise AggregationError(
            f"Transaction {transaction.id} has a non-finite amount: {value!r}"
        )
    return amount


# =============================================================================
# PERIODS
# =============================================================================

def month_bounds(year: int, month_index: int) -> tuple[date, date]:
    """
    First and last calendar day of a month.

    Args:
        year: Four-digit year
        month_index: 0 for January through 11 for December

    Raises:
        ValueError: If month_index is outside 0..11
    """
    if not 0 <= month_index <= 11:
        raise ValueError(f"month_index must be between 0 and 11, got {month_index}")
    month = month_index + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _type_totals(transactions: Iterable[Transaction]) -> tuple[Decimal, Decimal]:
    income = ZERO
    expense = ZERO
    for t in transactions:
        if t.type is TransactionType.INCOME:
            income += _amount(t)
        else:
            expense += _amount(t)
    return income, expense


# =============================================================================
# SUMMARIES
# =============================================================================

def summarize_month(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
    year: int,
    month_index: int,
) -> MonthlySummary:
    """
    Totals and per-category breakdowns for one calendar month.

    Transactions are selected by calendar date within the closed range
    [first day, last day]. Transactions whose category no longer exists
    count towards the type totals but appear in neither breakdown.

    Returns:
        MonthlySummary with the filtered transactions in input order

    Raises:
        ValueError: If month_index is outside 0..11
        AggregationError: If a transaction carries a non-date date or a
            non-finite amount
    """
    start, end = month_bounds(year, month_index)

    in_period = tuple(
        t for t in transactions
        if start <= _calendar_date(t) <= end
    )
    total_income, total_expense = _type_totals(in_period)

    by_category: dict[str, Decimal] = {}
    for t in in_period:
        by_category[t.category_id] = by_category.get(t.category_id, ZERO) + _amount(t)

    income_breakdown = []
    expense_breakdown = []
    for category in categories:
        total = by_category.get(category.id, ZERO)
        if total == ZERO:
            continue
        item = CategoryTotal(
            category_id=category.id,
            name=category.name,
            type=category.type,
            total=total,
        )
        if category.type is TransactionType.INCOME:
            income_breakdown.append(item)
        else:
            expense_breakdown.append(item)

    return MonthlySummary(
        year=year,
        month_index=month_index,
        period_start=start,
        period_end=end,
        total_income=total_income,
        total_expense=total_expense,
        balance=total_income - total_expense,
        income_breakdown=tuple(income_breakdown),
        expense_breakdown=tuple(expense_breakdown),
        transactions=in_period,
    )


def summarize_year(
    transactions: Iterable[Transaction],
    year: int,
) -> AnnualSummary:
    """
    Twelve monthly income/expense totals for a year, January first.

    The yearly totals are the sums of the monthly totals.
    """
    per_month: list[list[Transaction]] = [[] for _ in range(12)]
    for t in transactions:
        day = _calendar_date(t)
        if day.year == year:
            per_month[day.month - 1].append(t)

    breakdown = []
    for month_index, month_transactions in enumerate(per_month):
        income, expense = _type_totals(month_transactions)
        breakdown.append(
            MonthlyBreakdown(
                month=MONTH_NAMES[month_index],
                month_index=month_index,
                total_income=income,
                total_expense=expense,
                balance=income - expense,
            )
        )

    total_income = sum((m.total_income for m in breakdown), ZERO)
    total_expense = sum((m.total_expense for m in breakdown), ZERO)

    return AnnualSummary(
        year=year,
        monthly_breakdown=tuple(breakdown),
        total_yearly_income=total_income,
        total_yearly_expense=total_expense,
        yearly_balance=total_income - total_expense,
    )


# =============================================================================
# DISPLAY HELPERS
# =============================================================================

def sort_for_display(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Newest date first; same-day entries newest created first."""
    return sorted(
        transactions,
        key=lambda t: (_calendar_date(t), t.created_at),
        reverse=True,
    )


def recent_transactions(
    transactions: Iterable[Transaction],
    limit: int = 5,
) -> list[Transaction]:
    """The latest `limit` transactions in display order."""
    return sort_for_display(transactions)[:max(limit, 0)]


def available_years(
    transactions: Iterable[Transaction],
    current_year: Optional[int] = None,
) -> list[int]:
    """Years that have transactions (plus the current year), newest first."""
    years = {_calendar_date(t).year for t in transactions}
    if current_year is not None:
        years.add(current_year)
    return sorted(years, reverse=True)
