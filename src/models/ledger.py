"""
Core Data Models for Pondok Ledger

These models define the schemas for every record the ledger handles:
categories, transactions, institution settings, and the summaries
produced by the aggregator.

DESIGN DECISION: Stored records (Transaction, Category) are frozen.
An update never edits a record in place; it replaces the whole record.
This lets the aggregator work on snapshots without defensive copies.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


CalendarDate = date


def generate_id() -> str:
    """Create an opaque record identifier."""
    return str(uuid4())


def coerce_calendar_date(value: Any) -> Any:
    """
    Reduce a date-like value to its calendar date.

    Records written by older revisions carry full ISO datetimes
    (e.g. "2024-03-01T17:00:00.000Z"). Only the calendar day as written
    counts; the time and offset are discarded.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10 and value[10] in "T ":
        return value[:10]
    return value


def amount_from_input(value: float, previous: Optional[Decimal] = None) -> Decimal:
    """
    Turn a number widget value into an exact amount.

    The widget works in floats. When the value still equals the stored
    amount, the stored Decimal is kept so no precision is lost.
    """
    if previous is not None and float(previous) == value:
        return previous
    return Decimal(str(value))


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of money flow.

    Values match what existing stores already contain.
    """
    INCOME = "pemasukan"
    EXPENSE = "pengeluaran"

    @property
    def label(self) -> str:
        return "Pemasukan" if self is TransactionType.INCOME else "Pengeluaran"


# =============================================================================
# STORED RECORDS
# =============================================================================

class Category(BaseModel):
    """
    A user-defined category.

    The declared type says which transactions *should* use the category.
    It is a convention, not an enforced rule: a transaction's own type
    always wins.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=generate_id,
        min_length=1,
        description="Opaque category identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name (unique by convention only)"
    )
    type: TransactionType = Field(
        ...,
        description="Declared transaction type for this category"
    )


class TransactionDraft(BaseModel):
    """
    The user-editable part of a transaction.

    Used for both create and update. Id and creation time are assigned
    by the ledger, never by the user.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: CalendarDate = Field(
        ...,
        description="Calendar date of the transaction"
    )
    type: TransactionType
    category_id: str = Field(
        default="",
        description="Referenced category id (empty means not chosen yet)"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        allow_inf_nan=False,
        description="Amount in Rupiah"
    )
    description: str = Field(
        default="",
        max_length=500,
    )

    @field_validator("date", mode="before")
    @classmethod
    def drop_time_of_day(cls, v: Any) -> Any:
        return coerce_calendar_date(v)


class Transaction(BaseModel):
    """
    A recorded income or expense.

    CRITICAL: `date` has day granularity only. Period membership is
    decided by calendar date, never by time of day.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=generate_id,
        min_length=1,
        description="Opaque transaction identifier"
    )
    date: CalendarDate = Field(
        ...,
        description="Calendar date of the transaction"
    )
    type: TransactionType = Field(
        ...,
        description="Authoritative type (may differ from the category's)"
    )
    category_id: str = Field(
        ...,
        validation_alias=AliasChoices("category_id", "categoryId"),
        description="Referenced category id (may no longer resolve)"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        allow_inf_nan=False,
        description="Amount in Rupiah"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        validation_alias=AliasChoices("created_at", "createdAt"),
        description="When the record was first created (UTC)"
    )

    @field_validator("date", mode="before")
    @classmethod
    def drop_time_of_day(cls, v: Any) -> Any:
        return coerce_calendar_date(v)

    @field_validator("created_at")
    @classmethod
    def normalize_to_naive_utc(cls, v: datetime) -> datetime:
        # Naive UTC throughout so creation times always compare
        if v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @classmethod
    def from_draft(cls, draft: TransactionDraft, **identity: Any) -> "Transaction":
        """Build a transaction from a draft plus optional id/created_at."""
        return cls(**draft.model_dump(), **identity)

    def replaced_by(self, draft: TransactionDraft) -> "Transaction":
        """Whole-record replacement that keeps identity and creation time."""
        return Transaction.from_draft(draft, id=self.id, created_at=self.created_at)

    @property
    def is_income(self) -> bool:
        return self.type is TransactionType.INCOME


class InstitutionSettings(BaseModel):
    """
    Institution identity, used only for report headers.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        default="Pondok Pesantren Al-Hidayah",
        min_length=1,
        max_length=200,
    )
    address: str = Field(
        default="Jl. Kebenaran No. 1, Kota Berkah",
        max_length=500,
    )
    treasurer_name: str = Field(
        default="Ahmad Syafi'i",
        validation_alias=AliasChoices("treasurer_name", "treasurerName"),
        max_length=200,
    )
    logo_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("logo_url", "logoUrl"),
        description="URL (or data URI) of the institution logo"
    )

    @field_validator("logo_url")
    @classmethod
    def empty_logo_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


# =============================================================================
# AGGREGATION RESULTS
# =============================================================================

class CategoryTotal(BaseModel):
    """One line of a per-category breakdown."""
    model_config = ConfigDict(frozen=True)

    category_id: str
    name: str
    type: TransactionType
    total: Decimal


class MonthlySummary(BaseModel):
    """
    Totals and breakdowns for one calendar month.

    Values are final: report consumers display them as they are.
    """
    model_config = ConfigDict(frozen=True)

    year: int
    month_index: int = Field(ge=0, le=11, description="0 = January")
    period_start: date
    period_end: date

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")

    income_breakdown: tuple[CategoryTotal, ...] = ()
    expense_breakdown: tuple[CategoryTotal, ...] = ()

    # Transactions inside the period, in input order
    transactions: tuple[Transaction, ...] = ()


class MonthlyBreakdown(BaseModel):
    """Income/expense totals for one month of an annual report."""
    model_config = ConfigDict(frozen=True)

    month: str
    month_index: int = Field(ge=0, le=11)
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")


class AnnualSummary(BaseModel):
    """Twelve monthly breakdowns (January first) plus yearly totals."""
    model_config = ConfigDict(frozen=True)

    year: int
    monthly_breakdown: tuple[MonthlyBreakdown, ...]
    total_yearly_income: Decimal = Decimal("0")
    total_yearly_expense: Decimal = Decimal("0")
    yearly_balance: Decimal = Decimal("0")


class DashboardSummary(BaseModel):
    """Current-month totals and the most recent transactions."""
    model_config = ConfigDict(frozen=True)

    month: MonthlySummary
    recent_transactions: tuple[Transaction, ...] = ()


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'unknown_category', 'type_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (required fields)
    Stage 2: Semantic validation (category lookups, sanity checks)
    """

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(default_factory=list)

    # Warnings don't block but should be shown
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
