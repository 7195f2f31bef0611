"""
Tests for the two-stage transaction validator.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from src.config import AppSettings
from src.models.ledger import Category, TransactionDraft, TransactionType
from src.services.storage import InMemoryLedgerStorage
from src.validation import TransactionValidator, get_user_friendly_summary


TODAY = date(2024, 3, 15)


@pytest.fixture
def validator():
    storage = InMemoryLedgerStorage(categories=[
        Category(id="A", name="Donasi", type=TransactionType.INCOME),
        Category(id="B", name="Listrik", type=TransactionType.EXPENSE),
    ])
    settings = AppSettings(max_transaction_amount=50_000_000, future_date_tolerance_days=0)
    return TransactionValidator(storage, settings)


def draft(**overrides) -> TransactionDraft:
    values = dict(
        date=date(2024, 3, 1),
        type=TransactionType.INCOME,
        category_id="A",
        amount=Decimal("100000"),
        description="Hamba Allah",
    )
    values.update(overrides)
    return TransactionDraft(**values)


def issue_types(result) -> list[str]:
    return [issue.issue_type for issue in result.issues]


class TestSchemaStage:
    """Tests for stage 1."""

    def test_valid_draft(self, validator):
        """Test a clean draft passes both stages."""
        result = asyncio.run(validator.validate(draft(), today=TODAY))
        assert result.is_valid
        assert result.schema_valid and result.semantic_valid
        assert result.issues == []

    def test_missing_category_is_error(self, validator):
        """Test the semantic stage is skipped when no category is chosen."""
        result = asyncio.run(validator.validate(draft(category_id=""), today=TODAY))
        assert not result.is_valid
        assert not result.schema_valid
        assert not result.semantic_valid
        assert issue_types(result) == ["missing"]

    def test_zero_amount_is_warning(self, validator):
        """Test Rp0 is allowed but flagged."""
        result = asyncio.run(validator.validate(draft(amount=0), today=TODAY))
        assert result.is_valid
        assert issue_types(result) == ["zero_amount"]
        assert result.warnings == ["Jumlah transaksi adalah Rp0"]


class TestSemanticStage:
    """Tests for stage 2."""

    def test_unknown_category_is_error(self, validator):
        """Test a category that no longer exists blocks the write."""
        result = asyncio.run(validator.validate(draft(category_id="gone"), today=TODAY))
        assert result.schema_valid
        assert not result.semantic_valid
        assert result.has_errors
        assert issue_types(result) == ["unknown_category"]

    def test_type_mismatch_is_warning_only(self, validator):
        """Test an expense against an income category is still valid."""
        result = asyncio.run(validator.validate(
            draft(type=TransactionType.EXPENSE, category_id="A"), today=TODAY
        ))
        assert result.is_valid
        assert issue_types(result) == ["type_mismatch"]
        assert "Donasi" in result.warnings[0]

    def test_future_date_is_warning(self, validator):
        """Test dates after today are flagged."""
        result = asyncio.run(validator.validate(draft(date=date(2024, 3, 16)), today=TODAY))
        assert result.is_valid
        assert issue_types(result) == ["future_date"]

    def test_today_is_not_future(self, validator):
        """Test the reference date itself is accepted."""
        result = asyncio.run(validator.validate(draft(date=TODAY), today=TODAY))
        assert result.issues == []

    def test_future_date_tolerance(self):
        """Test configured tolerance days."""
        storage = InMemoryLedgerStorage(categories=[
            Category(id="A", name="Donasi", type=TransactionType.INCOME),
        ])
        lenient = TransactionValidator(storage, AppSettings(future_date_tolerance_days=3))
        result = asyncio.run(lenient.validate(draft(date=date(2024, 3, 18)), today=TODAY))
        assert result.issues == []

    def test_large_amount_is_warning(self, validator):
        """Test unusually large amounts are flagged."""
        result = asyncio.run(validator.validate(draft(amount=Decimal("75000000")), today=TODAY))
        assert result.is_valid
        assert issue_types(result) == ["suspicious_value"]


class TestUserFriendlySummary:
    """Tests for the message shown under the form."""

    def test_valid(self, validator):
        result = asyncio.run(validator.validate(draft(), today=TODAY))
        assert get_user_friendly_summary(result) == "✅ Transaksi valid."

    def test_errors_listed_with_fixes(self, validator):
        result = asyncio.run(validator.validate(draft(category_id=""), today=TODAY))
        summary = get_user_friendly_summary(result)
        assert summary.startswith("❌ Transaksi belum bisa disimpan:")
        assert "Kategori wajib dipilih" in summary
        assert "💡" in summary

    def test_warnings_listed(self, validator):
        result = asyncio.run(validator.validate(draft(amount=0), today=TODAY))
        summary = get_user_friendly_summary(result)
        assert summary.startswith("⚠️ Mohon periksa kembali:")
        assert "Rp0" in summary
