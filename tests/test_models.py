"""
Tests for Pondok Ledger models

Test strategy:
1. Unit tests for individual components (models, aggregator, validator)
2. Integration tests for the ledger service (in-memory storage)
3. No real API calls in tests (Sheets and Cloudinary are mocked)
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from src.models.ledger import (
    Category,
    InstitutionSettings,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    amount_from_input,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for ledger records."""

    def test_category_creation(self):
        """Test Category gets an id and strips whitespace."""
        category = Category(name="  SPP Santri  ", type=TransactionType.INCOME)
        assert category.name == "SPP Santri"
        assert category.id

    def test_category_is_frozen(self):
        """Test that stored records cannot be edited in place."""
        category = Category(name="Belanja Dapur", type=TransactionType.EXPENSE)
        with pytest.raises(ValidationError):
            category.name = "Dapur"

    def test_transaction_type_wire_values(self):
        """Test the values existing stores contain."""
        assert TransactionType("pemasukan") is TransactionType.INCOME
        assert TransactionType("pengeluaran") is TransactionType.EXPENSE
        assert TransactionType.INCOME.label == "Pemasukan"

    def test_transaction_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Transaction(
                date=date(2024, 3, 1),
                type=TransactionType.INCOME,
                category_id="c1",
                amount=Decimal("-100"),
            )

    def test_transaction_rejects_non_finite_amount(self):
        """Test that NaN and infinity never become amounts."""
        for bad in ("NaN", "Infinity"):
            with pytest.raises(ValueError):
                TransactionDraft(
                    date=date(2024, 3, 1),
                    type=TransactionType.EXPENSE,
                    category_id="c1",
                    amount=Decimal(bad),
                )

    def test_transaction_truncates_iso_datetime(self):
        """Test that only the calendar date of an ISO datetime is kept."""
        transaction = Transaction(
            date="2024-03-31T23:30:00.000Z",
            type=TransactionType.INCOME,
            category_id="c1",
            amount=100,
        )
        assert transaction.date == date(2024, 3, 31)

    def test_transaction_accepts_camel_case_keys(self):
        """Test loading records written by the browser app."""
        transaction = Transaction.model_validate({
            "id": "abc1234",
            "date": "2024-03-01T00:00:00.000Z",
            "type": "pengeluaran",
            "categoryId": "cat-1",
            "amount": 60000,
            "description": "Listrik",
            "createdAt": "2024-03-01T08:15:00.000Z",
        })
        assert transaction.category_id == "cat-1"
        assert transaction.created_at == datetime(2024, 3, 1, 8, 15)
        assert transaction.created_at.tzinfo is None

    def test_aware_created_at_normalized_to_utc(self):
        """Test that aware creation times become naive UTC."""
        transaction = Transaction(
            date=date(2024, 3, 1),
            type=TransactionType.INCOME,
            category_id="c1",
            amount=1,
            created_at=datetime(2024, 3, 1, 7, 0, tzinfo=timezone.utc),
        )
        assert transaction.created_at == datetime(2024, 3, 1, 7, 0)

    def test_replaced_by_keeps_identity(self):
        """Test whole-record replacement keeps id and created_at."""
        original = Transaction(
            date=date(2024, 3, 1),
            type=TransactionType.INCOME,
            category_id="c1",
            amount=100,
        )
        draft = TransactionDraft(
            date=date(2024, 3, 2),
            type=TransactionType.EXPENSE,
            category_id="c2",
            amount=Decimal("250"),
            description="Ganti",
        )
        updated = original.replaced_by(draft)
        assert updated.id == original.id
        assert updated.created_at == original.created_at
        assert updated.type is TransactionType.EXPENSE
        assert updated.amount == Decimal("250")

    def test_institution_settings_defaults(self):
        """Test the default report header."""
        settings = InstitutionSettings()
        assert settings.name == "Pondok Pesantren Al-Hidayah"
        assert settings.treasurer_name == "Ahmad Syafi'i"
        assert settings.logo_url is None

    def test_amount_from_input_keeps_fractions(self):
        """Test that amounts with sen survive the number widget."""
        assert amount_from_input(12500.5) == Decimal("12500.5")
        assert amount_from_input(0.25) == Decimal("0.25")

    def test_amount_from_input_keeps_stored_amount(self):
        """Test that an untouched widget value returns the stored Decimal."""
        stored = Decimal("1500000.10")
        assert amount_from_input(float(stored), stored) is stored
        assert amount_from_input(1600000.0, stored) == Decimal("1600000.0")

    def test_institution_settings_camel_case_and_empty_logo(self):
        """Test browser-format settings with an empty logo."""
        settings = InstitutionSettings.model_validate({
            "name": "Pondok Darul Ilmi",
            "address": "Jl. Melati 5",
            "treasurerName": "Fatimah",
            "logoUrl": "",
        })
        assert settings.treasurer_name == "Fatimah"
        assert settings.logo_url is None


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            description="Settings saved",
        )
        assert event.event_type == AuditEventType.SETTINGS_UPDATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Transaction recorded",
            details={"type": "pemasukan", "amount": "100000"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_created"
        assert log_dict["details"]["amount"] == "100000"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.transaction_deleted("tx-1")
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "transaction_deleted"
        assert row[5] == "tx-1"
        assert row[10] == "True"

    def test_audit_event_builder_transaction_created(self):
        """Test AuditEventBuilder.transaction_created."""
        correlation_id = uuid4()

        event = AuditEventBuilder.transaction_created(
            transaction_id="tx-1",
            transaction_type="pemasukan",
            amount="100000",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.entity_type == "transaction"
        assert event.entity_id == "tx-1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_category_delete_rejected(self):
        """Test a refused deletion is a warning."""
        event = AuditEventBuilder.category_delete_rejected("cat-1", usage_count=3)
        assert event.severity == AuditSeverity.WARNING
        assert event.details["usage_count"] == 3


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="category_id",
                    issue_type="missing",
                    message="Kategori wajib dipilih",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="type",
                    issue_type="type_mismatch",
                    message="Jenis berbeda",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
