"""
Two-Stage Transaction Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (a category must be chosen)
- Value checks the model cannot express (a zero amount)
Types, negative and non-finite amounts are already rejected by the
TransactionDraft model itself.

STAGE 2 - SEMANTIC VALIDATION:
- The referenced category exists
- Category type agrees with the transaction type
- Future date detection
- Unusually large amount detection

Stage 2 needs the record store to resolve categories, and is skipped
when stage 1 fails.

IMPORTANT: Validation NEVER silently fixes issues. A category whose
declared type differs from the transaction's is reported as a warning
only; the transaction's own type always wins.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from src.config import AppSettings, get_settings
from src.models.ledger import (
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
)
from src.services.storage import LedgerStorageInterface


class TransactionValidator:
    """
    Validates transaction drafts through a two-stage pipeline.

    Stage 1: Schema validation (no storage needed)
    Stage 2: Semantic validation (category lookups through storage)
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        app_settings: Optional[AppSettings] = None,
    ):
        """
        Initialize validator.

        Args:
            storage: Record store used to resolve categories
            app_settings: Thresholds; defaults to the loaded settings
        """
        self._storage = storage
        self._settings = app_settings or get_settings().app

    def _validate_schema(
        self,
        draft: TransactionDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not draft.category_id:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="missing",
                message="Kategori wajib dipilih",
                severity="error",
                suggested_fix="Pilih kategori yang sesuai atau buat kategori baru",
            ))

        if draft.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="zero_amount",
                message="Jumlah transaksi adalah Rp0",
                severity="warning",
                suggested_fix="Periksa kembali jumlah yang dimasukkan",
            ))

        # Schema is valid if no errors (warnings are okay)
        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    async def _validate_semantic(
        self,
        draft: TransactionDraft,
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        category = await self._storage.get_category(draft.category_id)
        if category is None:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="unknown_category",
                message="Kategori yang dipilih tidak ditemukan",
                severity="error",
                suggested_fix="Kategori mungkin sudah dihapus; pilih kategori lain",
            ))
        elif category.type is not draft.type:
            issues.append(ValidationIssue(
                field="type",
                issue_type="type_mismatch",
                message=(
                    f"Kategori '{category.name}' adalah kategori "
                    f"{category.type.label.lower()}, tetapi transaksi dicatat "
                    f"sebagai {draft.type.label.lower()}"
                ),
                severity="warning",
                suggested_fix="Pastikan jenis transaksi sudah benar",
            ))

        # Future date check (with tolerance)
        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if draft.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Tanggal transaksi ({draft.date.isoformat()}) ada di masa depan",
                severity="warning",
                suggested_fix="Periksa kembali tanggal transaksi",
            ))

        # Absurd amount check
        max_amount = Decimal(str(self._settings.max_transaction_amount))
        if draft.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Jumlah transaksi sangat besar",
                severity="warning",
                suggested_fix="Pastikan tidak ada angka nol yang berlebih",
            ))

        # Semantic validation passes if no errors
        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    async def validate(
        self,
        draft: TransactionDraft,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            draft: The transaction draft to validate
            today: Reference date for the future-date check

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(draft)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = await self._validate_semantic(
                draft, today or date.today()
            )
            all_issues.extend(semantic_issues)

        warnings = [
            issue.message for issue in all_issues if issue.severity == "warning"
        ]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )


def get_user_friendly_summary(result: ValidationResult) -> str:
    """
    Generate a user-friendly summary of validation results.

    This is what the treasurer sees under the transaction form.
    """
    if result.is_valid and not result.warnings:
        return "✅ Transaksi valid."

    lines = []

    if result.has_errors:
        lines.append("❌ Transaksi belum bisa disimpan:")
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

    if result.warnings:
        if lines:
            lines.append("")
        lines.append("⚠️ Mohon periksa kembali:")
        for warning in result.warnings:
            lines.append(f"   • {warning}")

    return "\n".join(lines)
