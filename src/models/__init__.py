"""
Data Models Package

This package contains all Pydantic models used in Pondok Ledger.
All data flowing through the system must conform to these schemas.
"""

from src.models.ledger import (
    AnnualSummary,
    Category,
    CategoryTotal,
    DashboardSummary,
    InstitutionSettings,
    MonthlyBreakdown,
    MonthlySummary,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    amount_from_input,
    generate_id,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AnnualSummary",
    "Category",
    "CategoryTotal",
    "DashboardSummary",
    "InstitutionSettings",
    "MonthlyBreakdown",
    "MonthlySummary",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "amount_from_input",
    "generate_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
