"""
Audit Models for Pondok Ledger

Every change to the books is logged for audit purposes.
This provides:
1. Traceability of who changed what and when
2. Debugging information when things go wrong
3. Accountability towards the institution's board

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    CATEGORY_DELETE_REJECTED = "category_delete_rejected"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Institution settings
    SETTINGS_UPDATED = "settings_updated"
    LOGO_UPLOADED = "logo_uploaded"

    # Reports
    REPORT_EXPORTED = "report_exported"

    # Data transfer between stores
    DATA_MIGRATED = "data_migrated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every mutation of the ledger creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'category', 'report')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one form submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(transaction, correlation_id)
        event = AuditEventBuilder.category_delete_rejected(category_id, 3, correlation_id)
    """

    @staticmethod
    def transaction_created(
        transaction_id: str,
        transaction_type: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction recorded: {transaction_type} Rp{amount}",
            details={
                "type": transaction_type,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction updated ({len(changed_fields)} fields changed)",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def category_changed(
        event_type: AuditEventType,
        category_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = {
            AuditEventType.CATEGORY_CREATED: "created",
            AuditEventType.CATEGORY_UPDATED: "updated",
            AuditEventType.CATEGORY_DELETED: "deleted",
        }[event_type]
        return AuditEvent(
            event_type=event_type,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category {verb}: {name}",
            details={
                "name": name,
            },
            is_user_action=True,
        )

    @staticmethod
    def category_delete_rejected(
        category_id: str,
        usage_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category deletion refused: used by {usage_count} transactions",
            details={
                "usage_count": usage_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction rejected with {len(issues)} issues",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def settings_updated(
        institution_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="settings",
            correlation_id=correlation_id,
            description=f"Institution settings updated: {institution_name}",
            is_user_action=True,
        )

    @staticmethod
    def data_migrated(
        categories: int,
        transactions: int,
        settings: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_MIGRATED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=(
                f"Imported {categories} categories and {transactions} transactions"
            ),
            details={
                "categories": categories,
                "transactions": transactions,
                "settings": settings,
            },
            is_user_action=True,
        )

    @staticmethod
    def logo_uploaded(
        logo_url: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGO_UPLOADED,
            entity_type="settings",
            correlation_id=correlation_id,
            description="Institution logo uploaded",
            details={
                "logo_url": logo_url,
            },
            is_user_action=True,
        )

    @staticmethod
    def report_exported(
        report_kind: str,
        period: str,
        filename: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_EXPORTED,
            entity_type="report",
            entity_id=filename,
            correlation_id=correlation_id,
            description=f"{report_kind.capitalize()} report exported for {period}",
            details={
                "kind": report_kind,
                "period": period,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
