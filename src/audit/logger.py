"""
Audit Logger

DESIGN DECISION: Every change to the books is logged.
This provides:
1. Traceability for the institution's board
2. Debugging capability
3. A history the treasurer can consult

The audit logger:
- Is async, like the storage it writes to
- Never lets a failed audit write undo a ledger change that already happened
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditEventType, AuditSeverity
from src.models.ledger import Category, Transaction
from src.services.storage import AuditStorageInterface, StorageError


logging.basicConfig(format="%(message)s", level=logging.INFO)

# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The configured audit storage (JSON file or Google Sheets)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("pondok_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity is AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except StorageError as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transaction_created(
            transaction_id=transaction.id,
            transaction_type=transaction.type.value,
            amount=str(transaction.amount),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_updated(
        self,
        before: Transaction,
        after: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an update with the names of the fields that changed."""
        old = before.model_dump()
        new = after.model_dump()
        changed = [name for name in new if old.get(name) != new[name]]
        event = AuditEventBuilder.transaction_updated(
            transaction_id=after.id,
            changed_fields=changed,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_category_changed(
        self,
        event_type: AuditEventType,
        category: Category,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.category_changed(
            event_type=event_type,
            category_id=category.id,
            name=category.name,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_category_delete_rejected(
        self,
        category_id: str,
        usage_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.category_delete_rejected(
            category_id=category_id,
            usage_count=usage_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected transaction draft."""
        event = AuditEventBuilder.validation_failed(
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_settings_updated(
        self,
        institution_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.settings_updated(
            institution_name=institution_name,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_data_migrated(
        self,
        categories: int,
        transactions: int,
        settings: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.data_migrated(
            categories=categories,
            transactions=transactions,
            settings=settings,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_logo_uploaded(
        self,
        logo_url: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.logo_uploaded(
            logo_url=logo_url,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_report_exported(
        self,
        report_kind: str,
        period: str,
        filename: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.report_exported(
            report_kind=report_kind,
            period=period,
            filename=filename,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., a form submission).
    Pass it through all subsequent operations.
    """
    return uuid4()
