"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the books in a local file or in Google Sheets
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the operations the ledger needs: list, get, create, update, delete.

Referential integrity (a used category cannot be deleted) is NOT the
store's job. The ledger service checks it before calling delete.
"""

from abc import ABC, abstractmethod
from typing import Optional

from src.models.audit import AuditEvent
from src.models.ledger import (
    Category,
    InstitutionSettings,
    Transaction,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger record storage.

    Any storage implementation (local file, Google Sheets, etc.)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_transactions(self) -> list[Transaction]:
        """
        List every stored transaction.

        Returns:
            Transactions newest first (date, then creation time)
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_transaction(self, transaction: Transaction) -> Transaction:
        """
        Persist a new transaction.

        Returns:
            The stored transaction

        Raises:
            DuplicateError: If the id is already taken
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace an existing transaction (whole record).

        Raises:
            NotFoundError: If the transaction doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction by ID.

        Returns:
            True if a record was removed, False if none matched
        """
        pass

    @abstractmethod
    async def count_transactions_for_category(self, category_id: str) -> int:
        """
        Count transactions referencing a category.

        Used by the ledger to refuse deleting a category still in use.
        """
        pass

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        """
        List every category, ordered by name.
        """
        pass

    @abstractmethod
    async def get_category(self, category_id: str) -> Optional[Category]:
        """Retrieve a category by its ID."""
        pass

    @abstractmethod
    async def create_category(self, category: Category) -> Category:
        """
        Persist a new category.

        Raises:
            DuplicateError: If the id is already taken
        """
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> Category:
        """
        Replace an existing category.

        Raises:
            NotFoundError: If the category doesn't exist
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: str) -> bool:
        """
        Delete a category by ID.

        Returns:
            True if a record was removed, False if none matched
        """
        pass

    # -------------------------------------------------------------------------
    # Institution settings
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_settings(self) -> Optional[InstitutionSettings]:
        """
        Load the saved institution settings.

        Returns:
            The settings, or None if none were ever saved
        """
        pass

    @abstractmethod
    async def save_settings(self, settings: InstitutionSettings) -> InstitutionSettings:
        """Insert or replace the institution settings."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class MalformedRecordError(StorageError):
    """A stored record cannot be read back as a valid model."""
    pass
