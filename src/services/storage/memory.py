"""
In-Memory Storage Implementation

Keeps every record in dictionaries keyed by id. Used by the test suite,
by `STORAGE_BACKEND=memory`, and as the base of the local file store,
which only adds loading and saving around these operations.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from src.models.audit import AuditEvent
from src.models.ledger import (
    Category,
    InstitutionSettings,
    Transaction,
)
from src.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


def newest_first(transactions: list[Transaction]) -> list[Transaction]:
    """Order transactions by date, then creation time, newest first."""
    return sorted(
        transactions,
        key=lambda t: (t.date, t.created_at),
        reverse=True,
    )


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Ledger storage held entirely in process memory.

    Every mutation runs inside `_mutation()`: if `_changed` fails to
    persist the new state, the previous state is restored before the
    error propagates.
    """

    def __init__(
        self,
        transactions: Optional[list[Transaction]] = None,
        categories: Optional[list[Category]] = None,
        settings: Optional[InstitutionSettings] = None,
    ):
        self._transactions: dict[str, Transaction] = {
            t.id: t for t in transactions or []
        }
        self._categories: dict[str, Category] = {
            c.id: c for c in categories or []
        }
        self._settings = settings

    def _changed(self) -> None:
        """Hook called after every mutation; raise StorageError to undo it."""

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        saved = (dict(self._transactions), dict(self._categories), self._settings)
        yield
        try:
            self._changed()
        except StorageError:
            self._transactions, self._categories, self._settings = saved
            raise

    # Transactions

    async def list_transactions(self) -> list[Transaction]:
        return newest_first(list(self._transactions.values()))

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id in self._transactions:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        with self._mutation():
            self._transactions[transaction.id] = transaction
        return transaction

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id not in self._transactions:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        with self._mutation():
            self._transactions[transaction.id] = transaction
        return transaction

    async def delete_transaction(self, transaction_id: str) -> bool:
        if transaction_id not in self._transactions:
            return False
        with self._mutation():
            del self._transactions[transaction_id]
        return True

    async def count_transactions_for_category(self, category_id: str) -> int:
        return sum(
            1 for t in self._transactions.values() if t.category_id == category_id
        )

    # Categories

    async def list_categories(self) -> list[Category]:
        return sorted(self._categories.values(), key=lambda c: c.name.lower())

    async def get_category(self, category_id: str) -> Optional[Category]:
        return self._categories.get(category_id)

    async def create_category(self, category: Category) -> Category:
        if category.id in self._categories:
            raise DuplicateError(f"Category already exists: {category.id}")
        with self._mutation():
            self._categories[category.id] = category
        return category

    async def update_category(self, category: Category) -> Category:
        if category.id not in self._categories:
            raise NotFoundError(f"Category not found: {category.id}")
        with self._mutation():
            self._categories[category.id] = category
        return category

    async def delete_category(self, category_id: str) -> bool:
        if category_id not in self._categories:
            return False
        with self._mutation():
            del self._categories[category_id]
        return True

    # Settings

    async def get_settings(self) -> Optional[InstitutionSettings]:
        return self._settings

    async def save_settings(self, settings: InstitutionSettings) -> InstitutionSettings:
        with self._mutation():
            self._settings = settings
        return settings


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log held in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
