"""
Ledger Service for Pondok Ledger

This module ties together all the components and defines the flows for:
1. Recording transactions (draft -> validate -> persist -> audit)
2. Maintaining categories (with referential integrity on delete)
3. Institution settings and logo
4. Summaries and PDF report export (snapshot -> aggregate -> format)

DESIGN DECISION: The ledger service enforces the boundaries:
- No transaction persists without passing validation
- A category still referenced by a transaction is never deleted
- Every change to the books is audited
- The aggregator only ever sees an immutable snapshot

Writes are serialized per entity id. A concurrent edit and delete of the
same transaction cannot interleave, and a transaction write that points
at a category shares that category's lock with its deletion.
"""

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import date
from typing import AsyncIterator, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from src.audit import AuditLogger, create_correlation_id
from src.config import AppSettings, get_settings
from src.models.audit import AuditEventType
from src.models.ledger import (
    AnnualSummary,
    Category,
    DashboardSummary,
    InstitutionSettings,
    MonthlySummary,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationResult,
)
from src.reports import (
    MONTH_NAMES,
    annual_report_filename,
    annual_report_tables,
    annual_report_title,
    build_report_header,
    monthly_report_filename,
    monthly_report_tables,
    monthly_report_title,
    recent_transactions,
    render_report_pdf,
    sort_for_display,
    summarize_month,
    summarize_year,
)
from src.services.image import CloudinaryLogoService, LogoUploadError
from src.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileAuditStorage,
    JsonFileLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from src.validation import TransactionValidator


logger = structlog.get_logger("pondok_ledger.ledger")


DEFAULT_CATEGORIES: tuple[tuple[str, TransactionType], ...] = (
    ("Sumbangan Donatur", TransactionType.INCOME),
    ("SPP Santri", TransactionType.INCOME),
    ("Infaq Kotak Amal", TransactionType.INCOME),
    ("Biaya Listrik & Air", TransactionType.EXPENSE),
    ("Belanja Dapur", TransactionType.EXPENSE),
    ("Gaji Ustadz", TransactionType.EXPENSE),
    ("Perawatan Gedung", TransactionType.EXPENSE),
    ("Kegiatan Santri", TransactionType.EXPENSE),
)


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class CategoryInUseError(LedgerError):
    """A category cannot be deleted while transactions reference it."""

    def __init__(self, category_id: str, usage_count: int):
        self.category_id = category_id
        self.usage_count = usage_count
        super().__init__(
            f"Category {category_id} is used by {usage_count} transaction(s)"
        )


class TransactionValidationError(LedgerError):
    """A transaction draft failed validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"Transaction rejected: {messages}")


class LogoNotConfiguredError(LedgerError):
    """No logo hosting is configured."""
    pass


class LedgerSnapshot(BaseModel):
    """Immutable view of the books handed to the aggregator."""
    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...] = ()
    categories: tuple[Category, ...] = ()


class MigrationReport(BaseModel):
    """What an import from another store copied."""
    model_config = ConfigDict(frozen=True)

    categories_migrated: int = 0
    categories_merged: int = 0
    transactions_migrated: int = 0
    settings_migrated: bool = False
    skipped: bool = False


async def migrate_ledger(
    source: LedgerStorageInterface,
    target: LedgerStorageInterface,
    clear_source: bool = False,
) -> MigrationReport:
    """
    Copy categories, transactions and settings between stores.

    Record ids are kept. A source category whose name and type match a
    category already in the target is merged into it, and its
    transactions are re-pointed. Nothing is copied when the target
    already holds transactions, so a second run cannot duplicate the books.

    Args:
        source: Store to read from (usually the local JSON files)
        target: Store to write into
        clear_source: Delete the copied records from the source afterwards
    """
    if await target.list_transactions():
        logger.info("migration_skipped", reason="target already has transactions")
        return MigrationReport(skipped=True)

    categories = await source.list_categories()
    transactions = await source.list_transactions()
    settings = await source.get_settings()

    existing = {
        (c.name.lower(), c.type): c.id for c in await target.list_categories()
    }
    merged: dict[str, str] = {}
    created = 0
    for category in categories:
        match = existing.get((category.name.lower(), category.type))
        if match is not None:
            merged[category.id] = match
        elif await target.get_category(category.id) is None:
            await target.create_category(category)
            created += 1

    # Oldest first, so row-based stores keep chronological order
    for transaction in reversed(transactions):
        if transaction.category_id in merged:
            transaction = transaction.model_copy(
                update={"category_id": merged[transaction.category_id]}
            )
        await target.create_transaction(transaction)

    if settings is not None:
        await target.save_settings(settings)

    if clear_source:
        for transaction in transactions:
            await source.delete_transaction(transaction.id)
        for category in categories:
            await source.delete_category(category.id)

    report = MigrationReport(
        categories_migrated=created,
        categories_merged=len(merged),
        transactions_migrated=len(transactions),
        settings_migrated=settings is not None,
    )
    logger.info("ledger_migrated", **report.model_dump())
    return report


class EntityLocks:
    """
    One asyncio.Lock per (kind, id).

    Several keys are always acquired in sorted order. A lock is dropped
    once nobody holds or waits for it.
    """

    def __init__(self):
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._users: dict[tuple[str, str], int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _checkout(self, key: tuple[str, str]) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        return self._locks[key]

    def _checkin(self, key: tuple[str, str]) -> None:
        self._users[key] -= 1
        if not self._users[key]:
            del self._users[key]
            del self._locks[key]

    @asynccontextmanager
    async def hold(self, *keys: tuple[str, str]) -> AsyncIterator[None]:
        wanted = sorted(set(k for k in keys if k[1]))
        locks = [self._checkout(key) for key in wanted]
        try:
            async with AsyncExitStack() as stack:
                for lock in locks:
                    await stack.enter_async_context(lock)
                yield
        finally:
            for key in wanted:
                self._checkin(key)


class LedgerService:
    """
    The single entry point the UI talks to.

    Flow for a transaction write:
    1. Lock the transaction id and the referenced category id
    2. Validate the draft (two stages)
    3. Persist the whole record
    4. Audit
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[TransactionValidator] = None,
        logo_service: Optional[CloudinaryLogoService] = None,
        default_settings: Optional[InstitutionSettings] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._app_settings = app_settings or get_settings().app
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or TransactionValidator(storage, self._app_settings)
        self._logo_service = logo_service
        self._default_settings = default_settings or InstitutionSettings()
        self._locks = EntityLocks()

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    @property
    def can_upload_logo(self) -> bool:
        return self._logo_service is not None

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def _validate_or_raise(
        self,
        draft: TransactionDraft,
        today: Optional[date],
        correlation_id: UUID,
    ) -> ValidationResult:
        result = await self._validator.validate(draft, today=today)
        if result.has_errors:
            await self._audit_logger.log_validation_failed(
                issues=[issue.model_dump() for issue in result.issues],
                correlation_id=correlation_id,
            )
            raise TransactionValidationError(result)
        return result

    async def _write(self, operation: str, write, correlation_id: UUID):
        """Run a storage write, auditing a failure before re-raising."""
        try:
            return await write
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"operation": operation},
                correlation_id=correlation_id,
            )
            raise

    async def create_transaction(
        self,
        draft: TransactionDraft,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ValidationResult]:
        """
        Validate and record a new transaction.

        Returns:
            (stored transaction, validation result with any warnings)

        Raises:
            TransactionValidationError: If the draft has errors
        """
        correlation_id = correlation_id or create_correlation_id()
        transaction = Transaction.from_draft(draft)

        async with self._locks.hold(
            ("transaction", transaction.id),
            ("category", draft.category_id),
        ):
            result = await self._validate_or_raise(draft, today, correlation_id)
            stored = await self._write(
                "create_transaction",
                self._storage.create_transaction(transaction),
                correlation_id,
            )

        await self._audit_logger.log_transaction_created(stored, correlation_id)
        return stored, result

    async def update_transaction(
        self,
        transaction_id: str,
        draft: TransactionDraft,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ValidationResult]:
        """
        Replace a transaction with a new draft, keeping id and created_at.

        Raises:
            NotFoundError: If the transaction doesn't exist
            TransactionValidationError: If the draft has errors
        """
        correlation_id = correlation_id or create_correlation_id()

        current = await self._storage.get_transaction(transaction_id)
        old_category = current.category_id if current else ""

        async with self._locks.hold(
            ("transaction", transaction_id),
            ("category", old_category),
            ("category", draft.category_id),
        ):
            # Re-read under the lock; it may have been deleted meanwhile
            current = await self._storage.get_transaction(transaction_id)
            if current is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")

            result = await self._validate_or_raise(draft, today, correlation_id)
            updated = await self._write(
                "update_transaction",
                self._storage.update_transaction(current.replaced_by(draft)),
                correlation_id,
            )

        await self._audit_logger.log_transaction_updated(current, updated, correlation_id)
        return updated, result

    async def delete_transaction(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a transaction.

        Returns:
            True if it existed, False otherwise
        """
        async with self._locks.hold(("transaction", transaction_id)):
            deleted = await self._storage.delete_transaction(transaction_id)

        if deleted:
            await self._audit_logger.log_transaction_deleted(
                transaction_id, correlation_id or create_correlation_id()
            )
        return deleted

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def create_category(
        self,
        name: str,
        type: TransactionType,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        category = Category(name=name, type=type)
        async with self._locks.hold(("category", category.id)):
            stored = await self._storage.create_category(category)
        await self._audit_logger.log_category_changed(
            AuditEventType.CATEGORY_CREATED, stored, correlation_id
        )
        return stored

    async def update_category(
        self,
        category_id: str,
        name: str,
        type: TransactionType,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """
        Rename or retype a category.

        Existing transactions keep their own type.

        Raises:
            NotFoundError: If the category doesn't exist
        """
        async with self._locks.hold(("category", category_id)):
            stored = await self._storage.update_category(
                Category(id=category_id, name=name, type=type)
            )
        await self._audit_logger.log_category_changed(
            AuditEventType.CATEGORY_UPDATED, stored, correlation_id
        )
        return stored

    async def delete_category(
        self,
        category_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a category that no transaction references.

        Returns:
            True if it existed, False otherwise

        Raises:
            CategoryInUseError: If any transaction references it
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._locks.hold(("category", category_id)):
            usage = await self._storage.count_transactions_for_category(category_id)
            if usage:
                await self._audit_logger.log_category_delete_rejected(
                    category_id, usage, correlation_id
                )
                raise CategoryInUseError(category_id, usage)
            category = await self._storage.get_category(category_id)
            deleted = await self._storage.delete_category(category_id)

        if deleted and category is not None:
            await self._audit_logger.log_category_changed(
                AuditEventType.CATEGORY_DELETED, category, correlation_id
            )
        return deleted

    async def list_categories(self) -> list[Category]:
        return await self._storage.list_categories()

    async def ensure_default_categories(self) -> list[Category]:
        """
        Seed the default categories into an empty store.

        Returns:
            The categories created (empty if the store already had some
            or seeding is disabled)
        """
        if not self._app_settings.seed_default_categories:
            return []
        if await self._storage.list_categories():
            return []

        created = []
        for name, type_ in DEFAULT_CATEGORIES:
            created.append(await self.create_category(name, type_))
        logger.info("default_categories_seeded", count=len(created))
        return created

    # =========================================================================
    # INSTITUTION SETTINGS
    # =========================================================================

    async def get_settings(self) -> InstitutionSettings:
        """Saved settings, or the configured defaults."""
        saved = await self._storage.get_settings()
        return saved if saved is not None else self._default_settings

    async def update_settings(
        self,
        settings: InstitutionSettings,
        correlation_id: Optional[UUID] = None,
    ) -> InstitutionSettings:
        async with self._locks.hold(("settings", "institution")):
            stored = await self._storage.save_settings(settings)
        await self._audit_logger.log_settings_updated(stored.name, correlation_id)
        return stored

    async def upload_logo(
        self,
        image_bytes: bytes,
        correlation_id: Optional[UUID] = None,
    ) -> InstitutionSettings:
        """
        Upload a new logo and store its URL in the settings.

        Raises:
            LogoNotConfiguredError: If no logo hosting is configured
            LogoRejectedError: If the image is not usable as a logo
            LogoUploadError: If the upload fails
        """
        if self._logo_service is None:
            raise LogoNotConfiguredError("Cloudinary is not configured")
        correlation_id = correlation_id or create_correlation_id()

        try:
            url = await self._logo_service.upload_logo(image_bytes)
        except LogoUploadError as e:
            await self._audit_logger.log_external_service_error(
                "cloudinary", str(e), correlation_id
            )
            raise

        async with self._locks.hold(("settings", "institution")):
            current = await self.get_settings()
            stored = await self._storage.save_settings(
                current.model_copy(update={"logo_url": url})
            )
        await self._audit_logger.log_logo_uploaded(url, correlation_id)
        return stored

    # =========================================================================
    # DATA IMPORT
    # =========================================================================

    async def import_records(
        self,
        source: LedgerStorageInterface,
        clear_source: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> MigrationReport:
        """
        Copy the books from another store into this ledger's store.

        Used to move a local JSON ledger into Google Sheets.
        """
        report = await migrate_ledger(source, self._storage, clear_source)
        if not report.skipped:
            await self._audit_logger.log_data_migrated(
                categories=report.categories_migrated,
                transactions=report.transactions_migrated,
                settings=report.settings_migrated,
                correlation_id=correlation_id or create_correlation_id(),
            )
        return report

    # =========================================================================
    # SNAPSHOTS AND SUMMARIES
    # =========================================================================

    async def snapshot(self) -> LedgerSnapshot:
        """Immutable copy of the current books."""
        transactions = await self._storage.list_transactions()
        categories = await self._storage.list_categories()
        return LedgerSnapshot(
            transactions=tuple(transactions),
            categories=tuple(categories),
        )

    async def monthly_summary(self, year: int, month_index: int) -> MonthlySummary:
        snap = await self.snapshot()
        return summarize_month(snap.transactions, snap.categories, year, month_index)

    async def annual_summary(self, year: int) -> AnnualSummary:
        snap = await self.snapshot()
        return summarize_year(snap.transactions, year)

    async def dashboard(self, today: date) -> DashboardSummary:
        """Totals for the month containing `today` and the latest entries."""
        snap = await self.snapshot()
        return DashboardSummary(
            month=summarize_month(
                snap.transactions, snap.categories, today.year, today.month - 1
            ),
            recent_transactions=tuple(
                recent_transactions(
                    snap.transactions, self._app_settings.dashboard_recent_limit
                )
            ),
        )

    async def search_transactions(
        self,
        search: str = "",
        type: Optional[TransactionType] = None,
        category_id: Optional[str] = None,
    ) -> list[Transaction]:
        """
        Filter transactions the way the transactions page does.

        `search` matches description or category name, case-insensitive.
        """
        snap = await self.snapshot()
        names = {c.id: c.name.lower() for c in snap.categories}
        needle = search.strip().lower()

        matches = []
        for t in snap.transactions:
            if type is not None and t.type is not type:
                continue
            if category_id and t.category_id != category_id:
                continue
            if needle and needle not in t.description.lower() and needle not in names.get(t.category_id, ""):
                continue
            matches.append(t)
        return sort_for_display(matches)

    # =========================================================================
    # REPORT EXPORT
    # =========================================================================

    async def export_monthly_report(
        self,
        year: int,
        month_index: int,
        printed_on: date,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, bytes]:
        """
        Render the monthly PDF report.

        Returns:
            (file name, PDF bytes)
        """
        snap = await self.snapshot()
        settings = await self.get_settings()
        summary = summarize_month(snap.transactions, snap.categories, year, month_index)

        header = build_report_header(settings, monthly_report_title(summary), printed_on)
        pdf = render_report_pdf(header, monthly_report_tables(summary, snap.categories))
        filename = monthly_report_filename(settings, year, month_index)

        await self._audit_logger.log_report_exported(
            "monthly", f"{MONTH_NAMES[month_index]} {year}", filename, correlation_id
        )
        return filename, pdf

    async def export_annual_report(
        self,
        year: int,
        printed_on: date,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, bytes]:
        """
        Render the annual PDF report.

        Returns:
            (file name, PDF bytes)
        """
        snap = await self.snapshot()
        settings = await self.get_settings()
        summary = summarize_year(snap.transactions, year)

        header = build_report_header(settings, annual_report_title(summary), printed_on)
        pdf = render_report_pdf(header, annual_report_tables(summary))
        filename = annual_report_filename(settings, year)

        await self._audit_logger.log_report_exported(
            "annual", str(year), filename, correlation_id
        )
        return filename, pdf


# =============================================================================
# FACTORY
# =============================================================================

def create_storage(
    app_settings: AppSettings,
) -> tuple[LedgerStorageInterface, AuditStorageInterface]:
    """Build the record store and audit store for the configured backend."""
    backend = app_settings.storage_backend
    if backend == "google_sheets":
        client = GoogleSheetsClient()
        return GoogleSheetsLedgerStorage(client), GoogleSheetsAuditStorage(client)
    if backend == "memory":
        return InMemoryLedgerStorage(), InMemoryAuditStorage()
    return (
        JsonFileLedgerStorage(app_settings.data_dir),
        JsonFileAuditStorage(app_settings.data_dir),
    )


def create_ledger() -> LedgerService:
    """
    Factory function to create the ledger service from configuration.

    Logo upload is enabled only when Cloudinary is configured.
    """
    settings = get_settings()
    app_settings = settings.app
    storage, audit_storage = create_storage(app_settings)

    try:
        logo_service = CloudinaryLogoService()
    except ValidationError:
        logger.info("logo_upload_disabled", reason="cloudinary not configured")
        logo_service = None

    institution = settings.institution
    logger.info("ledger_created", backend=app_settings.storage_backend)

    return LedgerService(
        storage=storage,
        audit_logger=AuditLogger(audit_storage),
        logo_service=logo_service,
        default_settings=InstitutionSettings(
            name=institution.name,
            address=institution.address,
            treasurer_name=institution.treasurer_name,
        ),
        app_settings=app_settings,
    )


async def migrate_local_to_sheets(
    ledger: LedgerService,
    clear_source: bool = False,
) -> MigrationReport:
    """
    Import the local JSON ledger into a ledger backed by Google Sheets.

    Raises:
        LedgerError: If the ledger is not using the Google Sheets backend
    """
    if not isinstance(ledger.storage, GoogleSheetsLedgerStorage):
        raise LedgerError("Import target must be the Google Sheets backend")
    source = JsonFileLedgerStorage(get_settings().app.data_dir)
    return await ledger.import_records(source, clear_source=clear_source)
