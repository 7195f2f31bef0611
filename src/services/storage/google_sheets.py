"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the hosted backend because:
1. The treasurer and the board can read the books directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (a pondok's treasury is small)
- No transactions (each write touches one row)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so the ledger service
never knows whether it talks to Sheets or to a local file.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from src.config import get_settings
from src.models.audit import AuditEvent, AuditEventType, AuditSeverity
from src.models.ledger import (
    Category,
    InstitutionSettings,
    Transaction,
    TransactionType,
)
from src.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    MalformedRecordError,
    NotFoundError,
    StorageError,
)
from src.services.storage.memory import newest_first


logger = structlog.get_logger("pondok_ledger.storage")


TRANSACTION_COLUMNS = [
    "id",
    "date",
    "type",
    "category_id",
    "amount",
    "description",
    "created_at",
]

CATEGORY_COLUMNS = [
    "id",
    "name",
    "type",
]

# Settings sheet holds one key/value pair per row
SETTINGS_COLUMNS = [
    "key",
    "value",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except (ValueError, gspread.exceptions.GSpreadException) as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _worksheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("worksheet_created", title=title)
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._worksheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, 2000
        )

    def get_categories_sheet(self) -> gspread.Worksheet:
        """Get or create the Categories worksheet."""
        return self._worksheet(
            self._settings.categories_sheet_name, CATEGORY_COLUMNS, 200
        )

    def get_settings_sheet(self) -> gspread.Worksheet:
        """Get or create the Settings worksheet."""
        return self._worksheet(
            self._settings.settings_sheet_name, SETTINGS_COLUMNS, 20
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            5000,  # More rows for audit log
        )


# =============================================================================
# ROW MAPPINGS
# =============================================================================

def transaction_to_row(transaction: Transaction) -> list:
    return [
        transaction.id,
        transaction.date.isoformat(),
        transaction.type.value,
        transaction.category_id,
        str(transaction.amount),
        transaction.description,
        transaction.created_at.isoformat(),
    ]


def row_to_transaction(row: list) -> Transaction:
    return Transaction(
        id=_cell(row, 0),
        date=_cell(row, 1),
        type=TransactionType(_cell(row, 2)),
        category_id=_cell(row, 3),
        amount=Decimal(_cell(row, 4, "0")),
        description=_cell(row, 5),
        created_at=datetime.fromisoformat(_cell(row, 6)),
    )


def category_to_row(category: Category) -> list:
    return [category.id, category.name, category.type.value]


def row_to_category(row: list) -> Category:
    return Category(
        id=_cell(row, 0),
        name=_cell(row, 1),
        type=TransactionType(_cell(row, 2)),
    )


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Transactions and categories are stored one record per row; the
    institution settings live in a small key/value sheet.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _find_row(all_rows: list[list], record_id: str) -> Optional[int]:
        """1-based sheet row number of a record, or None."""
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if row and row[0] == record_id:
                return idx
        return None

    def _read_records(self, sheet: gspread.Worksheet, parse) -> list:
        """
        Parse every non-empty row.

        A row that does not parse fails the whole read; a skipped
        transaction would silently change every total it belongs to.
        """
        records = []
        for row_number, row in enumerate(sheet.get_all_values()[1:], start=2):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                records.append(parse(row))
            except (ValueError, ArithmeticError) as e:
                logger.error("malformed_row", sheet=sheet.title, row=row_number, row_id=row[0])
                raise MalformedRecordError(
                    f"Malformed record in sheet '{sheet.title}' row {row_number}: {e}"
                )
        return records

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @retry(
        retry=retry_if_not_exception_type(MalformedRecordError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def list_transactions(self) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            return newest_first(self._read_records(sheet, row_to_transaction))
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to list transactions: {e}")

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in await self.list_transactions():
            if transaction.id == transaction_id:
                return transaction
        return None

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        try:
            sheet = self._client.get_transactions_sheet()
            if self._find_row(sheet.get_all_values(), transaction.id):
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            sheet.append_row(transaction_to_row(transaction), value_input_option="RAW")
            return transaction
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        try:
            sheet = self._client.get_transactions_sheet()
            row_number = self._find_row(sheet.get_all_values(), transaction.id)
            if row_number is None:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            sheet.update(
                range_name=f"A{row_number}",
                values=[transaction_to_row(transaction)],
                value_input_option="RAW",
            )
            return transaction
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, transaction_id: str) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            row_number = self._find_row(sheet.get_all_values(), transaction_id)
            if row_number is None:
                return False
            sheet.delete_rows(row_number)
            return True
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def count_transactions_for_category(self, category_id: str) -> int:
        try:
            sheet = self._client.get_transactions_sheet()
            return sum(
                1 for row in sheet.get_all_values()[1:]
                if _cell(row, 3) == category_id
            )
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to count transactions: {e}")

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @retry(
        retry=retry_if_not_exception_type(MalformedRecordError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def list_categories(self) -> list[Category]:
        try:
            sheet = self._client.get_categories_sheet()
            categories = self._read_records(sheet, row_to_category)
            return sorted(categories, key=lambda c: c.name.lower())
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to list categories: {e}")

    async def get_category(self, category_id: str) -> Optional[Category]:
        for category in await self.list_categories():
            if category.id == category_id:
                return category
        return None

    async def create_category(self, category: Category) -> Category:
        try:
            sheet = self._client.get_categories_sheet()
            if self._find_row(sheet.get_all_values(), category.id):
                raise DuplicateError(f"Category already exists: {category.id}")
            sheet.append_row(category_to_row(category), value_input_option="RAW")
            return category
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to save category: {e}")

    async def update_category(self, category: Category) -> Category:
        try:
            sheet = self._client.get_categories_sheet()
            row_number = self._find_row(sheet.get_all_values(), category.id)
            if row_number is None:
                raise NotFoundError(f"Category not found: {category.id}")
            sheet.update(
                range_name=f"A{row_number}",
                values=[category_to_row(category)],
                value_input_option="RAW",
            )
            return category
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to update category: {e}")

    async def delete_category(self, category_id: str) -> bool:
        try:
            sheet = self._client.get_categories_sheet()
            row_number = self._find_row(sheet.get_all_values(), category_id)
            if row_number is None:
                return False
            sheet.delete_rows(row_number)
            return True
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to delete category: {e}")

    # -------------------------------------------------------------------------
    # Institution settings
    # -------------------------------------------------------------------------

    async def get_settings(self) -> Optional[InstitutionSettings]:
        try:
            sheet = self._client.get_settings_sheet()
            values = {
                row[0]: _cell(row, 1)
                for row in sheet.get_all_values()[1:]
                if row and row[0]
            }
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to load settings: {e}")
        if not values:
            return None
        try:
            return InstitutionSettings.model_validate(values)
        except ValueError as e:
            raise MalformedRecordError(f"Malformed institution settings: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_settings(self, settings: InstitutionSettings) -> InstitutionSettings:
        rows = [
            [key, value or ""]
            for key, value in settings.model_dump().items()
        ]
        try:
            sheet = self._client.get_settings_sheet()
            sheet.batch_clear([f"A2:B{len(rows) + 20}"])
            sheet.update(range_name="A2", values=rows, value_input_option="RAW")
            return settings
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to save settings: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        details = _cell(row, 8)
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=_cell(row, 5) or None,
            correlation_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            description=_cell(row, 7),
            details=json.loads(details) if details else {},
            error_message=_cell(row, 9) or None,
            is_user_action=_cell(row, 10).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to write audit event: {e}")

    def _read_events(self) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("malformed_audit_row_skipped", row_id=row[0], error=str(e))
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
