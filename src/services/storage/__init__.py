"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
in-memory (tests), local JSON files (single machine) and Google Sheets
(hosted). The ledger service only sees the interfaces.
"""

from src.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    MalformedRecordError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from src.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from src.services.storage.local_file import (
    JsonFileAuditStorage,
    JsonFileLedgerStorage,
)
from src.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "MalformedRecordError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Local file implementation
    "JsonFileAuditStorage",
    "JsonFileLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
