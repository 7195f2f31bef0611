"""Services package."""

from src.services.image import (
    CloudinaryLogoService,
    LogoRejectedError,
    LogoServiceError,
    LogoUploadError,
)
from src.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    MalformedRecordError,
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

__all__ = [
    # Image services
    "CloudinaryLogoService",
    "LogoRejectedError",
    "LogoServiceError",
    "LogoUploadError",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "MalformedRecordError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "JsonFileAuditStorage",
    "JsonFileLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]
