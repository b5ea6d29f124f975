"""Services package."""

from household_ledger.services.extraction import (
    ExtractionError,
    ExtractionFailedError,
    GeminiExtractionService,
    ImageRejectedError,
)
from household_ledger.services.storage import (
    AuditStorageInterface,
    BookingStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBookingStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryBookingStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Extraction
    "ExtractionError",
    "ExtractionFailedError",
    "GeminiExtractionService",
    "ImageRejectedError",
    # Storage
    "AuditStorageInterface",
    "BookingStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBookingStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "InMemoryAuditStorage",
    "InMemoryBookingStorage",
    "InMemoryTransactionStorage",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
]
