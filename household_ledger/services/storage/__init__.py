"""
Storage Services Package

The persistence collaborator: abstract interfaces plus an in-memory and a
Google Sheets implementation.
"""

from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    BookingStorageInterface,
    ChangeNotifier,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from household_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBookingStorage,
    InMemoryTransactionStorage,
)
from household_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBookingStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BookingStorageInterface",
    "ChangeNotifier",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBookingStorage",
    "InMemoryTransactionStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBookingStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
]
