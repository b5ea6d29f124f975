"""
Abstract Storage Interface

DESIGN DECISION: The ledger core never talks to storage. It is handed the
current collection and hands back records to persist. These interfaces are
the persistence collaborator that sits on the other side:

    append(record) -> id
    update(id, fields) -> record
    delete(id)
    subscribe(on_change) -> unsubscribe
    list / clear

Transactions and bookings have identical shapes. Audit events are
append-only.

CRITICAL: Storage does not serialize concurrent writers beyond what the
backend itself does. Last writer wins; callers re-aggregate after writes.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Optional, TypeVar
from uuid import UUID

import structlog

from household_ledger.models.audit import AuditEvent
from household_ledger.models.transaction import Booking, Transaction

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT")
Unsubscribe = Callable[[], None]


class ChangeNotifier(Generic[RecordT]):
    """
    Keeps the subscriber list for one collection.

    A failing subscriber is logged and skipped; it never breaks the write
    that triggered the notification.
    """

    def __init__(self, collection: str):
        self._collection = collection
        self._callbacks: list[Callable[[list[RecordT]], None]] = []

    def __len__(self) -> int:
        return len(self._callbacks)

    def add(self, callback: Callable[[list[RecordT]], None]) -> Unsubscribe:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def notify(self, records: list[RecordT]) -> None:
        for callback in list(self._callbacks):
            try:
                callback(list(records))
            except Exception as e:
                logger.error(
                    "subscriber_failed",
                    collection=self._collection,
                    error=str(e),
                )


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage.

    Any backend (Google Sheets, in-memory, a real database) implements these.
    """

    @abstractmethod
    async def append_transaction(self, transaction: Transaction) -> str:
        """
        Store a transaction under a NEW identifier.

        Any id already on the record is ignored.

        Returns:
            The identifier assigned by storage

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Return the transaction, or None if it does not exist."""
        pass

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: str,
        fields: dict[str, Any],
    ) -> Transaction:
        """
        Merge `fields` (model field names) into a stored transaction.

        Returns:
            The updated record

        Raises:
            NotFoundError: If the transaction doesn't exist
            StorageError: If the merged record is invalid or the write fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """Delete a transaction. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_transactions(self) -> list[Transaction]:
        """Every stored transaction, in insertion order."""
        pass

    @abstractmethod
    def subscribe_transactions(
        self,
        on_change: Callable[[list[Transaction]], None],
    ) -> Unsubscribe:
        """
        Register a callback receiving the full collection after every change.

        Returns:
            A function that removes the callback
        """
        pass

    @abstractmethod
    async def clear_transactions(self) -> int:
        """Delete every transaction. Returns how many were removed."""
        pass


class BookingStorageInterface(ABC):
    """Abstract interface for booking storage. Same shape as transactions."""

    @abstractmethod
    async def append_booking(self, booking: Booking) -> str:
        """Store a booking under a new identifier and return it."""
        pass

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        pass

    @abstractmethod
    async def update_booking(
        self,
        booking_id: str,
        fields: dict[str, Any],
    ) -> Booking:
        """
        Merge `fields` into a stored booking.

        Raises:
            NotFoundError: If the booking doesn't exist
        """
        pass

    @abstractmethod
    async def delete_booking(self, booking_id: str) -> bool:
        pass

    @abstractmethod
    async def list_bookings(self) -> list[Booking]:
        pass

    @abstractmethod
    def subscribe_bookings(
        self,
        on_change: Callable[[list[Booking]], None],
    ) -> Unsubscribe:
        pass

    @abstractmethod
    async def clear_bookings(self) -> int:
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
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events for one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """All events for one transaction or booking, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
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
