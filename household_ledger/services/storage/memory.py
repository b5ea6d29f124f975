"""
In-Memory Storage

Process-local implementation of every storage interface. Used by the tests
and by the app when no spreadsheet is configured (nothing survives a
restart).
"""

from typing import Any, Callable, Optional
from uuid import UUID, uuid4

from pydantic import ValidationError

from household_ledger.models.audit import AuditEvent
from household_ledger.models.transaction import Booking, Transaction
from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    BookingStorageInterface,
    ChangeNotifier,
    DuplicateError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    Unsubscribe,
)


def _new_id() -> str:
    return uuid4().hex


def _merged(record, fields: dict[str, Any]):
    data = record.model_dump()
    data.update(fields)
    data["id"] = record.id
    try:
        return type(record)(**data)
    except ValidationError as e:
        raise StorageError(f"Update would make {record.id} invalid: {e}") from e


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transactions kept in a dict, insertion ordered."""

    def __init__(self):
        self._records: dict[str, Transaction] = {}
        self._subscribers: ChangeNotifier[Transaction] = ChangeNotifier("transactions")

    def _changed(self) -> None:
        self._subscribers.notify(list(self._records.values()))

    async def append_transaction(self, transaction: Transaction) -> str:
        transaction_id = _new_id()
        self._records[transaction_id] = transaction.model_copy(update={"id": transaction_id})
        self._changed()
        return transaction_id

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._records.get(transaction_id)

    async def update_transaction(
        self,
        transaction_id: str,
        fields: dict[str, Any],
    ) -> Transaction:
        current = self._records.get(transaction_id)
        if current is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        updated = _merged(current, fields)
        self._records[transaction_id] = updated
        self._changed()
        return updated

    async def delete_transaction(self, transaction_id: str) -> bool:
        if self._records.pop(transaction_id, None) is None:
            return False
        self._changed()
        return True

    async def list_transactions(self) -> list[Transaction]:
        return list(self._records.values())

    def subscribe_transactions(
        self,
        on_change: Callable[[list[Transaction]], None],
    ) -> Unsubscribe:
        unsubscribe = self._subscribers.add(on_change)
        on_change(list(self._records.values()))
        return unsubscribe

    async def clear_transactions(self) -> int:
        count = len(self._records)
        self._records.clear()
        self._changed()
        return count


class InMemoryBookingStorage(BookingStorageInterface):
    """Bookings kept in a dict, insertion ordered."""

    def __init__(self):
        self._records: dict[str, Booking] = {}
        self._subscribers: ChangeNotifier[Booking] = ChangeNotifier("bookings")

    def _changed(self) -> None:
        self._subscribers.notify(list(self._records.values()))

    async def append_booking(self, booking: Booking) -> str:
        booking_id = _new_id()
        self._records[booking_id] = booking.model_copy(update={"id": booking_id})
        self._changed()
        return booking_id

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self._records.get(booking_id)

    async def update_booking(
        self,
        booking_id: str,
        fields: dict[str, Any],
    ) -> Booking:
        current = self._records.get(booking_id)
        if current is None:
            raise NotFoundError(f"Booking not found: {booking_id}")
        updated = _merged(current, fields)
        self._records[booking_id] = updated
        self._changed()
        return updated

    async def delete_booking(self, booking_id: str) -> bool:
        if self._records.pop(booking_id, None) is None:
            return False
        self._changed()
        return True

    async def list_bookings(self) -> list[Booking]:
        return list(self._records.values())

    def subscribe_bookings(
        self,
        on_change: Callable[[list[Booking]], None],
    ) -> Unsubscribe:
        unsubscribe = self._subscribers.add(on_change)
        on_change(list(self._records.values()))
        return unsubscribe

    async def clear_bookings(self) -> int:
        count = len(self._records)
        self._records.clear()
        self._changed()
        return count


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only event list."""

    def __init__(self):
        self._events: list[AuditEvent] = []
        self._ids: set[UUID] = set()

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        if event.event_id in self._ids:
            raise DuplicateError(f"Audit event already logged: {event.event_id}")
        self._ids.add(event.event_id)
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
