"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the shared backend because:
1. Every cousin can open the ledger directly in Sheets
2. No database setup required
3. Built-in history and backup (Google's infrastructure)

TRADEOFFS:
- No transactions: last writer wins, there is no locking
- No push updates: subscribers are notified after writes made through
  this process only
- Limited query capabilities (we filter in Python)

Rows that fail validation when read back are not dropped silently:
- a row without a readable id or date is skipped with a warning
- a row with a readable date but a bad amount, category or payer kind is
  passed on unvalidated, so the aggregator skips it and reports why
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from household_ledger.config import GoogleSheetsSettings, get_settings
from household_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from household_ledger.models.transaction import Booking, Transaction
from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    BookingStorageInterface,
    ChangeNotifier,
    ConnectionError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    Unsubscribe,
)

logger = structlog.get_logger(__name__)


TRANSACTION_COLUMNS = [
    "id",
    "date",
    "description",
    "amount_usd",
    "original_amount",
    "original_currency",
    "exchange_rate",
    "rate_source",
    "category",
    "paid_by",
    "payer_kind",
    "is_confirmed",
    "created_at",
]

BOOKING_COLUMNS = [
    "id",
    "guest_name",
    "start_date",
    "end_date",
    "total_price_usd",
    "is_family",
    "is_paid",
    "notes",
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


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if hasattr(value, "value"):  # Enum
        return str(value.value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _as_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def _lenient_decimal(value: str):
    try:
        return Decimal(value)
    except (InvalidOperation, ValueError):
        return value


def _find_row(rows: list[list[str]], record_id: str) -> Optional[int]:
    """1-based sheet row number of a record (row 1 is the header)."""
    for idx, row in enumerate(rows[1:], start=2):
        if row and row[0] == record_id:
            return idx
    return None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and creates missing worksheets with headers.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Authenticate with the service account credentials."""
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
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("worksheet_created", title=title)
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
            return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=2000
        )

    def get_bookings_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.bookings_sheet_name, BOOKING_COLUMNS, rows=500
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """One transaction per row, columns per TRANSACTION_COLUMNS."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._subscribers: ChangeNotifier[Transaction] = ChangeNotifier("transactions")

    def _transaction_to_row(self, tx: Transaction) -> list[str]:
        return [
            _cell(tx.id),
            _cell(tx.transaction_date),
            tx.description,
            _cell(tx.amount_usd),
            _cell(tx.original_amount),
            _cell(tx.original_currency),
            _cell(tx.exchange_rate),
            _cell(tx.rate_source),
            _cell(tx.category),
            tx.paid_by,
            _cell(tx.payer_kind),
            _cell(tx.is_confirmed),
            _cell(tx.created_at),
        ]

    def _row_to_transaction(self, row: list[str]) -> Optional[Transaction]:
        values = dict(zip(TRANSACTION_COLUMNS, row + [""] * len(TRANSACTION_COLUMNS)))
        record_id = values["id"]
        data = {
            "id": record_id,
            "transaction_date": values["date"],
            "description": values["description"],
            "amount_usd": values["amount_usd"],
            "original_amount": values["original_amount"] or None,
            "original_currency": values["original_currency"] or "USD",
            "exchange_rate": values["exchange_rate"] or None,
            "rate_source": values["rate_source"] or None,
            "category": values["category"],
            "paid_by": values["paid_by"],
            "payer_kind": values["payer_kind"],
            "is_confirmed": _as_bool(values["is_confirmed"]),
            "created_at": values["created_at"] or datetime.now(timezone.utc),
        }
        try:
            return Transaction(**data)
        except (ValidationError, ValueError) as e:
            logger.warning("malformed_transaction_row", transaction_id=record_id, error=str(e))

        try:
            tx_date = date.fromisoformat(values["date"])
            created_at = (
                datetime.fromisoformat(values["created_at"])
                if values["created_at"]
                else datetime.now(timezone.utc)
            )
        except ValueError:
            return None

        return Transaction.model_construct(
            id=record_id,
            transaction_date=tx_date,
            description=values["description"],
            amount_usd=_lenient_decimal(values["amount_usd"]),
            category=values["category"],
            paid_by=values["paid_by"],
            payer_kind=values["payer_kind"],
            is_confirmed=data["is_confirmed"],
            created_at=created_at,
        )

    def _read_all(self) -> list[Transaction]:
        rows = self._client.get_transactions_sheet().get_all_values()[1:]
        records = []
        for row in rows:
            if not row or not row[0]:
                continue
            tx = self._row_to_transaction(row)
            if tx is not None:
                records.append(tx)
        return records

    def _changed(self) -> None:
        """Push the fresh collection to subscribers. The write already happened."""
        if not len(self._subscribers):
            return
        try:
            self._subscribers.notify(self._read_all())
        except Exception as e:
            logger.error("subscriber_refresh_failed", sheet="transactions", error=str(e))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_row(self, row: list) -> None:
        self._client.get_transactions_sheet().append_row(row, value_input_option="RAW")

    async def append_transaction(self, transaction: Transaction) -> str:
        transaction_id = uuid4().hex
        row = self._transaction_to_row(transaction.model_copy(update={"id": transaction_id}))
        try:
            self._append_row(row)
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")
        self._changed()
        return transaction_id

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        try:
            rows = self._client.get_transactions_sheet().get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")
        idx = _find_row(rows, transaction_id)
        if idx is None:
            return None
        return self._row_to_transaction(rows[idx - 1])

    async def update_transaction(
        self,
        transaction_id: str,
        fields: dict[str, Any],
    ) -> Transaction:
        try:
            sheet = self._client.get_transactions_sheet()
            rows = sheet.get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

        idx = _find_row(rows, transaction_id)
        if idx is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        current = self._row_to_transaction(rows[idx - 1])
        if current is None:
            raise StorageError(f"Stored transaction {transaction_id} is unreadable")
        data = current.model_dump()
        data.update(fields)
        data["id"] = transaction_id
        try:
            updated = Transaction(**data)
        except ValidationError as e:
            raise StorageError(f"Update would make {transaction_id} invalid: {e}") from e

        try:
            sheet.update(values=[self._transaction_to_row(updated)], range_name=f"A{idx}")
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")
        self._changed()
        return updated

    async def delete_transaction(self, transaction_id: str) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            idx = _find_row(sheet.get_all_values(), transaction_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")
        self._changed()
        return True

    async def list_transactions(self) -> list[Transaction]:
        try:
            return self._read_all()
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

    def subscribe_transactions(
        self,
        on_change: Callable[[list[Transaction]], None],
    ) -> Unsubscribe:
        unsubscribe = self._subscribers.add(on_change)
        on_change(self._read_all())
        return unsubscribe

    async def clear_transactions(self) -> int:
        try:
            sheet = self._client.get_transactions_sheet()
            count = len(sheet.get_all_values()) - 1
            if count > 0:
                sheet.delete_rows(2, count + 1)
        except Exception as e:
            raise StorageError(f"Failed to clear transactions: {e}")
        self._changed()
        return max(count, 0)


class GoogleSheetsBookingStorage(BookingStorageInterface):
    """One booking per row, columns per BOOKING_COLUMNS."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._subscribers: ChangeNotifier[Booking] = ChangeNotifier("bookings")

    def _booking_to_row(self, booking: Booking) -> list[str]:
        return [
            _cell(booking.id),
            booking.guest_name,
            _cell(booking.start_date),
            _cell(booking.end_date),
            _cell(booking.total_price_usd),
            _cell(booking.is_family),
            _cell(booking.is_paid),
            booking.notes or "",
        ]

    def _row_to_booking(self, row: list[str]) -> Optional[Booking]:
        values = dict(zip(BOOKING_COLUMNS, row + [""] * len(BOOKING_COLUMNS)))
        try:
            return Booking(
                id=values["id"],
                guest_name=values["guest_name"],
                start_date=values["start_date"],
                end_date=values["end_date"],
                total_price_usd=values["total_price_usd"] or "0",
                is_family=_as_bool(values["is_family"]),
                is_paid=_as_bool(values["is_paid"]),
                notes=values["notes"] or None,
            )
        except ValidationError as e:
            logger.warning("malformed_booking_row", booking_id=values["id"], error=str(e))
            return None

    def _read_all(self) -> list[Booking]:
        rows = self._client.get_bookings_sheet().get_all_values()[1:]
        bookings = []
        for row in rows:
            if not row or not row[0]:
                continue
            booking = self._row_to_booking(row)
            if booking is not None:
                bookings.append(booking)
        return bookings

    def _changed(self) -> None:
        """Push the fresh collection to subscribers. The write already happened."""
        if not len(self._subscribers):
            return
        try:
            self._subscribers.notify(self._read_all())
        except Exception as e:
            logger.error("subscriber_refresh_failed", sheet="bookings", error=str(e))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_row(self, row: list) -> None:
        self._client.get_bookings_sheet().append_row(row, value_input_option="RAW")

    async def append_booking(self, booking: Booking) -> str:
        booking_id = uuid4().hex
        row = self._booking_to_row(booking.model_copy(update={"id": booking_id}))
        try:
            self._append_row(row)
        except Exception as e:
            raise StorageError(f"Failed to save booking: {e}")
        self._changed()
        return booking_id

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        try:
            rows = self._client.get_bookings_sheet().get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to get booking: {e}")
        idx = _find_row(rows, booking_id)
        if idx is None:
            return None
        return self._row_to_booking(rows[idx - 1])

    async def update_booking(
        self,
        booking_id: str,
        fields: dict[str, Any],
    ) -> Booking:
        try:
            sheet = self._client.get_bookings_sheet()
            rows = sheet.get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to update booking: {e}")

        idx = _find_row(rows, booking_id)
        if idx is None:
            raise NotFoundError(f"Booking not found: {booking_id}")
        current = self._row_to_booking(rows[idx - 1])
        if current is None:
            raise StorageError(f"Stored booking {booking_id} is unreadable")

        data = current.model_dump()
        data.update(fields)
        data["id"] = booking_id
        try:
            updated = Booking(**data)
        except ValidationError as e:
            raise StorageError(f"Update would make {booking_id} invalid: {e}") from e

        try:
            sheet.update(values=[self._booking_to_row(updated)], range_name=f"A{idx}")
        except Exception as e:
            raise StorageError(f"Failed to update booking: {e}")
        self._changed()
        return updated

    async def delete_booking(self, booking_id: str) -> bool:
        try:
            sheet = self._client.get_bookings_sheet()
            idx = _find_row(sheet.get_all_values(), booking_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
        except Exception as e:
            raise StorageError(f"Failed to delete booking: {e}")
        self._changed()
        return True

    async def list_bookings(self) -> list[Booking]:
        try:
            return self._read_all()
        except Exception as e:
            raise StorageError(f"Failed to list bookings: {e}")

    def subscribe_bookings(
        self,
        on_change: Callable[[list[Booking]], None],
    ) -> Unsubscribe:
        unsubscribe = self._subscribers.add(on_change)
        on_change(self._read_all())
        return unsubscribe

    async def clear_bookings(self) -> int:
        try:
            sheet = self._client.get_bookings_sheet()
            count = len(sheet.get_all_values()) - 1
            if count > 0:
                sheet.delete_rows(2, count + 1)
        except Exception as e:
            raise StorageError(f"Failed to clear bookings: {e}")
        self._changed()
        return max(count, 0)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=_as_bool(safe_get(10)),
        )

    def _read_all(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, ValidationError):
                continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.error("audit_write_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._read_all() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._read_all()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_all()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        return sorted(events, key=lambda e: e.timestamp, reverse=True)[:limit]
