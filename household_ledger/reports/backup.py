"""
JSON Backup and Restore

The backup keeps the app's wire names (camelCase) so older backup files
restore unchanged:

    {"transactions": [...], "bookings": [...], "exportedAt": "..."}

Restore is ADDITIVE: every record is inserted as new and gets a new id.
Restoring into a non-empty ledger duplicates data unless it is cleared
first. Ids in the file are ignored.

Older backups carry no `payerKind`; it is resolved from `paidBy` with the
PayerDirectory, the same way ingestion does it.
"""

import json
from datetime import datetime, timezone
from typing import Iterable, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from household_ledger.ledger.payers import PayerDirectory
from household_ledger.models.transaction import Booking, Transaction

logger = structlog.get_logger(__name__)


class BackupFormatError(Exception):
    """The backup payload is not something we can restore from."""
    pass


class RejectedRecord(BaseModel):
    """A backup entry that could not be turned into a record."""

    collection: str
    index: int
    reason: str


class BackupContents(BaseModel):
    """Records parsed out of a backup, ready to be appended."""

    transactions: list[Transaction] = Field(default_factory=list)
    bookings: list[Booking] = Field(default_factory=list)
    rejected: list[RejectedRecord] = Field(default_factory=list)


def export_backup(
    transactions: Iterable[Transaction],
    bookings: Iterable[Booking],
    exported_at: Optional[datetime] = None,
) -> str:
    """Serialize the whole ledger to a JSON document."""
    payload = {
        "transactions": [
            tx.model_dump(mode="json", by_alias=True) for tx in transactions
        ],
        "bookings": [
            booking.model_dump(mode="json", by_alias=True) for booking in bookings
        ],
        "exportedAt": (exported_at or datetime.now(timezone.utc)).isoformat(),
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def _transaction_from_entry(entry: dict, payer_directory: PayerDirectory) -> Transaction:
    data = {k: v for k, v in entry.items() if k != "id"}
    paid_by = data.get("paidBy", data.get("paid_by"))
    if isinstance(paid_by, str) and paid_by.strip():
        payer = payer_directory.resolve(paid_by)
        data["paidBy"] = payer.name
        data.pop("paid_by", None)
        if not data.get("payerKind") and not data.get("payer_kind"):
            data["payerKind"] = payer.kind.value
    return Transaction.model_validate(data)


def _booking_from_entry(entry: dict) -> Booking:
    data = {k: v for k, v in entry.items() if k != "id"}
    return Booking.model_validate(data)


def parse_backup(text: str, payer_directory: PayerDirectory) -> BackupContents:
    """
    Parse a backup document.

    Individual bad entries are rejected and listed; a document that is not
    a backup at all raises.

    Raises:
        BackupFormatError: Not JSON, not an object, or no record lists
    """
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise BackupFormatError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise BackupFormatError("Backup must be a JSON object")

    raw_transactions = payload.get("transactions", [])
    raw_bookings = payload.get("bookings", [])
    if not isinstance(raw_transactions, list) or not isinstance(raw_bookings, list):
        raise BackupFormatError("'transactions' and 'bookings' must be lists")
    if "transactions" not in payload and "bookings" not in payload:
        raise BackupFormatError("Backup has neither 'transactions' nor 'bookings'")

    contents = BackupContents()

    for index, entry in enumerate(raw_transactions):
        try:
            if not isinstance(entry, dict):
                raise ValueError("entry is not an object")
            contents.transactions.append(_transaction_from_entry(entry, payer_directory))
        except (ValidationError, ValueError) as e:
            contents.rejected.append(
                RejectedRecord(collection="transactions", index=index, reason=str(e))
            )

    for index, entry in enumerate(raw_bookings):
        try:
            if not isinstance(entry, dict):
                raise ValueError("entry is not an object")
            contents.bookings.append(_booking_from_entry(entry))
        except (ValidationError, ValueError) as e:
            contents.rejected.append(
                RejectedRecord(collection="bookings", index=index, reason=str(e))
            )

    if contents.rejected:
        logger.warning(
            "backup_entries_rejected",
            count=len(contents.rejected),
            first_reason=contents.rejected[0].reason,
        )

    return contents
