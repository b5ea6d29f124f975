"""
Main Orchestrator for Household Ledger

Ties the collaborators (storage, extraction, rates) to the ledger core and
defines the end-to-end flows:

1. Capture  (message/photo → extract → validate → enrich → confirm → save)
2. Ledger   (snapshot, balances, settlement, edit, delete)
3. Bookings (agenda, mark paid → "Pago Reserva", delete)
4. Backup   (CSV export, JSON export/restore, clear)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No transaction persists without human confirmation
- Every candidate is validated and enriched before it can be confirmed
- Every change is audited

The ledger core stays pure; every read of storage happens here, and the
snapshot is recomputed from the latest collection after each write.
"""

from calendar import monthrange
from datetime import date
from decimal import Decimal
from typing import Callable, NamedTuple, Optional, Union
from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger, create_correlation_id
from household_ledger.config import get_settings
from household_ledger.enrichment import (
    ExchangeRateService,
    RateProvider,
    TransactionEnricher,
    apply_edit,
)
from household_ledger.ledger import (
    CLIENT_NAME,
    BookingError,
    EditError,
    PayerDirectory,
    SettlementError,
    aggregate,
    chronological,
    counterparty_balance,
    counterparty_balances,
    plan_settlement,
)
from household_ledger.ledger.rules import COUNTERPARTY_ONLY_CATEGORIES
from household_ledger.models.ledger import LedgerSnapshot
from household_ledger.models.transaction import (
    Booking,
    BookingCandidate,
    Category,
    Currency,
    ExtractionResult,
    PayerKind,
    RateSource,
    Transaction,
    TransactionCandidate,
    TransactionEdit,
    ValidationResult,
)
from household_ledger.reports import BackupContents, export_backup, export_csv, parse_backup
from household_ledger.services.extraction import GeminiExtractionService
from household_ledger.services.storage import (
    BookingStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBookingStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryBookingStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from household_ledger.validation import TransactionValidator

logger = structlog.get_logger(__name__)


def _confirmed(tx: Transaction) -> Transaction:
    return tx.model_copy(update={"is_confirmed": True})


async def _save(
    storage: TransactionStorageInterface,
    tx: Transaction,
    audit_logger: AuditLogger,
    correlation_id: UUID,
) -> Transaction:
    try:
        transaction_id = await storage.append_transaction(tx)
    except StorageError as e:
        await audit_logger.log_external_service_error(
            service="transaction_storage",
            error_message=str(e),
            correlation_id=correlation_id,
        )
        raise
    return tx.model_copy(update={"id": transaction_id})


class CaptureFlow:
    """
    Orchestrates data capture from the chat.

    Flow:
    1. Extract   → Gemini proposes candidates (or an error message)
    2. Prepare   → Two-stage validation, then enrichment to USD
    3. Review    → Shown to the user (PAUSE - require confirmation)
    4. Confirm   → User explicitly approves
    5. Save      → Persist as confirmed

    Human confirmation (step 4) is MANDATORY.
    The system NEVER auto-saves.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        booking_storage: BookingStorageInterface,
        enricher: TransactionEnricher,
        validator: TransactionValidator,
        extraction_service: Optional[GeminiExtractionService] = None,
        audit_logger: Optional[AuditLogger] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._transactions = transaction_storage
        self._bookings = booking_storage
        self._enricher = enricher
        self._validator = validator
        self._extraction = extraction_service
        self._audit_logger = audit_logger or AuditLogger()
        self._today = today or date.today

    @property
    def can_extract(self) -> bool:
        return self._extraction is not None

    def summarize(self, validation: ValidationResult) -> str:
        return self._validator.get_user_friendly_summary(validation)

    async def extract(
        self,
        message: str,
        image_bytes: Optional[bytes] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionResult:
        """
        Ask the extractor for candidates.

        Never raises for extractor trouble; the result carries the message.
        """
        correlation_id = correlation_id or create_correlation_id()

        if self._extraction is None:
            return ExtractionResult.error(
                "The assistant is not configured. Set GEMINI_API_KEY or enter data manually."
            )

        today = self._today()
        rate_hint = self._enricher.resolve_rate(today).rate
        result = await self._extraction.extract(
            message,
            image_bytes=image_bytes,
            today=today,
            rate_hint=rate_hint,
        )

        if result.is_error:
            await self._audit_logger.log_extraction_failed(
                extraction_id=result.extraction_id,
                message=result.message,
                correlation_id=correlation_id,
            )
        else:
            await self._audit_logger.log_extraction_completed(
                extraction_id=result.extraction_id,
                kind=result.kind.value,
                candidate_count=len(result.transactions),
                correlation_id=correlation_id,
            )
        return result

    async def prepare(
        self,
        candidate: TransactionCandidate,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ValidationResult, Optional[Transaction]]:
        """
        Validate and enrich a candidate for review.

        Returns:
            (validation, transaction). The transaction is None when the
            candidate cannot be confirmed; otherwise it is the unconfirmed,
            USD-normalized record to show the user.
        """
        correlation_id = correlation_id or create_correlation_id()

        validation = await self._validator.validate(candidate)
        if not validation.can_confirm:
            await self._audit_logger.log_validation_failed(
                candidate_id=candidate.candidate_id,
                issues=[issue.model_dump() for issue in validation.issues],
                correlation_id=correlation_id,
            )
            return validation, None

        tx = self._enricher.enrich(candidate)
        if tx.rate_source is RateSource.FALLBACK:
            await self._audit_logger.log_rate_fallback(
                candidate_id=candidate.candidate_id,
                rate=tx.exchange_rate,
                reason="rate lookup failed",
                correlation_id=correlation_id,
            )
        return validation, tx

    async def confirm_and_save(
        self,
        transaction: Transaction,
        candidate_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Persist a reviewed transaction as confirmed.

        CRITICAL: This is called ONLY after explicit user confirmation.
        """
        correlation_id = correlation_id or create_correlation_id()

        saved = await _save(
            self._transactions, _confirmed(transaction), self._audit_logger, correlation_id
        )

        await self._audit_logger.log_user_confirmed(
            transaction_id=saved.id,
            candidate_id=candidate_id,
            correlation_id=correlation_id,
        )
        await self._audit_logger.log_transaction_saved(saved, correlation_id)
        return saved

    async def reject(
        self,
        candidate: TransactionCandidate,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Record that the user discarded a proposal."""
        await self._audit_logger.log_user_rejected(
            candidate_id=candidate.candidate_id,
            reason=reason,
            correlation_id=correlation_id or create_correlation_id(),
        )

    async def save_booking(
        self,
        candidate: BookingCandidate,
        correlation_id: Optional[UUID] = None,
    ) -> Booking:
        """Persist a reviewed booking. Family stays are stored at price 0."""
        correlation_id = correlation_id or create_correlation_id()

        booking = candidate.to_booking()
        booking_id = await self._bookings.append_booking(booking)
        saved = booking.model_copy(update={"id": booking_id})

        await self._audit_logger.log_booking_saved(
            booking_id=booking_id,
            guest_name=saved.guest_name,
            correlation_id=correlation_id,
        )
        return saved


class LedgerFlow:
    """
    Read side of the ledger plus the corrective writes.

    Every read recomputes from the current collection; there is no cache.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        payer_directory: PayerDirectory,
        audit_logger: Optional[AuditLogger] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._transactions = transaction_storage
        self._payers = payer_directory
        self._audit_logger = audit_logger or AuditLogger()
        self._today = today or date.today

    async def snapshot(self) -> LedgerSnapshot:
        return aggregate(await self._transactions.list_transactions())

    async def history(self, newest_first: bool = True) -> list[Transaction]:
        """Confirmed transactions for display, newest first by default."""
        records = await self._transactions.list_transactions()
        return chronological((tx for tx in records if tx.is_confirmed), newest_first)

    async def balances(self) -> dict[str, Decimal]:
        """Balance of every known cousin (0 for those without records)."""
        records = await self._transactions.list_transactions()
        return counterparty_balances(records, self._payers.counterparty_names)

    async def balance(self, counterparty: str) -> Decimal:
        records = await self._transactions.list_transactions()
        return counterparty_balance(records, self._resolve_counterparty(counterparty))

    def _resolve_counterparty(self, name: str) -> str:
        payer = self._payers.resolve(name)
        if payer.kind is not PayerKind.COUNTERPARTY:
            raise SettlementError(f"{name!r} is not a known cousin")
        return payer.name

    async def preview_settlement(
        self,
        counterparty: str,
        amount: Union[Decimal, str, float, int],
    ) -> tuple[Decimal, Transaction]:
        """
        The settlement that would be created, without saving it.

        Returns:
            (current_balance, unconfirmed_transaction)
        """
        name = self._resolve_counterparty(counterparty)
        balance = counterparty_balance(await self._transactions.list_transactions(), name)
        return balance, plan_settlement(name, balance, amount, on_date=self._today())

    async def settle(
        self,
        counterparty: str,
        amount: Union[Decimal, str, float, int],
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Create and save the corrective transaction for a cousin.

        NOTE: The balance read and the append are not atomic. Two settlements
        of the same cousin racing each other can over-correct.
        """
        correlation_id = correlation_id or create_correlation_id()

        balance, planned = await self.preview_settlement(counterparty, amount)
        saved = await _save(
            self._transactions, _confirmed(planned), self._audit_logger, correlation_id
        )

        await self._audit_logger.log_settlement_created(
            transaction_id=saved.id,
            counterparty=saved.paid_by,
            balance_before=balance,
            amount=saved.amount_usd,
            correlation_id=correlation_id,
        )
        return saved

    async def edit(
        self,
        transaction_id: str,
        edit: TransactionEdit,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Apply a user edit, keeping the money fields consistent.

        Raises:
            NotFoundError: Unknown transaction id
            EnrichmentError: The edit leaves no way to derive a rate
            EditError: Adelanto or Reembolso would no longer name a cousin
        """
        current = await self._transactions.get_transaction(transaction_id)
        if current is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        edited = apply_edit(current, edit, self._payers)
        if (
            edited.category in COUNTERPARTY_ONLY_CATEGORIES
            and edited.payer_kind is not PayerKind.COUNTERPARTY
        ):
            raise EditError(
                f"'{edited.category.value}' must name a cousin, not {edited.paid_by!r}"
            )

        before = current.model_dump()
        changed = {
            key: value
            for key, value in edited.model_dump().items()
            if before.get(key) != value
        }
        if not changed:
            return current

        updated = await self._transactions.update_transaction(transaction_id, changed)
        await self._audit_logger.log_transaction_updated(
            transaction_id=transaction_id,
            changed=changed,
            correlation_id=correlation_id or create_correlation_id(),
        )
        return updated

    async def delete(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        deleted = await self._transactions.delete_transaction(transaction_id)
        if deleted:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                correlation_id=correlation_id or create_correlation_id(),
            )
        return deleted


class BookingFlow:
    """Agenda queries and the booking → payment hand-off."""

    def __init__(
        self,
        booking_storage: BookingStorageInterface,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._bookings = booking_storage
        self._transactions = transaction_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._today = today or date.today

    async def bookings_in_range(self, start: date, end: date) -> list[Booking]:
        """Bookings touching any day in [start, end], by start date."""
        bookings = await self._bookings.list_bookings()
        return sorted(
            (b for b in bookings if b.overlaps(start, end)),
            key=lambda b: (b.start_date, b.end_date),
        )

    async def bookings_for_month(self, year: int, month: int) -> list[Booking]:
        last_day = monthrange(year, month)[1]
        return await self.bookings_in_range(date(year, month, 1), date(year, month, last_day))

    async def mark_paid(
        self,
        booking_id: str,
        paid_on: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Booking, Transaction]:
        """
        Record a guest's payment.

        Appends a confirmed "Pago Reserva" paid by "Cliente", then flags the
        booking as paid. If flagging fails the payment is removed again.

        Raises:
            NotFoundError: Unknown booking id
            BookingError: Family stay, already paid, or nothing to collect
        """
        correlation_id = correlation_id or create_correlation_id()

        booking = await self._bookings.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking not found: {booking_id}")
        if booking.is_family:
            raise BookingError(f"{booking.guest_name} is a family stay; nothing to collect")
        if booking.is_paid:
            raise BookingError(f"Booking for {booking.guest_name} is already paid")
        if booking.total_price_usd <= 0:
            raise BookingError(f"Booking for {booking.guest_name} has no price")

        payment = Transaction(
            transaction_date=paid_on or self._today(),
            description=f"Pago reserva: {booking.guest_name}",
            amount_usd=booking.total_price_usd,
            original_amount=booking.total_price_usd,
            original_currency=Currency.USD,
            exchange_rate=Decimal("1"),
            rate_source=RateSource.IDENTITY,
            category=Category.PAGO_RESERVA,
            paid_by=CLIENT_NAME,
            payer_kind=PayerKind.CLIENT,
            is_confirmed=True,
        )
        saved = await _save(self._transactions, payment, self._audit_logger, correlation_id)

        try:
            updated = await self._bookings.update_booking(booking_id, {"is_paid": True})
        except Exception as e:
            await self._transactions.delete_transaction(saved.id)
            await self._audit_logger.log_error(
                error_type="booking_paid_rollback",
                error_message=str(e),
                details={"booking_id": booking_id, "transaction_id": saved.id},
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_booking_paid(
            booking_id=booking_id,
            transaction_id=saved.id,
            amount_usd=saved.amount_usd,
            correlation_id=correlation_id,
        )
        return updated, saved

    async def delete(
        self,
        booking_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete a booking. Any payment already recorded stays in the ledger."""
        deleted = await self._bookings.delete_booking(booking_id)
        if deleted:
            await self._audit_logger.log_booking_deleted(
                booking_id=booking_id,
                correlation_id=correlation_id or create_correlation_id(),
            )
        return deleted


class BackupFlow:
    """Bulk export, additive restore and the full wipe."""

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        booking_storage: BookingStorageInterface,
        payer_directory: PayerDirectory,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transactions = transaction_storage
        self._bookings = booking_storage
        self._payers = payer_directory
        self._audit_logger = audit_logger or AuditLogger()

    async def export_csv(self) -> str:
        return export_csv(await self._transactions.list_transactions())

    async def export_json(self) -> str:
        return export_backup(
            await self._transactions.list_transactions(),
            await self._bookings.list_bookings(),
        )

    async def restore(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> BackupContents:
        """
        Append every record in a backup as new.

        Existing data is kept; restoring twice duplicates everything.

        Raises:
            BackupFormatError: The document is not a backup
        """
        correlation_id = correlation_id or create_correlation_id()
        contents = parse_backup(text, self._payers)

        for tx in contents.transactions:
            await self._transactions.append_transaction(tx)
        for booking in contents.bookings:
            await self._bookings.append_booking(booking)

        await self._audit_logger.log_backup_restored(
            transaction_count=len(contents.transactions),
            booking_count=len(contents.bookings),
            correlation_id=correlation_id,
        )
        return contents

    async def clear(self, correlation_id: Optional[UUID] = None) -> tuple[int, int]:
        """
        Delete every transaction and booking. The audit log is kept.

        Returns:
            (transactions_removed, bookings_removed)
        """
        removed_transactions = await self._transactions.clear_transactions()
        removed_bookings = await self._bookings.clear_bookings()

        await self._audit_logger.log_ledger_cleared(
            transaction_count=removed_transactions,
            booking_count=removed_bookings,
            correlation_id=correlation_id or create_correlation_id(),
        )
        return removed_transactions, removed_bookings


class AppComponents(NamedTuple):
    capture: CaptureFlow
    ledger: LedgerFlow
    bookings: BookingFlow
    backup: BackupFlow
    payer_directory: PayerDirectory
    sheets_client: Optional[GoogleSheetsClient]


def create_app_components(
    use_storage: bool = True,
    use_extraction: bool = True,
    rate_provider: Optional[RateProvider] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Use Google Sheets. Falls back to in-memory storage
                     when Sheets is not configured (or when False).
        use_extraction: Create the Gemini extractor. Left out when Gemini
                        is not configured (or when False).
        rate_provider: Override the HTTP rate service (offline use).
    """
    settings = get_settings()
    payer_directory = PayerDirectory.from_settings(settings.ledger)

    sheets_client = None
    transaction_storage: TransactionStorageInterface = InMemoryTransactionStorage()
    booking_storage: BookingStorageInterface = InMemoryBookingStorage()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.get_spreadsheet()
            transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
            booking_storage = GoogleSheetsBookingStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    extraction_service = None
    if use_extraction:
        try:
            extraction_service = GeminiExtractionService(payer_directory)
        except Exception as e:
            logger.warning("extraction_not_configured", error=str(e))

    enricher = TransactionEnricher(
        rate_provider=rate_provider or ExchangeRateService(),
        payer_directory=payer_directory,
    )
    validator = TransactionValidator(payer_directory, transaction_storage)

    return AppComponents(
        capture=CaptureFlow(
            transaction_storage=transaction_storage,
            booking_storage=booking_storage,
            enricher=enricher,
            validator=validator,
            extraction_service=extraction_service,
            audit_logger=audit_logger,
        ),
        ledger=LedgerFlow(transaction_storage, payer_directory, audit_logger),
        bookings=BookingFlow(booking_storage, transaction_storage, audit_logger),
        backup=BackupFlow(transaction_storage, booking_storage, payer_directory, audit_logger),
        payer_directory=payer_directory,
        sheets_client=sheets_client,
    )
