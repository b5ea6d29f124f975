"""
Audit Logger

DESIGN DECISION: Anyone in the family can add, edit or delete any record.
Every one of those actions is logged so there is always an answer to
"what happened to this transaction?".

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace one user action end to end
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from household_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from household_ledger.models.transaction import Transaction
from household_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when configured (for persistence and family visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity is AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_extraction_completed(
        self,
        extraction_id: UUID,
        kind: str,
        candidate_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_completed(
            extraction_id=extraction_id,
            kind=kind,
            candidate_count=candidate_count,
            correlation_id=correlation_id,
        ))

    async def log_extraction_failed(
        self,
        extraction_id: UUID,
        message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_failed(
            extraction_id=extraction_id,
            message=message,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        candidate_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            candidate_id=candidate_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_rate_fallback(
        self,
        candidate_id: UUID,
        rate: Decimal,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.rate_fallback_used(
            candidate_id=candidate_id,
            rate=str(rate),
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_user_confirmed(
        self,
        transaction_id: str,
        candidate_id: Optional[UUID],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.user_confirmed(
            transaction_id=transaction_id,
            candidate_id=candidate_id,
            correlation_id=correlation_id,
        ))

    async def log_user_rejected(
        self,
        candidate_id: UUID,
        reason: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.user_rejected(
            candidate_id=candidate_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_transaction_saved(
        self,
        transaction: Transaction,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_saved(
            transaction_id=transaction.id,
            category=transaction.category.value,
            paid_by=transaction.paid_by,
            amount_usd=str(transaction.amount_usd),
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        transaction_id: str,
        changed: dict,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            changed=changed,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_settlement_created(
        self,
        transaction_id: str,
        counterparty: str,
        balance_before: Decimal,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_created(
            transaction_id=transaction_id,
            counterparty=counterparty,
            balance_before=str(balance_before),
            amount=str(amount),
            correlation_id=correlation_id,
        ))

    async def log_booking_saved(
        self,
        booking_id: str,
        guest_name: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.booking_saved(
            booking_id=booking_id,
            guest_name=guest_name,
            correlation_id=correlation_id,
        ))

    async def log_booking_paid(
        self,
        booking_id: str,
        transaction_id: str,
        amount_usd: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.booking_paid(
            booking_id=booking_id,
            transaction_id=transaction_id,
            amount_usd=str(amount_usd),
            correlation_id=correlation_id,
        ))

    async def log_booking_deleted(
        self,
        booking_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.booking_deleted(
            booking_id=booking_id,
            correlation_id=correlation_id,
        ))

    async def log_backup_restored(
        self,
        transaction_count: int,
        booking_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.backup_restored(
            transaction_count=transaction_count,
            booking_count=booking_count,
            correlation_id=correlation_id,
        ))

    async def log_ledger_cleared(
        self,
        transaction_count: int,
        booking_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_cleared(
            transaction_count=transaction_count,
            booking_count=booking_count,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (a chat message, a
    settlement, a restore) and pass it through every step.
    """
    return uuid4()
