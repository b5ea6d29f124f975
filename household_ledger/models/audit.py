"""
Audit Models for Household Ledger

Every action that changes the ledger is logged for audit purposes.
Anyone in the family can edit or delete any record, so the audit trail
is the only way to answer "who changed this, and when?".

DESIGN DECISION: Audit logs are append-only. We never delete or modify them,
not even when the ledger itself is cleared.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Extraction
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"

    # Validation and enrichment
    VALIDATION_FAILED = "validation_failed"
    RATE_FALLBACK_USED = "rate_fallback_used"

    # Human confirmation
    USER_CONFIRMED = "user_confirmed"
    USER_REJECTED = "user_rejected"

    # Ledger changes
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    SETTLEMENT_CREATED = "settlement_created"

    # Bookings
    BOOKING_SAVED = "booking_saved"
    BOOKING_PAID = "booking_paid"
    BOOKING_DELETED = "booking_deleted"

    # Bulk operations
    BACKUP_RESTORED = "backup_restored"
    LEDGER_CLEARED = "ledger_cleared"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about? Ledger ids are opaque strings.
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'booking', 'extraction')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one chat message)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_saved(tx, correlation_id)
        event = AuditEventBuilder.settlement_created(tx, balance, correlation_id)
    """

    @staticmethod
    def extraction_completed(
        extraction_id: UUID,
        kind: str,
        candidate_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description=f"Extraction produced {kind} ({candidate_count} candidates)",
            details={"kind": kind, "candidate_count": candidate_count},
        )

    @staticmethod
    def extraction_failed(
        extraction_id: UUID,
        message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description="Extraction returned an error",
            error_message=message,
        )

    @staticmethod
    def validation_failed(
        candidate_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="candidate",
            entity_id=str(candidate_id),
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def rate_fallback_used(
        candidate_id: UUID,
        rate: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATE_FALLBACK_USED,
            severity=AuditSeverity.WARNING,
            entity_type="candidate",
            entity_id=str(candidate_id),
            correlation_id=correlation_id,
            description=f"Fallback exchange rate {rate} used",
            details={"rate": rate, "reason": reason},
        )

    @staticmethod
    def user_confirmed(
        transaction_id: str,
        candidate_id: Optional[UUID],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="User confirmed proposed transaction",
            details={"candidate_id": str(candidate_id) if candidate_id else None},
            is_user_action=True,
        )

    @staticmethod
    def user_rejected(
        candidate_id: UUID,
        reason: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REJECTED,
            entity_type="candidate",
            entity_id=str(candidate_id),
            correlation_id=correlation_id,
            description="User rejected proposed transaction",
            details={"reason": reason or "No reason provided"},
            is_user_action=True,
        )

    @staticmethod
    def transaction_saved(
        transaction_id: str,
        category: str,
        paid_by: str,
        amount_usd: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction saved: {category} by {paid_by} - USD {amount_usd}",
            details={"category": category, "paid_by": paid_by, "amount_usd": amount_usd},
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        changed: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction updated: {', '.join(sorted(changed))}",
            details={"changed": {k: str(v) for k, v in changed.items()}},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def settlement_created(
        transaction_id: str,
        counterparty: str,
        balance_before: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Settlement of USD {amount} for {counterparty}",
            details={
                "counterparty": counterparty,
                "balance_before": balance_before,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def booking_saved(
        booking_id: str,
        guest_name: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BOOKING_SAVED,
            entity_type="booking",
            entity_id=booking_id,
            correlation_id=correlation_id,
            description=f"Booking saved: {guest_name}",
            is_user_action=True,
        )

    @staticmethod
    def booking_paid(
        booking_id: str,
        transaction_id: str,
        amount_usd: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BOOKING_PAID,
            entity_type="booking",
            entity_id=booking_id,
            correlation_id=correlation_id,
            description=f"Booking marked paid - USD {amount_usd}",
            details={"transaction_id": transaction_id, "amount_usd": amount_usd},
            is_user_action=True,
        )

    @staticmethod
    def booking_deleted(
        booking_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BOOKING_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="booking",
            entity_id=booking_id,
            correlation_id=correlation_id,
            description="Booking deleted",
            is_user_action=True,
        )

    @staticmethod
    def backup_restored(
        transaction_count: int,
        booking_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            severity=AuditSeverity.WARNING,
            description=(
                f"Backup restored: {transaction_count} transactions, "
                f"{booking_count} bookings"
            ),
            correlation_id=correlation_id,
            details={
                "transaction_count": transaction_count,
                "booking_count": booking_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def ledger_cleared(
        transaction_count: int,
        booking_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CLEARED,
            severity=AuditSeverity.CRITICAL,
            description="All transactions and bookings deleted",
            correlation_id=correlation_id,
            details={
                "transaction_count": transaction_count,
                "booking_count": booking_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
