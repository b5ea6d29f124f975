"""
Data Models Package

This package contains all Pydantic models used in the Household Ledger.
All data flowing through the system must conform to these schemas.
"""

from household_ledger.models.transaction import (
    Booking,
    BookingCandidate,
    Category,
    Currency,
    ExtractionKind,
    ExtractionResult,
    Payer,
    PayerKind,
    RateSource,
    Transaction,
    TransactionCandidate,
    TransactionEdit,
    ValidationIssue,
    ValidationResult,
    normalize_key,
)
from household_ledger.models.ledger import (
    CategoryBreakdown,
    LedgerSnapshot,
    SkippedTransaction,
)
from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "Booking",
    "BookingCandidate",
    "Category",
    "Currency",
    "ExtractionKind",
    "ExtractionResult",
    "Payer",
    "PayerKind",
    "RateSource",
    "Transaction",
    "TransactionCandidate",
    "TransactionEdit",
    "ValidationIssue",
    "ValidationResult",
    "normalize_key",
    # Derived ledger models
    "CategoryBreakdown",
    "LedgerSnapshot",
    "SkippedTransaction",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
