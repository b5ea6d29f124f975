"""
Core Data Models for Household Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage, backups and logging
4. Keep the original app's field names (camelCase) on the wire

DESIGN DECISION: Amounts are always stored unsigned. Whether money entered
or left the box is derived from (category, payer kind) by the ledger rules,
never stored on the record.
"""

import unicodedata
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


def normalize_key(value: str) -> str:
    """Fold a name for comparison: trimmed, lower-case, accents removed."""
    decomposed = unicodedata.normalize("NFKD", value.strip().lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Category(str, Enum):
    """
    Transaction categories.

    The values are the labels the family uses (Spanish) and are what gets
    stored. Lookup is case- and accent-insensitive so "prestamo" and
    "PRÉSTAMO" both resolve to PRESTAMO.
    """
    INGRESO = "Ingreso"
    INSUMOS = "Insumos"
    MANTENIMIENTO = "Mantenimiento"
    SERVICIOS = "Servicios"
    CUENTAS = "Cuentas"
    IMPUESTOS = "Impuestos"
    PRESTAMO = "Préstamo"
    PAGO_RESERVA = "Pago Reserva"
    REEMBOLSO = "Reembolso"
    ADELANTO = "Adelanto"
    DONACION = "Donación"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = normalize_key(value)
            for member in cls:
                if normalize_key(member.value) == key:
                    return member
        return None


class Currency(str, Enum):
    """Currencies a transaction can be entered in."""
    USD = "USD"
    UYU = "UYU"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            upper = value.strip().upper()
            for member in cls:
                if member.value == upper:
                    return member
        return None


class PayerKind(str, Enum):
    """
    Who a transaction names in `paidBy`.

    Decided once when the record enters the ledger (see PayerDirectory),
    so the aggregator never re-derives it from strings.
    """
    COUNTERPARTY = "counterparty"  # A recognized cousin
    CASH_BOX = "cash_box"          # "Caja" - the physical box itself
    CLIENT = "client"              # "Cliente" - a paying guest
    FAMILY = "family"              # "Familia" - the family at large
    PROPERTY = "property"          # The property name itself
    EXTERNAL = "external"          # Anyone else (unknown names)

    @property
    def is_counterparty(self) -> bool:
        return self is PayerKind.COUNTERPARTY


class RateSource(str, Enum):
    """Where the exchange rate on a transaction came from."""
    IDENTITY = "identity"        # USD, rate is 1
    LIVE = "live"                # Today's rate from the rate service
    HISTORICAL = "historical"    # Past-date rate from the rate service
    FALLBACK = "fallback"        # Lookup failed, configured constant used
    USER = "user"                # Rate stated by the user
    EDITED = "edited"            # Re-derived after an edit


class Payer(BaseModel):
    """A resolved payer identity: the canonical name plus its kind."""
    model_config = ConfigDict(frozen=True)

    kind: PayerKind
    name: str


# =============================================================================
# TRANSACTION MODELS
# =============================================================================

class Transaction(BaseModel):
    """
    A money movement in the ledger.

    CRITICAL: Only confirmed transactions take part in aggregation.
    Unconfirmed ones are proposals awaiting human approval.

    Records are immutable; edits produce a new instance (see
    household_ledger.enrichment.apply_edit).
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    # Assigned by the persistence layer
    id: Optional[str] = None

    transaction_date: date = Field(
        ...,
        alias="date",
        description="Calendar date of the movement"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    amount_usd: Decimal = Field(
        ...,
        ge=0,
        alias="amountUSD",
        description="Normalized amount in USD (always non-negative)"
    )

    # Provenance of the USD normalization
    original_amount: Optional[Decimal] = Field(default=None, ge=0)
    original_currency: Currency = Currency.USD
    exchange_rate: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="UYU per USD used for conversion"
    )
    rate_source: Optional[RateSource] = None

    category: Category
    paid_by: str = Field(..., min_length=1)
    payer_kind: PayerKind

    is_confirmed: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v):
        if isinstance(v, str):
            return Category(v)
        return v

    @property
    def payer(self) -> Payer:
        return Payer(kind=self.payer_kind, name=self.paid_by)

    @property
    def is_foreign_currency(self) -> bool:
        return self.original_currency is not Currency.USD


class TransactionCandidate(BaseModel):
    """
    A transaction proposed by the extractor or typed in by hand.

    CRITICAL: This is PROPOSED data, NOT verified. It carries the original
    amount and currency but never a USD amount; enrichment computes that.

    Fields are optional and loosely typed because the extractor may miss or
    garble them. The validator reports what is wrong.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    candidate_id: UUID = Field(default_factory=uuid4)
    proposed_at: datetime = Field(default_factory=_utcnow)

    transaction_date: Optional[date] = Field(default=None, alias="date")
    description: Optional[str] = Field(default=None, max_length=500)
    original_amount: Optional[Decimal] = None
    original_currency: Optional[str] = None
    exchange_rate: Optional[Decimal] = Field(
        default=None,
        description="Rate stated by the user, if any (UYU per USD)"
    )
    category: Optional[str] = None
    paid_by: Optional[str] = None

    @property
    def resolved_category(self) -> Optional[Category]:
        if not self.category:
            return None
        try:
            return Category(self.category)
        except ValueError:
            return None

    @property
    def resolved_currency(self) -> Optional[Currency]:
        if not self.original_currency:
            return None
        try:
            return Currency(self.original_currency)
        except ValueError:
            return None


class TransactionEdit(BaseModel):
    """
    Partial update to a stored transaction.

    Only fields explicitly set are applied.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    transaction_date: Optional[date] = Field(default=None, alias="date")
    description: Optional[str] = Field(default=None, max_length=500)
    amount_usd: Optional[Decimal] = Field(default=None, ge=0, alias="amountUSD")
    original_amount: Optional[Decimal] = Field(default=None, ge=0)
    original_currency: Optional[Currency] = None
    category: Optional[Category] = None
    paid_by: Optional[str] = Field(default=None, min_length=1)

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v):
        if isinstance(v, str):
            return Category(v)
        return v

    def changed_fields(self) -> dict:
        return self.model_dump(exclude_unset=True)


# =============================================================================
# BOOKING MODELS
# =============================================================================

class Booking(BaseModel):
    """
    A stay at the property.

    Family stays are free; client stays produce a "Pago Reserva"
    transaction once marked paid.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    id: Optional[str] = None
    guest_name: str = Field(..., min_length=1, max_length=200)
    start_date: date
    end_date: date
    total_price_usd: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        alias="totalPriceUSD",
    )
    is_family: bool = False
    is_paid: bool = False
    notes: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Booking':
        if self.end_date < self.start_date:
            raise ValueError("Booking end date cannot be before start date")
        return self

    def overlaps(self, start: date, end: date) -> bool:
        """True if the stay touches any day in [start, end]."""
        return self.start_date <= end and self.end_date >= start


class BookingCandidate(BaseModel):
    """A booking proposed by the extractor, not yet saved."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    guest_name: str = Field(..., min_length=1, max_length=200)
    start_date: date
    end_date: date
    total_price_usd: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        alias="totalPriceUSD",
    )
    is_family: bool = False
    notes: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode='after')
    def validate_dates(self) -> 'BookingCandidate':
        if self.end_date < self.start_date:
            raise ValueError("Booking end date cannot be before start date")
        return self

    def to_booking(self) -> Booking:
        return Booking(
            guest_name=self.guest_name,
            start_date=self.start_date,
            end_date=self.end_date,
            total_price_usd=Decimal("0") if self.is_family else self.total_price_usd,
            is_family=self.is_family,
            is_paid=False,
            notes=self.notes,
        )


# =============================================================================
# EXTRACTION MODELS
# =============================================================================

class ExtractionKind(str, Enum):
    """What the extractor understood from a message or photo."""
    TRANSACTION = "transaction"
    BATCH_TRANSACTIONS = "batch_transactions"
    BOOKING = "booking"
    ERROR = "error"


class ExtractionResult(BaseModel):
    """
    Output of the extraction collaborator.

    Either candidates for human review or an error message for the user.
    Never both.
    """

    extraction_id: UUID = Field(default_factory=uuid4)
    kind: ExtractionKind
    transactions: list[TransactionCandidate] = Field(default_factory=list)
    booking: Optional[BookingCandidate] = None
    message: Optional[str] = None

    @model_validator(mode='after')
    def validate_shape(self) -> 'ExtractionResult':
        if self.kind is ExtractionKind.ERROR:
            if self.transactions or self.booking:
                raise ValueError("An error result cannot carry candidates")
            if not self.message:
                raise ValueError("An error result needs a message")
        elif self.kind is ExtractionKind.TRANSACTION:
            if len(self.transactions) != 1:
                raise ValueError("A transaction result carries exactly one candidate")
        elif self.kind is ExtractionKind.BATCH_TRANSACTIONS:
            if not self.transactions:
                raise ValueError("A batch result carries at least one candidate")
        elif self.kind is ExtractionKind.BOOKING:
            if self.booking is None:
                raise ValueError("A booking result needs a booking")
        return self

    @property
    def is_error(self) -> bool:
        return self.kind is ExtractionKind.ERROR

    @classmethod
    def error(cls, message: str) -> 'ExtractionResult':
        return cls(kind=ExtractionKind.ERROR, message=message)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (presence, numbers, closed enumerations)
    Stage 2: Semantic validation (category/payer combinations, dates, sizes)
    """

    candidate_id: UUID
    validated_at: datetime = Field(default_factory=_utcnow)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool
    can_confirm: bool = Field(
        ...,
        description="Can the user confirm this candidate as-is?"
    )

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
