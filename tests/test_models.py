"""
Tests for Household Ledger models

Test strategy:
1. Unit tests for individual components (models, rules, validators)
2. Integration tests for flows (with in-memory storage and stub services)
3. No real API calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from household_ledger.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Booking,
    BookingCandidate,
    Category,
    Currency,
    ExtractionKind,
    ExtractionResult,
    PayerKind,
    Transaction,
    TransactionCandidate,
    TransactionEdit,
    ValidationIssue,
    ValidationResult,
    normalize_key,
)


class TestCategory:
    """Tests for the category enum."""

    def test_all_categories_exist(self):
        """The eleven family labels are the stored values."""
        expected = [
            "Ingreso", "Insumos", "Mantenimiento", "Servicios", "Cuentas",
            "Impuestos", "Préstamo", "Pago Reserva", "Reembolso", "Adelanto",
            "Donación",
        ]
        assert [c.value for c in Category] == expected

    def test_lookup_ignores_case_and_accents(self):
        """'prestamo' and 'DONACION' resolve like the accented labels."""
        assert Category("prestamo") is Category.PRESTAMO
        assert Category("DONACION") is Category.DONACION
        assert Category("  pago reserva ") is Category.PAGO_RESERVA

    def test_unknown_category_rejected(self):
        """Labels outside the closed set raise."""
        with pytest.raises(ValueError):
            Category("Viajes")

    def test_normalize_key(self):
        """Folding strips accents, case and surrounding space."""
        assert normalize_key("  Martín ") == "martin"


class TestTransaction:
    """Tests for the stored transaction record."""

    def _tx(self, **overrides):
        data = dict(
            transaction_date=date(2025, 1, 10),
            description="Gas",
            amount_usd=Decimal("25.00"),
            original_amount=Decimal("1000"),
            original_currency=Currency.UYU,
            exchange_rate=Decimal("40"),
            category=Category.SERVICIOS,
            paid_by="Caja",
            payer_kind=PayerKind.CASH_BOX,
        )
        data.update(overrides)
        return Transaction(**data)

    def test_transaction_creation(self):
        """Defaults: unconfirmed and no id until stored."""
        tx = self._tx()
        assert tx.is_confirmed is False
        assert tx.id is None
        assert tx.is_foreign_currency is True
        assert tx.payer.kind is PayerKind.CASH_BOX

    def test_rejects_negative_amount(self):
        """Amounts are stored unsigned."""
        with pytest.raises(ValidationError):
            self._tx(amount_usd=Decimal("-1"))

    def test_rejects_non_positive_rate(self):
        """A zero exchange rate is never valid."""
        with pytest.raises(ValidationError):
            self._tx(exchange_rate=Decimal("0"))

    def test_is_immutable(self):
        """Records are frozen; edits produce new instances."""
        tx = self._tx()
        with pytest.raises(ValidationError):
            tx.amount_usd = Decimal("1")

    def test_wire_names(self):
        """Dumps and loads with the app's camelCase field names."""
        tx = self._tx()
        data = tx.model_dump(mode="json", by_alias=True)
        assert data["date"] == "2025-01-10"
        assert data["amountUSD"] == "25.00"
        assert data["paidBy"] == "Caja"
        assert data["payerKind"] == "cash_box"
        assert Transaction.model_validate(data) == tx

    def test_category_accepts_loose_label(self):
        """Category strings go through the tolerant lookup."""
        assert self._tx(category="servicios").category is Category.SERVICIOS


class TestCandidateModels:
    """Tests for proposals and edits."""

    def test_candidate_resolves_enums(self):
        """Loose strings resolve; garbage resolves to None."""
        candidate = TransactionCandidate(category="insumos", original_currency="uyu")
        assert candidate.resolved_category is Category.INSUMOS
        assert candidate.resolved_currency is Currency.UYU

        bad = TransactionCandidate(category="Viajes", original_currency="EUR")
        assert bad.resolved_category is None
        assert bad.resolved_currency is None

    def test_candidate_ignores_usd_amount(self):
        """A USD amount in extractor output never reaches a candidate."""
        candidate = TransactionCandidate.model_validate(
            {"originalAmount": "100", "amountUSD": "2.5"}
        )
        assert candidate.original_amount == Decimal("100")
        assert not hasattr(candidate, "amount_usd")

    def test_edit_changed_fields(self):
        """Only fields explicitly set count as changes."""
        edit = TransactionEdit(description="Nuevo", category="reembolso")
        assert edit.changed_fields() == {
            "description": "Nuevo",
            "category": Category.REEMBOLSO,
        }


class TestBookingModels:
    """Tests for bookings."""

    def test_end_before_start_rejected(self):
        """A stay cannot end before it starts."""
        with pytest.raises(ValueError, match="end date cannot be before start date"):
            Booking(
                guest_name="Ana",
                start_date=date(2025, 1, 10),
                end_date=date(2025, 1, 5),
            )

    def test_candidate_end_before_start_rejected(self):
        """Proposed stays get the same date check as saved ones."""
        with pytest.raises(ValidationError, match="end date cannot be before start date"):
            BookingCandidate(
                guest_name="Ana",
                start_date=date(2025, 2, 7),
                end_date=date(2025, 2, 3),
            )

    def test_overlaps(self):
        """Ranges touching either end count as overlapping."""
        booking = Booking(
            guest_name="Ana",
            start_date=date(2025, 1, 30),
            end_date=date(2025, 2, 2),
        )
        assert booking.overlaps(date(2025, 2, 1), date(2025, 2, 28))
        assert booking.overlaps(date(2025, 1, 1), date(2025, 1, 30))
        assert not booking.overlaps(date(2025, 2, 3), date(2025, 2, 28))

    def test_family_candidate_is_free(self):
        """Family stays are saved at price 0 and unpaid."""
        booking = BookingCandidate(
            guest_name="Tíos",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 1, 3),
            total_price_usd=Decimal("300"),
            is_family=True,
        ).to_booking()
        assert booking.total_price_usd == Decimal("0")
        assert booking.is_paid is False


class TestExtractionResult:
    """Tests for extractor output shape."""

    def test_error_result(self):
        """Error results carry only a message."""
        result = ExtractionResult.error("No entendí")
        assert result.is_error
        assert result.kind is ExtractionKind.ERROR

    def test_error_cannot_carry_candidates(self):
        """Candidates and an error are mutually exclusive."""
        with pytest.raises(ValidationError):
            ExtractionResult(
                kind=ExtractionKind.ERROR,
                message="x",
                transactions=[TransactionCandidate()],
            )

    def test_single_transaction_needs_exactly_one(self):
        """A 'transaction' result holds one candidate, a batch holds any."""
        with pytest.raises(ValidationError):
            ExtractionResult(
                kind=ExtractionKind.TRANSACTION,
                transactions=[TransactionCandidate(), TransactionCandidate()],
            )
        batch = ExtractionResult(
            kind=ExtractionKind.BATCH_TRANSACTIONS,
            transactions=[TransactionCandidate(), TransactionCandidate()],
        )
        assert len(batch.transactions) == 2


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            description="Transaction saved",
        )
        assert event.event_type == AuditEventType.TRANSACTION_SAVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.SETTLEMENT_CREATED,
            description="Settlement",
            details={"counterparty": "Pablo", "amount": "60"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "settlement_created"
        assert log_dict["details"]["counterparty"] == "Pablo"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            description="User confirmed transaction",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "user_confirmed"
        assert row[10] == "True"

    def test_builder_user_confirmed(self):
        """Confirmation events point at the stored transaction."""
        correlation_id = uuid4()
        event = AuditEventBuilder.user_confirmed(
            transaction_id="abc123",
            candidate_id=uuid4(),
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.USER_CONFIRMED
        assert event.entity_id == "abc123"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_builder_transaction_updated_stringifies(self):
        """Changed values are stored as text."""
        event = AuditEventBuilder.transaction_updated(
            transaction_id="abc123",
            changed={"amount_usd": Decimal("25.00"), "transaction_date": date(2025, 1, 2)},
            correlation_id=uuid4(),
        )
        assert event.details["changed"] == {
            "amount_usd": "25.00",
            "transaction_date": "2025-01-02",
        }
        assert "amount_usd" in event.description


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            candidate_id=uuid4(),
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            can_confirm=False,
            issues=[
                ValidationIssue(
                    field="original_amount",
                    issue_type="missing",
                    message="Amount required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            candidate_id=uuid4(),
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            can_confirm=True,
            issues=[
                ValidationIssue(
                    field="transaction_date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
