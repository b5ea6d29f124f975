"""Tests for the ledger aggregator."""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.ledger import aggregate, chronological, counterparty_balance
from household_ledger.models import Category, PayerKind, Transaction


def _malformed(**fields) -> Transaction:
    data = dict(
        id="bad",
        transaction_date=date(2025, 1, 1),
        description="",
        amount_usd=Decimal("10"),
        category=Category.INSUMOS,
        paid_by="Caja",
        payer_kind=PayerKind.CASH_BOX,
        is_confirmed=True,
    )
    data.update(fields)
    return Transaction.model_construct(**data)


class TestLoanRepaymentScenario:
    """Préstamo, then Adelanto, then Reembolso by the same cousin."""

    def test_loan(self, make_transaction):
        records = [make_transaction("Préstamo", "Pablo", 100)]
        snapshot = aggregate(records)
        assert snapshot.current_box == Decimal("100")
        assert snapshot.total_pending_debt == Decimal("100")
        assert snapshot.contributions == Decimal("100")
        assert counterparty_balance(records, "Pablo") == Decimal("100")

    def test_partial_advance(self, make_transaction):
        records = [
            make_transaction("Préstamo", "Pablo", 100),
            make_transaction("Adelanto", "Pablo", 40),
        ]
        snapshot = aggregate(records)
        assert snapshot.current_box == Decimal("60")
        assert snapshot.total_pending_debt == Decimal("60")
        assert counterparty_balance(records, "Pablo") == Decimal("60")

    def test_fully_repaid(self, make_transaction):
        records = [
            make_transaction("Préstamo", "Pablo", 100),
            make_transaction("Adelanto", "Pablo", 40),
            make_transaction("Reembolso", "Pablo", 60),
        ]
        snapshot = aggregate(records)
        assert snapshot.current_box == Decimal("0")
        assert snapshot.total_pending_debt == Decimal("0")
        assert counterparty_balance(records, "Pablo") == Decimal("0")


class TestTotals:
    """Accounting totals and the category breakdown."""

    def test_empty_collection(self):
        snapshot = aggregate([])
        assert snapshot.current_box == Decimal("0")
        assert snapshot.net_profit == Decimal("0")
        assert snapshot.expenses_by_category == []
        assert snapshot.transaction_count == 0

    def test_net_profit_identity(self, make_transaction):
        """net profit = business income + donations - expenses."""
        records = [
            make_transaction("Pago Reserva", "Cliente", 500),
            make_transaction("Ingreso", "Caja", 50),
            make_transaction("Donación", "Familia", 30),
            make_transaction("Insumos", "Caja", 120),
            make_transaction("Servicios", "Pablo", 80),
        ]
        snapshot = aggregate(records)
        assert snapshot.business_income == Decimal("550")
        assert snapshot.total_donations == Decimal("30")
        assert snapshot.total_expense == Decimal("200")
        assert snapshot.net_profit == Decimal("380")
        assert snapshot.contributions == Decimal("30")

    def test_cash_and_debt_by_payer(self, make_transaction):
        """The box spends cash; a cousin's purchase is owed to them."""
        records = [
            make_transaction("Pago Reserva", "Cliente", 500),
            make_transaction("Insumos", "Caja", 120),
            make_transaction("Servicios", "Pablo", 80),
            make_transaction("Mantenimiento", "Juan el plomero", 40),
        ]
        snapshot = aggregate(records)
        assert snapshot.current_box == Decimal("380")
        assert snapshot.total_pending_debt == Decimal("80")
        assert snapshot.total_expense == Decimal("240")

    def test_breakdown_sorted_by_amount(self, make_transaction):
        records = [
            make_transaction("Insumos", "Caja", 20),
            make_transaction("Servicios", "Caja", 90),
            make_transaction("Insumos", "Caja", 30),
            make_transaction("Pago Reserva", "Cliente", 500),
        ]
        snapshot = aggregate(records)
        assert [b.category for b in snapshot.expenses_by_category] == [
            Category.SERVICIOS,
            Category.INSUMOS,
        ]
        insumos = snapshot.breakdown_for(Category.INSUMOS)
        assert insumos.amount == Decimal("50")
        assert len(insumos.transactions) == 2
        assert snapshot.breakdown_for(Category.CUENTAS) is None

    def test_decimal_amounts_do_not_drift(self, make_transaction):
        """Ten payments of 0.10 add up to exactly 1.00."""
        records = [make_transaction("Insumos", "Caja", "0.10") for _ in range(10)]
        assert aggregate(records).total_expense == Decimal("1.00")


class TestExclusions:
    """What the fold leaves out."""

    def test_unconfirmed_excluded(self, make_transaction):
        records = [
            make_transaction("Pago Reserva", "Cliente", 500),
            make_transaction("Insumos", "Caja", 100, confirmed=False),
        ]
        snapshot = aggregate(records)
        assert snapshot.current_box == Decimal("500")
        assert snapshot.total_expense == Decimal("0")
        assert snapshot.excluded_unconfirmed == 1
        assert snapshot.transaction_count == 1

    @pytest.mark.parametrize("fields,reason", [
        ({"amount_usd": Decimal("NaN")}, "invalid amount_usd"),
        ({"amount_usd": "abc"}, "invalid amount_usd"),
        ({"amount_usd": Decimal("-5")}, "invalid amount_usd"),
        ({"category": "Viajes"}, "unknown category"),
        ({"payer_kind": None}, "unresolved payer kind"),
    ])
    def test_malformed_record_skipped(self, make_transaction, fields, reason):
        """A malformed record contributes zero and is reported."""
        good = make_transaction("Pago Reserva", "Cliente", 500)
        snapshot = aggregate([good, _malformed(**fields)])
        assert snapshot.current_box == Decimal("500")
        assert snapshot.total_expense == Decimal("0")
        assert len(snapshot.skipped) == 1
        assert snapshot.skipped[0].transaction_id == "bad"
        assert snapshot.skipped[0].reason.startswith(reason)

    def test_loose_stored_values_still_count(self):
        """Plain strings from storage resolve like the enums."""
        record = _malformed(category="insumos", payer_kind="cash_box", amount_usd=12.5)
        snapshot = aggregate([record])
        assert snapshot.skipped == []
        assert snapshot.total_expense == Decimal("12.5")


class TestPurity:
    """Same collection, same snapshot."""

    def test_order_independent(self, make_transaction):
        records = [
            make_transaction("Préstamo", "Camila", 200),
            make_transaction("Insumos", "Caja", 35),
            make_transaction("Donación", "Tony", 15),
            make_transaction("Ingreso", "Marie", 60),
        ]
        forward = aggregate(records)
        backward = aggregate(list(reversed(records)))
        for field in (
            "current_box",
            "total_expense",
            "business_income",
            "total_donations",
            "contributions",
            "total_pending_debt",
        ):
            assert getattr(forward, field) == getattr(backward, field)

    def test_deleting_a_record_removes_its_effect(self, make_transaction):
        loan = make_transaction("Préstamo", "Camila", 200)
        purchase = make_transaction("Insumos", "Caja", 35)
        assert aggregate([loan, purchase]).current_box == Decimal("165")
        assert aggregate([purchase]).current_box == Decimal("-35")

    def test_accepts_generator(self, make_transaction):
        records = (make_transaction("Ingreso", "Caja", n) for n in (1, 2, 3))
        assert aggregate(records).business_income == Decimal("6")


class TestChronological:
    """Display ordering."""

    def test_newest_first(self, make_transaction):
        old = make_transaction("Insumos", "Caja", 1, on_date=date(2025, 1, 1))
        new = make_transaction("Insumos", "Caja", 2, on_date=date(2025, 1, 9))
        assert chronological([old, new]) == [new, old]
        assert chronological([new, old], newest_first=False) == [old, new]

    def test_snapshot_history_counts_only_valid_confirmed(self, make_transaction):
        old = make_transaction("Insumos", "Caja", 1, on_date=date(2025, 1, 1))
        new = make_transaction("Ingreso", "Caja", 2, on_date=date(2025, 1, 9))
        proposal = make_transaction("Insumos", "Caja", 3, confirmed=False)
        snapshot = aggregate([old, proposal, new])
        assert snapshot.recent_transactions == [new, old]
        assert snapshot.transaction_count == 2
