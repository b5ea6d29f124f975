"""Tests for per-cousin balances."""

from decimal import Decimal

from household_ledger.ledger import (
    aggregate,
    counterparty_balance,
    counterparty_balances,
    is_settled,
)


class TestCounterpartyBalance:
    """A cousin's balance from their own records only."""

    def test_no_records_is_zero(self, make_transaction):
        records = [make_transaction("Insumos", "Caja", 10)]
        assert counterparty_balance(records, "Camila") == Decimal("0")
        assert counterparty_balance([], "Camila") == Decimal("0")

    def test_purchases_and_income(self, make_transaction):
        """Paying for the house is owed to them; collected income is owed by them."""
        records = [
            make_transaction("Insumos", "Marie", 50),
            make_transaction("Cuentas", "Marie", 25),
            make_transaction("Ingreso", "Marie", 100),
        ]
        assert counterparty_balance(records, "Marie") == Decimal("-25")

    def test_only_own_records(self, make_transaction):
        records = [
            make_transaction("Préstamo", "Pablo", 100),
            make_transaction("Préstamo", "Camila", 30),
        ]
        assert counterparty_balance(records, "Camila") == Decimal("30")

    def test_case_insensitive_match(self, make_transaction):
        records = [make_transaction("Préstamo", "Pablo", 100)]
        assert counterparty_balance(records, "  pablo ") == Decimal("100")

    def test_unconfirmed_ignored(self, make_transaction):
        records = [
            make_transaction("Préstamo", "Pablo", 100),
            make_transaction("Reembolso", "Pablo", 100, confirmed=False),
        ]
        assert counterparty_balance(records, "Pablo") == Decimal("100")

    def test_donation_does_not_move_balance(self, make_transaction):
        """Global pending debt drops with a cousin's Donación; their balance does not."""
        records = [
            make_transaction("Préstamo", "Tony", 100),
            make_transaction("Donación", "Tony", 40),
        ]
        assert counterparty_balance(records, "Tony") == Decimal("100")
        assert aggregate(records).total_pending_debt == Decimal("60")


class TestCounterpartyBalances:
    """Balances for the whole roster."""

    def test_keyed_by_given_names(self, make_transaction, payer_directory):
        records = [
            make_transaction("Préstamo", "Pablo", 100),
            make_transaction("Adelanto", "Pablo", 40),
        ]
        balances = counterparty_balances(records, payer_directory.counterparty_names)
        assert set(balances) == set(payer_directory.counterparty_names)
        assert balances["Pablo"] == Decimal("60")
        assert balances["Camila"] == Decimal("0")

    def test_is_settled(self):
        assert is_settled(Decimal("0"))
        assert is_settled(Decimal("0.00"))
        assert not is_settled(Decimal("-0.01"))
