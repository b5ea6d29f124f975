"""
Tests for the category ruleset.

The full (category x payer side) table is pinned here row by row. A change
to any cell must show up as a failing test.
"""

import pytest

from household_ledger.ledger.rules import (
    COUNTERPARTY_ONLY_CATEGORIES,
    AccountingTotal,
    LedgerEffect,
    accounting_targets,
    classify,
    counterparty_balance_sign,
    is_expense,
)
from household_ledger.models import Category, PayerKind

C = Category

# (category, counterparty, cash box, other) as (cash, debt) pairs
EXPECTED_TABLE = [
    (C.INSUMOS,       (0, 1),   (-1, 0), (0, 0)),
    (C.MANTENIMIENTO, (0, 1),   (-1, 0), (0, 0)),
    (C.SERVICIOS,     (0, 1),   (-1, 0), (0, 0)),
    (C.CUENTAS,       (0, 1),   (-1, 0), (0, 0)),
    (C.IMPUESTOS,     (0, 1),   (-1, 0), (0, 0)),
    (C.INGRESO,       (0, -1),  (1, 0),  (1, 0)),
    (C.PAGO_RESERVA,  (0, -1),  (1, 0),  (1, 0)),
    (C.PRESTAMO,      (1, 1),   (1, 1),  (1, 1)),
    (C.ADELANTO,      (-1, -1), (-1, 0), (-1, 0)),
    (C.REEMBOLSO,     (-1, -1), (-1, 0), (-1, 0)),
    (C.DONACION,      (0, -1),  (1, 0),  (1, 0)),
]

OTHER_KINDS = [PayerKind.CLIENT, PayerKind.FAMILY, PayerKind.PROPERTY, PayerKind.EXTERNAL]


class TestLedgerRules:
    """Cash and debt multipliers per (category, payer kind)."""

    def test_table_covers_every_category(self):
        """No category is missing from the pinned table."""
        assert {row[0] for row in EXPECTED_TABLE} == set(Category)

    @pytest.mark.parametrize("category,counterparty,cash_box,other", EXPECTED_TABLE)
    def test_counterparty_column(self, category, counterparty, cash_box, other):
        """A recognized cousin as payer."""
        cash, debt = counterparty
        assert classify(category, PayerKind.COUNTERPARTY) == LedgerEffect(cash=cash, debt=debt)

    @pytest.mark.parametrize("category,counterparty,cash_box,other", EXPECTED_TABLE)
    def test_cash_box_column(self, category, counterparty, cash_box, other):
        """The box itself as payer."""
        cash, debt = cash_box
        assert classify(category, PayerKind.CASH_BOX) == LedgerEffect(cash=cash, debt=debt)

    @pytest.mark.parametrize("category,counterparty,cash_box,other", EXPECTED_TABLE)
    def test_other_column(self, category, counterparty, cash_box, other):
        """Cliente, Familia, the property and unknown names all behave alike."""
        cash, debt = other
        for kind in OTHER_KINDS:
            assert classify(category, kind) == LedgerEffect(cash=cash, debt=debt)


class TestAccountingRules:
    """Accounting totals depend on the category only."""

    @pytest.mark.parametrize("category", [
        C.INSUMOS, C.MANTENIMIENTO, C.SERVICIOS, C.CUENTAS, C.IMPUESTOS,
    ])
    def test_expense_categories(self, category):
        assert accounting_targets(category) == {AccountingTotal.EXPENSE}
        assert is_expense(category)

    def test_income_categories(self):
        for category in (C.INGRESO, C.PAGO_RESERVA):
            assert accounting_targets(category) == {AccountingTotal.BUSINESS_INCOME}
            assert not is_expense(category)

    def test_loan_is_a_contribution(self):
        assert accounting_targets(C.PRESTAMO) == {AccountingTotal.CONTRIBUTION}

    def test_donation_is_donation_and_contribution(self):
        assert accounting_targets(C.DONACION) == {
            AccountingTotal.DONATION,
            AccountingTotal.CONTRIBUTION,
        }

    def test_repayments_feed_no_total(self):
        """Adelanto and Reembolso only move cash and debt."""
        assert accounting_targets(C.ADELANTO) == frozenset()
        assert accounting_targets(C.REEMBOLSO) == frozenset()
        assert not is_expense(C.ADELANTO)


class TestCounterpartyBalanceSigns:
    """The per-cousin table, independent of the global one."""

    @pytest.mark.parametrize("category,sign", [
        (C.INSUMOS, 1),
        (C.MANTENIMIENTO, 1),
        (C.SERVICIOS, 1),
        (C.CUENTAS, 1),
        (C.IMPUESTOS, 1),
        (C.PRESTAMO, 1),
        (C.REEMBOLSO, -1),
        (C.ADELANTO, -1),
        (C.INGRESO, -1),
        (C.PAGO_RESERVA, -1),
        (C.DONACION, 0),
    ])
    def test_sign(self, category, sign):
        assert counterparty_balance_sign(category) == sign

    def test_donation_differs_from_global_debt(self):
        """A cousin's Donación moves global debt but not their balance."""
        assert classify(C.DONACION, PayerKind.COUNTERPARTY).debt == -1
        assert counterparty_balance_sign(C.DONACION) == 0

    def test_counterparty_only_categories(self):
        assert COUNTERPARTY_ONLY_CATEGORIES == {C.ADELANTO, C.REEMBOLSO}
