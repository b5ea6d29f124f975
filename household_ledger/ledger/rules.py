"""
Category Ruleset

Amounts are stored unsigned. This module is the ONLY place that decides
which way money moved. Everything that needs a sign asks here.

Three independent axes:

1. CASH BOX - physical money held. Depends on category AND payer kind.
2. DEBT     - what the box owes a payer (positive) or is owed (negative).
              Depends on category AND payer kind.
3. ACCOUNTING TOTALS - income / expense / contributions / donations.
              Depends on category only.

DESIGN DECISION: There are two debt tables.

- LEDGER_RULES feeds the global snapshot (cash + aggregate debt).
- COUNTERPARTY_BALANCE_SIGNS feeds a single cousin's balance. It only ever
  looks at that cousin's own records and deliberately ignores "Donación":
  a cousin's gift does not show up as money the box owes or is owed.

The two disagree on purpose; the tests pin both down independently.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from household_ledger.models.transaction import Category, PayerKind


class PayerSide(str, Enum):
    """The three columns of the rules table."""
    COUNTERPARTY = "counterparty"
    CASH_BOX = "cash_box"
    OTHER = "other"  # Cliente, Familia, the property, unknown names


class AccountingTotal(str, Enum):
    """Accounting totals a category feeds into."""
    BUSINESS_INCOME = "business_income"
    EXPENSE = "expense"
    CONTRIBUTION = "contribution"
    DONATION = "donation"


class LedgerEffect(BaseModel):
    """Signed multipliers applied to a transaction's amount."""
    model_config = ConfigDict(frozen=True)

    cash: int = 0
    debt: int = 0


EXPENSE_CATEGORIES = frozenset({
    Category.INSUMOS,
    Category.MANTENIMIENTO,
    Category.SERVICIOS,
    Category.CUENTAS,
    Category.IMPUESTOS,
})

# Everything outside this set counts as an operating expense.
NON_EXPENSE_CATEGORIES = frozenset({
    Category.INGRESO,
    Category.PAGO_RESERVA,
    Category.PRESTAMO,
    Category.ADELANTO,
    Category.REEMBOLSO,
    Category.DONACION,
})

INCOME_CATEGORIES = frozenset({Category.INGRESO, Category.PAGO_RESERVA})

# Categories whose payer must always be a recognized cousin.
COUNTERPARTY_ONLY_CATEGORIES = frozenset({Category.ADELANTO, Category.REEMBOLSO})


_NONE = LedgerEffect()
_CASH_IN = LedgerEffect(cash=1)
_CASH_OUT = LedgerEffect(cash=-1)
_BOX_OWES = LedgerEffect(debt=1)
_OWES_BOX = LedgerEffect(debt=-1)
_LOAN_IN = LedgerEffect(cash=1, debt=1)
_PAID_OUT = LedgerEffect(cash=-1, debt=-1)


def _expense_row() -> dict[PayerSide, LedgerEffect]:
    # A cousin paying out of pocket is owed; the box paying spends cash;
    # anyone else paying is an outside gift with no cash or debt effect.
    return {
        PayerSide.COUNTERPARTY: _BOX_OWES,
        PayerSide.CASH_BOX: _CASH_OUT,
        PayerSide.OTHER: _NONE,
    }


def _income_row() -> dict[PayerSide, LedgerEffect]:
    # A cousin who collected income holds the box's money.
    return {
        PayerSide.COUNTERPARTY: _OWES_BOX,
        PayerSide.CASH_BOX: _CASH_IN,
        PayerSide.OTHER: _CASH_IN,
    }


LEDGER_RULES: dict[Category, dict[PayerSide, LedgerEffect]] = {
    **{category: _expense_row() for category in EXPENSE_CATEGORIES},
    Category.INGRESO: _income_row(),
    Category.PAGO_RESERVA: _income_row(),
    Category.PRESTAMO: {
        PayerSide.COUNTERPARTY: _LOAN_IN,
        PayerSide.CASH_BOX: _LOAN_IN,
        PayerSide.OTHER: _LOAN_IN,
    },
    # Never valid for a reserved identity; stored data that does it anyway
    # only moves cash.
    Category.ADELANTO: {
        PayerSide.COUNTERPARTY: _PAID_OUT,
        PayerSide.CASH_BOX: _CASH_OUT,
        PayerSide.OTHER: _CASH_OUT,
    },
    Category.REEMBOLSO: {
        PayerSide.COUNTERPARTY: _PAID_OUT,
        PayerSide.CASH_BOX: _CASH_OUT,
        PayerSide.OTHER: _CASH_OUT,
    },
    Category.DONACION: {
        PayerSide.COUNTERPARTY: _OWES_BOX,
        PayerSide.CASH_BOX: _CASH_IN,
        PayerSide.OTHER: _CASH_IN,
    },
}


ACCOUNTING_RULES: dict[Category, frozenset[AccountingTotal]] = {
    **{category: frozenset({AccountingTotal.EXPENSE}) for category in EXPENSE_CATEGORIES},
    Category.INGRESO: frozenset({AccountingTotal.BUSINESS_INCOME}),
    Category.PAGO_RESERVA: frozenset({AccountingTotal.BUSINESS_INCOME}),
    Category.PRESTAMO: frozenset({AccountingTotal.CONTRIBUTION}),
    Category.ADELANTO: frozenset(),
    Category.REEMBOLSO: frozenset(),
    Category.DONACION: frozenset({AccountingTotal.DONATION, AccountingTotal.CONTRIBUTION}),
}


# Per-cousin balance: +1 the box owes them more, -1 they owe the box more.
# Donación is intentionally absent (see module docstring).
COUNTERPARTY_BALANCE_SIGNS: dict[Category, int] = {
    **{category: 1 for category in EXPENSE_CATEGORIES},
    Category.PRESTAMO: 1,
    Category.REEMBOLSO: -1,
    Category.ADELANTO: -1,
    Category.INGRESO: -1,
    Category.PAGO_RESERVA: -1,
}


def payer_side(kind: PayerKind) -> PayerSide:
    """Map a payer kind onto a column of the rules table."""
    if kind is PayerKind.COUNTERPARTY:
        return PayerSide.COUNTERPARTY
    if kind is PayerKind.CASH_BOX:
        return PayerSide.CASH_BOX
    return PayerSide.OTHER


def classify(category: Category, kind: PayerKind) -> LedgerEffect:
    """Cash and debt multipliers for a (category, payer kind) pair."""
    return LEDGER_RULES[category][payer_side(kind)]


def accounting_targets(category: Category) -> frozenset[AccountingTotal]:
    """Accounting totals a category contributes to, regardless of payer."""
    return ACCOUNTING_RULES[category]


def counterparty_balance_sign(category: Category) -> int:
    """Sign a category contributes to a cousin's own balance (0 if ignored)."""
    return COUNTERPARTY_BALANCE_SIGNS.get(category, 0)


def is_expense(category: Category) -> bool:
    """True for categories that count towards total expense."""
    return category not in NON_EXPENSE_CATEGORIES
