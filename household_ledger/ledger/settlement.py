"""
Settlement Planner

Builds the single corrective transaction that moves a cousin's balance
toward zero:

    balance > 0 (box owes them)  -> "Reembolso" paid to them
    balance < 0 (they owe box)   -> "Préstamo" handed in by them

A cousin who owes the box settles by putting cash back in. "Ingreso" by a
cousin already counts against their balance (they collected the box's
money), so it cannot be the correction; "Préstamo" raises both the cash
box and their balance by the amount.

Partial settlements need no special handling: the correction always points
in the rule-consistent direction, so the residual is balance ∓ amount.

NOTE: Reading the balance and saving the settlement are not atomic. Two
people settling the same cousin at once can over-correct. Storage does not
serialize this and neither do we.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from household_ledger.ledger.errors import SettlementError
from household_ledger.models.ledger import ZERO
from household_ledger.models.transaction import (
    Category,
    Currency,
    PayerKind,
    RateSource,
    Transaction,
)

CENT = Decimal("0.01")

AmountInput = Union[Decimal, int, float, str]


def parse_settlement_amount(amount: AmountInput) -> Decimal:
    """Parse a requested amount; must be a finite number greater than zero."""
    if isinstance(amount, bool) or amount is None:
        raise SettlementError(f"Settlement amount must be a number, got {amount!r}")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise SettlementError(f"Settlement amount must be a number, got {amount!r}")
    if not value.is_finite():
        raise SettlementError(f"Settlement amount must be finite, got {amount!r}")
    if value <= 0:
        raise SettlementError("Settlement amount must be greater than zero")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def plan_settlement(
    counterparty: str,
    balance: Decimal,
    amount: AmountInput,
    on_date: Optional[date] = None,
) -> Transaction:
    """
    Build the corrective transaction for a cousin.

    Args:
        counterparty: The cousin's canonical name
        balance: Their current balance (from counterparty_balance)
        amount: How much to settle now; at most |balance|
        on_date: Date of the settlement (defaults to today)

    Returns:
        An UNCONFIRMED transaction ready to be shown and saved

    Raises:
        SettlementError: Amount is not a positive number, the balance is
            already zero, or the amount exceeds what is owed
    """
    value = parse_settlement_amount(amount)

    if balance == ZERO:
        raise SettlementError(f"{counterparty} is already settled")
    if value > abs(balance):
        raise SettlementError(
            f"Cannot settle USD {value} for {counterparty}: "
            f"only USD {abs(balance)} is outstanding"
        )

    if balance > 0:
        category = Category.REEMBOLSO
        description = f"Reembolso de saldo a {counterparty}"
    else:
        category = Category.PRESTAMO
        description = f"Devolución de saldo de {counterparty}"

    return Transaction(
        transaction_date=on_date or date.today(),
        description=description,
        amount_usd=value,
        original_amount=value,
        original_currency=Currency.USD,
        exchange_rate=Decimal("1"),
        rate_source=RateSource.IDENTITY,
        category=category,
        paid_by=counterparty,
        payer_kind=PayerKind.COUNTERPARTY,
        is_confirmed=False,
    )
