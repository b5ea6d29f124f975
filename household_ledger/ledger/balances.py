"""
Counterparty Balance Calculator

A cousin's balance against the box, from that cousin's own records only:

    positive -> the box owes them ("a favor")
    negative -> they owe the box
    zero     -> settled (also the answer when they have no records at all)

Uses COUNTERPARTY_BALANCE_SIGNS, not the global LEDGER_RULES, so the sum of
all balances is NOT expected to equal LedgerSnapshot.total_pending_debt.
"""

from decimal import Decimal
from typing import Iterable

from household_ledger.ledger.aggregator import parse_record
from household_ledger.ledger.rules import counterparty_balance_sign
from household_ledger.models.ledger import ZERO
from household_ledger.models.transaction import Transaction


def _matches(paid_by, target_key: str) -> bool:
    return isinstance(paid_by, str) and paid_by.strip().casefold() == target_key


def counterparty_balance(
    transactions: Iterable[Transaction],
    counterparty: str,
) -> Decimal:
    """
    Signed balance for one cousin.

    `counterparty` is matched against `paid_by` case-insensitively.
    Unconfirmed and malformed records are ignored.
    """
    target_key = counterparty.strip().casefold()
    balance = ZERO

    for tx in transactions:
        if not tx.is_confirmed or not _matches(tx.paid_by, target_key):
            continue
        parsed, _ = parse_record(tx)
        if parsed is None:
            continue
        amount, category, _ = parsed
        balance += counterparty_balance_sign(category) * amount

    return balance


def counterparty_balances(
    transactions: Iterable[Transaction],
    counterparties: Iterable[str],
) -> dict[str, Decimal]:
    """Balances for several cousins, keyed by the names given."""
    records = list(transactions)
    return {name: counterparty_balance(records, name) for name in counterparties}


def is_settled(balance: Decimal) -> bool:
    return balance == ZERO
