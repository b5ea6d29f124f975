"""
Ledger Core Package

Rules table, payer resolution, aggregation, per-cousin balances and
settlement planning. Pure computation: nothing here touches storage.
"""

from household_ledger.ledger.aggregator import aggregate, chronological, parse_record
from household_ledger.ledger.balances import (
    counterparty_balance,
    counterparty_balances,
    is_settled,
)
from household_ledger.ledger.errors import (
    BookingError,
    EditError,
    LedgerError,
    SettlementError,
)
from household_ledger.ledger.payers import (
    CASH_BOX_NAME,
    CLIENT_NAME,
    FAMILY_NAME,
    PayerDirectory,
)
from household_ledger.ledger.rules import (
    AccountingTotal,
    LedgerEffect,
    PayerSide,
    accounting_targets,
    classify,
    counterparty_balance_sign,
)
from household_ledger.ledger.settlement import parse_settlement_amount, plan_settlement

__all__ = [
    # Aggregation
    "aggregate",
    "chronological",
    "parse_record",
    # Balances
    "counterparty_balance",
    "counterparty_balances",
    "is_settled",
    # Errors
    "BookingError",
    "EditError",
    "LedgerError",
    "SettlementError",
    # Payers
    "CASH_BOX_NAME",
    "CLIENT_NAME",
    "FAMILY_NAME",
    "PayerDirectory",
    # Rules
    "AccountingTotal",
    "LedgerEffect",
    "PayerSide",
    "accounting_targets",
    "classify",
    "counterparty_balance_sign",
    # Settlement
    "parse_settlement_amount",
    "plan_settlement",
]
