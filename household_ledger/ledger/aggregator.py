"""
Ledger Aggregator

Folds a transaction collection into a LedgerSnapshot.

GUARANTEES:
- Pure: no storage access, no hidden state, same input -> same snapshot
- Order-independent: every transaction is folded on its own
- Single pass over the input (plus sorting the per-category lists)
- Unconfirmed proposals are excluded, never treated as errors

MALFORMED RECORDS: a record whose amount is not a finite, non-negative
number, whose category is unknown, or whose payer kind is unresolved
contributes ZERO to every aggregate and is reported in
`LedgerSnapshot.skipped`. The rest of the snapshot is unaffected.
Records normally cannot get here malformed (the models reject them);
this covers rows read back from storage or built with `model_construct`.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from household_ledger.ledger.rules import AccountingTotal, accounting_targets, classify
from household_ledger.models.ledger import (
    ZERO,
    CategoryBreakdown,
    LedgerSnapshot,
    SkippedTransaction,
)
from household_ledger.models.transaction import Category, PayerKind, Transaction

logger = structlog.get_logger(__name__)

_CATEGORY_ORDER = {category: index for index, category in enumerate(Category)}


def _read_amount(value) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def _read_enum(enum_type, value):
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        return None


def parse_record(tx: Transaction) -> tuple[Optional[tuple[Decimal, Category, PayerKind]], Optional[str]]:
    """Pull out the three fields the fold needs, or say why we can't."""
    amount = _read_amount(tx.amount_usd)
    if amount is None:
        return None, f"invalid amount_usd: {tx.amount_usd!r}"

    category = _read_enum(Category, tx.category)
    if category is None:
        return None, f"unknown category: {tx.category!r}"

    kind = _read_enum(PayerKind, tx.payer_kind)
    if kind is None:
        return None, f"unresolved payer kind: {tx.payer_kind!r}"

    return (amount, category, kind), None


def _display_key(tx: Transaction):
    return (tx.transaction_date, tx.created_at, tx.id or "")


def chronological(
    transactions: Iterable[Transaction],
    newest_first: bool = True,
) -> list[Transaction]:
    """Transactions sorted by date (then insertion time) for display."""
    return sorted(transactions, key=_display_key, reverse=newest_first)


def aggregate(transactions: Iterable[Transaction]) -> LedgerSnapshot:
    """
    Compute every ledger aggregate for a transaction collection.

    Callers own caching; this recomputes from scratch on every call.
    """
    current_box = ZERO
    pending_debt = ZERO
    totals = {total: ZERO for total in AccountingTotal}
    expense_buckets: dict[Category, list[Transaction]] = defaultdict(list)
    expense_amounts: dict[Category, Decimal] = defaultdict(lambda: ZERO)

    counted: list[Transaction] = []
    excluded = 0
    skipped: list[SkippedTransaction] = []

    for tx in transactions:
        if not tx.is_confirmed:
            excluded += 1
            continue

        parsed, reason = parse_record(tx)
        if parsed is None:
            tx_id = str(tx.id) if tx.id is not None else None
            logger.warning("transaction_skipped", transaction_id=tx_id, reason=reason)
            skipped.append(SkippedTransaction(transaction_id=tx_id, reason=reason))
            continue

        amount, category, kind = parsed
        effect = classify(category, kind)
        current_box += effect.cash * amount
        pending_debt += effect.debt * amount

        for total in accounting_targets(category):
            totals[total] += amount

        if AccountingTotal.EXPENSE in accounting_targets(category):
            expense_buckets[category].append(tx)
            expense_amounts[category] += amount

        counted.append(tx)

    breakdown = [
        CategoryBreakdown(
            category=category,
            amount=expense_amounts[category],
            transactions=chronological(expense_buckets[category]),
        )
        for category in expense_buckets
        if expense_amounts[category] > 0
    ]
    breakdown.sort(key=lambda b: (-b.amount, _CATEGORY_ORDER[b.category]))

    return LedgerSnapshot(
        current_box=current_box,
        total_expense=totals[AccountingTotal.EXPENSE],
        business_income=totals[AccountingTotal.BUSINESS_INCOME],
        total_donations=totals[AccountingTotal.DONATION],
        contributions=totals[AccountingTotal.CONTRIBUTION],
        total_pending_debt=pending_debt,
        expenses_by_category=breakdown,
        recent_transactions=chronological(counted),
        transaction_count=len(counted),
        excluded_unconfirmed=excluded,
        skipped=skipped,
    )
