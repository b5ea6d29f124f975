"""
CSV Bulk Export

A reporting view over the same aggregates the app shows. Four sections,
one after another in a single CSV document:

1. Full history         - every confirmed transaction, oldest first
2. Expenses by category - the snapshot's breakdown, with its transactions
3. Income and donations - Ingreso, Pago Reserva and Donación
4. Debt movements       - every transaction with a debt effect

No logic lives here beyond formatting. Unconfirmed and malformed records
are left out, exactly as the aggregator leaves them out.
"""

import csv
import io
from typing import Iterable, Optional

from household_ledger.ledger.aggregator import aggregate, chronological, parse_record
from household_ledger.ledger.rules import INCOME_CATEGORIES, classify
from household_ledger.models.ledger import LedgerSnapshot
from household_ledger.models.transaction import Category, PayerKind, Transaction

SECTION_HISTORY = "FULL HISTORY"
SECTION_EXPENSES = "EXPENSES BY CATEGORY"
SECTION_INCOME = "INCOME AND DONATIONS"
SECTION_DEBT = "DEBT MOVEMENTS"

TRANSACTION_HEADER = [
    "Date",
    "Description",
    "Category",
    "Paid by",
    "Amount USD",
    "Original amount",
    "Currency",
    "Exchange rate",
]


def _row(tx: Transaction) -> list[str]:
    return [
        tx.transaction_date.isoformat(),
        tx.description,
        tx.category.value,
        tx.paid_by,
        f"{tx.amount_usd:.2f}",
        "" if tx.original_amount is None else str(tx.original_amount),
        tx.original_currency.value,
        "" if tx.exchange_rate is None else str(tx.exchange_rate),
    ]


def _countable(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [
        tx for tx in transactions
        if tx.is_confirmed
        and parse_record(tx)[0] is not None
        and isinstance(tx.category, Category)
        and isinstance(tx.payer_kind, PayerKind)
    ]


def export_csv(
    transactions: Iterable[Transaction],
    snapshot: Optional[LedgerSnapshot] = None,
) -> str:
    """
    Render the four-section export.

    `snapshot` can be passed when the caller already has one for the same
    collection; otherwise it is computed here.
    """
    records = _countable(transactions)
    snapshot = snapshot or aggregate(records)
    history = chronological(records, newest_first=False)

    out = io.StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")

    writer.writerow([SECTION_HISTORY])
    writer.writerow(TRANSACTION_HEADER)
    writer.writerows(_row(tx) for tx in history)
    writer.writerow([])

    writer.writerow([SECTION_EXPENSES])
    writer.writerow(["Category", "Total USD"] + TRANSACTION_HEADER)
    for breakdown in snapshot.expenses_by_category:
        writer.writerow([breakdown.category.value, f"{breakdown.amount:.2f}"])
        for tx in breakdown.transactions:
            writer.writerow(["", ""] + _row(tx))
    writer.writerow(["Total expense", f"{snapshot.total_expense:.2f}"])
    writer.writerow([])

    writer.writerow([SECTION_INCOME])
    writer.writerow(TRANSACTION_HEADER)
    writer.writerows(
        _row(tx) for tx in history
        if tx.category in INCOME_CATEGORIES or tx.category is Category.DONACION
    )
    writer.writerow(["Business income", "", "", "", f"{snapshot.business_income:.2f}"])
    writer.writerow(["Donations", "", "", "", f"{snapshot.total_donations:.2f}"])
    writer.writerow(["Net profit", "", "", "", f"{snapshot.net_profit:.2f}"])
    writer.writerow([])

    writer.writerow([SECTION_DEBT])
    writer.writerow(TRANSACTION_HEADER)
    writer.writerows(
        _row(tx) for tx in history
        if classify(tx.category, tx.payer_kind).debt != 0
    )
    writer.writerow(["Total pending debt", "", "", "", f"{snapshot.total_pending_debt:.2f}"])

    return out.getvalue()
