"""
Derived Ledger Models

Everything here is computed from a collection of transactions and never
stored. A snapshot is only as fresh as the collection it was built from.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from household_ledger.models.transaction import Category, Transaction

ZERO = Decimal("0")


class CategoryBreakdown(BaseModel):
    """Total spent in one expense category and the transactions behind it."""

    category: Category
    amount: Decimal = ZERO
    transactions: list[Transaction] = Field(default_factory=list)


class SkippedTransaction(BaseModel):
    """A record the aggregator refused to count, and why."""

    transaction_id: Optional[str] = None
    reason: str


class LedgerSnapshot(BaseModel):
    """
    All aggregates for one transaction collection at one point in time.

    `total_pending_debt` is the signed sum of every payer's debt effect
    (positive: the box owes people money overall).
    """

    computed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    current_box: Decimal = ZERO
    total_expense: Decimal = ZERO
    business_income: Decimal = ZERO
    total_donations: Decimal = ZERO
    contributions: Decimal = ZERO
    total_pending_debt: Decimal = ZERO

    expenses_by_category: list[CategoryBreakdown] = Field(default_factory=list)
    recent_transactions: list[Transaction] = Field(
        default_factory=list,
        description="Counted transactions, newest first"
    )

    transaction_count: int = Field(
        default=0,
        ge=0,
        description="Confirmed transactions that were counted"
    )
    excluded_unconfirmed: int = Field(
        default=0,
        ge=0,
        description="Unconfirmed proposals left out of every aggregate"
    )
    skipped: list[SkippedTransaction] = Field(
        default_factory=list,
        description="Malformed records left out of every aggregate"
    )

    @computed_field
    @property
    def net_profit(self) -> Decimal:
        return self.business_income + self.total_donations - self.total_expense

    def breakdown_for(self, category: Category) -> Optional[CategoryBreakdown]:
        for breakdown in self.expenses_by_category:
            if breakdown.category is category:
                return breakdown
        return None
