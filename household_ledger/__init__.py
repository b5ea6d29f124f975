"""
Household Ledger - Source Package

A shared cash ledger for a family-run rental property. Money movements
(expenses, income, loans, advances, reimbursements, donations) are captured
from chat or photos, confirmed by a person, and folded into the cash box,
per-cousin balances and profit figures.

DESIGN PRINCIPLES:
1. AI proposes → Human confirms → Ledger derives
2. Amounts are stored unsigned; direction comes from category + payer
3. Aggregates are recomputed from scratch, never patched
4. Bad records are reported, never silently coerced
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
