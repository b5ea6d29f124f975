"""Boundary validation for transaction candidates."""

from household_ledger.validation.validator import TransactionValidator

__all__ = ["TransactionValidator"]
