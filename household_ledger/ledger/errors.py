"""Exceptions raised by the ledger core."""


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class SettlementError(LedgerError):
    """A settlement request cannot be turned into a transaction."""
    pass


class BookingError(LedgerError):
    """A booking cannot go through the requested transition."""
    pass


class EditError(LedgerError):
    """An edit would leave the record in a state the ledger rules forbid."""
    pass
