"""
Ingestion Enricher

Turns a currency-tagged candidate into a USD-normalized Transaction.
Runs exactly once, before a record is ever added to the ledger.

    USD: amount_usd = original_amount, exchange_rate = 1
    UYU: amount_usd = round(original_amount / rate, 2)

Rate resolution for UYU, in order:
    1. A rate stated by the user on the candidate   -> source "user"
    2. Today (or later): the live rate              -> source "live"
    3. A past date: the historical rate             -> source "historical"
    4. Any lookup failure: the configured constant  -> source "fallback"

The edit-time counterpart lives in apply_edit(): editing the original
amount or currency of a UYU record keeps amount_usd and re-derives
exchange_rate = original_amount / amount_usd.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from household_ledger.config import LedgerSettings, get_settings
from household_ledger.enrichment.rates import RateLookupError, RateProvider
from household_ledger.ledger.payers import PayerDirectory
from household_ledger.models.transaction import (
    Currency,
    RateSource,
    Transaction,
    TransactionCandidate,
    TransactionEdit,
)

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
ONE = Decimal("1")


class EnrichmentError(Exception):
    """A candidate cannot be normalized into a transaction."""
    pass


class ResolvedRate(BaseModel):
    """A UYU-per-USD rate and where it came from."""
    model_config = ConfigDict(frozen=True)

    rate: Decimal
    source: RateSource

    @property
    def is_fallback(self) -> bool:
        return self.source is RateSource.FALLBACK


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def convert_to_usd(original_amount: Decimal, rate: Decimal) -> Decimal:
    """UYU -> USD, rounded half-up to cents."""
    if rate <= 0:
        raise EnrichmentError(f"Exchange rate must be positive, got {rate}")
    return to_cents(original_amount / rate)


def recompute_exchange_rate(original_amount: Decimal, amount_usd: Decimal) -> Decimal:
    """
    Edit-time rate: original_amount / amount_usd, rounded to 2 decimals.

    Example: 2000 UYU against an unchanged 25 USD gives 80.00.
    """
    if amount_usd is None or amount_usd <= 0:
        raise EnrichmentError("Cannot derive an exchange rate from a zero USD amount")
    return to_cents(Decimal(original_amount) / Decimal(amount_usd))


class TransactionEnricher:
    """
    Creation-time enrichment.

    Also resolves the payer once: `paid_by` is replaced by the canonical
    name and `payer_kind` is fixed here, never re-derived later.
    """

    def __init__(
        self,
        rate_provider: RateProvider,
        payer_directory: PayerDirectory,
        settings: Optional[LedgerSettings] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._rates = rate_provider
        self._payers = payer_directory
        self._settings = settings or get_settings().ledger
        self._today = today or date.today

    @property
    def fallback_rate(self) -> Decimal:
        return self._settings.fallback_uyu_rate

    def resolve_rate(
        self,
        on_date: date,
        user_rate: Optional[Decimal] = None,
    ) -> ResolvedRate:
        """Pick the UYU-per-USD rate for a date. Never raises on lookup failure."""
        if user_rate is not None:
            if not user_rate.is_finite() or user_rate <= 0:
                raise EnrichmentError(f"Stated exchange rate must be positive, got {user_rate}")
            return ResolvedRate(rate=user_rate, source=RateSource.USER)

        is_past = on_date < self._today()
        try:
            if is_past:
                return ResolvedRate(
                    rate=self._rates.historical_rate(on_date),
                    source=RateSource.HISTORICAL,
                )
            return ResolvedRate(rate=self._rates.current_rate(), source=RateSource.LIVE)
        except RateLookupError as e:
            logger.warning(
                "rate_fallback_used",
                date=on_date.isoformat(),
                lookup="historical" if is_past else "current",
                fallback_rate=str(self.fallback_rate),
                error=str(e),
            )
            return ResolvedRate(rate=self.fallback_rate, source=RateSource.FALLBACK)

    def enrich(self, candidate: TransactionCandidate) -> Transaction:
        """
        Build the unconfirmed Transaction for a candidate.

        Raises:
            EnrichmentError: A required field is missing or unusable.
                The validator reports the same problems earlier; this is
                the last line before a record reaches the ledger.
        """
        if candidate.original_amount is None:
            raise EnrichmentError("Candidate has no amount")
        original_amount = Decimal(candidate.original_amount)
        if not original_amount.is_finite() or original_amount <= 0:
            raise EnrichmentError(f"Amount must be a positive number, got {original_amount}")

        currency = candidate.resolved_currency
        if currency is None:
            raise EnrichmentError(
                f"Unsupported currency: {candidate.original_currency!r}"
            )
        category = candidate.resolved_category
        if category is None:
            raise EnrichmentError(f"Unknown category: {candidate.category!r}")
        if not candidate.paid_by:
            raise EnrichmentError("Candidate has no payer")
        if candidate.transaction_date is None:
            raise EnrichmentError("Candidate has no date")

        if currency is Currency.USD:
            amount_usd = to_cents(original_amount)
            rate = ResolvedRate(rate=ONE, source=RateSource.IDENTITY)
        else:
            rate = self.resolve_rate(candidate.transaction_date, candidate.exchange_rate)
            amount_usd = convert_to_usd(original_amount, rate.rate)

        payer = self._payers.resolve(candidate.paid_by)

        tx = Transaction(
            transaction_date=candidate.transaction_date,
            description=candidate.description or "",
            amount_usd=amount_usd,
            original_amount=original_amount,
            original_currency=currency,
            exchange_rate=rate.rate,
            rate_source=rate.source,
            category=category,
            paid_by=payer.name,
            payer_kind=payer.kind,
            is_confirmed=False,
        )

        logger.info(
            "transaction_enriched",
            candidate_id=str(candidate.candidate_id),
            currency=currency.value,
            amount_usd=str(amount_usd),
            rate_source=rate.source.value,
            payer_kind=payer.kind.value,
        )
        return tx


def apply_edit(
    tx: Transaction,
    edit: TransactionEdit,
    payer_directory: PayerDirectory,
) -> Transaction:
    """
    Apply a partial edit and return the new record.

    Money fields stay consistent with enrichment:
    - USD: amount_usd and original_amount move together, rate 1
    - UYU: amount_usd is kept (or taken from the edit) and the rate is
      re-derived from original_amount / amount_usd
    """
    changes = edit.changed_fields()
    if not changes:
        return tx

    updates = {
        key: value
        for key, value in changes.items()
        if key in ("transaction_date", "description", "category")
    }

    if "paid_by" in changes:
        payer = payer_directory.resolve(changes["paid_by"])
        updates["paid_by"] = payer.name
        updates["payer_kind"] = payer.kind

    money_fields = {"amount_usd", "original_amount", "original_currency"}
    if money_fields & changes.keys():
        currency = changes.get("original_currency") or tx.original_currency

        if currency is Currency.USD:
            if "original_amount" in changes:
                amount = changes["original_amount"]
            elif "amount_usd" in changes:
                amount = changes["amount_usd"]
            else:
                amount = tx.original_amount if tx.original_amount is not None else tx.amount_usd
            amount = to_cents(Decimal(amount))
            updates.update(
                amount_usd=amount,
                original_amount=amount,
                original_currency=Currency.USD,
                exchange_rate=ONE,
                rate_source=RateSource.IDENTITY,
            )
        else:
            amount_usd = changes.get("amount_usd", tx.amount_usd)
            original_amount = changes.get("original_amount", tx.original_amount)
            if original_amount is None:
                raise EnrichmentError("A UYU record needs its original amount")
            updates.update(
                amount_usd=to_cents(Decimal(amount_usd)),
                original_amount=Decimal(original_amount),
                original_currency=currency,
                exchange_rate=recompute_exchange_rate(original_amount, amount_usd),
                rate_source=RateSource.EDITED,
            )

    data = tx.model_dump()
    data.update(updates)
    return Transaction(**data)
