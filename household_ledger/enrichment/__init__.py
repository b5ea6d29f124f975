"""Ingestion enrichment: exchange rates and USD normalization."""

from household_ledger.enrichment.enricher import (
    EnrichmentError,
    ResolvedRate,
    TransactionEnricher,
    apply_edit,
    convert_to_usd,
    recompute_exchange_rate,
)
from household_ledger.enrichment.rates import (
    ExchangeRateService,
    FixedRateProvider,
    RateLookupError,
    RateProvider,
)

__all__ = [
    "EnrichmentError",
    "ResolvedRate",
    "TransactionEnricher",
    "apply_edit",
    "convert_to_usd",
    "recompute_exchange_rate",
    "ExchangeRateService",
    "FixedRateProvider",
    "RateLookupError",
    "RateProvider",
]
