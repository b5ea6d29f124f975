"""
Exchange Rate Service

Looks up how many UYU one USD buys, today or on a past date.

Both lookups are fallible and raise RateLookupError. Callers are expected
to fall back to the configured constant (see TransactionEnricher); this
module never falls back on its own so the fallback stays traceable.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from household_ledger.config import RateSettings, get_settings

logger = structlog.get_logger(__name__)


class RateLookupError(Exception):
    """A rate could not be obtained or the response made no sense."""
    pass


class RateProvider(ABC):
    """Anything that can quote UYU per USD."""

    @abstractmethod
    def current_rate(self) -> Decimal:
        """Today's rate. Raises RateLookupError on failure."""
        pass

    @abstractmethod
    def historical_rate(self, on_date: date) -> Decimal:
        """Rate on a past date. Raises RateLookupError on failure."""
        pass


def _parse_rate(value, source: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise RateLookupError(f"{source} returned no UYU rate")
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise RateLookupError(f"{source} returned a non-numeric rate: {value!r}")
    if not rate.is_finite() or rate <= 0:
        raise RateLookupError(f"{source} returned an invalid rate: {value!r}")
    return rate


class ExchangeRateService(RateProvider):
    """
    HTTP-backed rate provider.

    - current_rate:    open.er-api.com latest USD table, field rates.UYU
    - historical_rate: fawazahmed0 currency API snapshot, field usd.uyu
    """

    def __init__(
        self,
        settings: Optional[RateSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self._settings = settings or get_settings().rates
        self._session = session or requests.Session()

    @retry(
        retry=retry_if_exception_type(requests.RequestException),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _get_json(self, url: str) -> dict:
        response = self._session.get(url, timeout=self._settings.timeout_seconds)
        response.raise_for_status()
        return response.json()

    def _fetch(self, url: str) -> dict:
        try:
            payload = self._get_json(url)
        except requests.RequestException as e:
            logger.warning("rate_request_failed", url=url, error=str(e))
            raise RateLookupError(f"Rate request to {url} failed: {e}") from e
        except ValueError as e:
            raise RateLookupError(f"Rate response from {url} is not JSON") from e
        if not isinstance(payload, dict):
            raise RateLookupError(f"Unexpected rate payload from {url}")
        return payload

    def current_rate(self) -> Decimal:
        payload = self._fetch(self._settings.current_rate_url)
        rates = payload.get("rates") or {}
        rate = _parse_rate(rates.get("UYU"), "current rate service")
        logger.debug("rate_fetched", kind="current", rate=str(rate))
        return rate

    def historical_rate(self, on_date: date) -> Decimal:
        url = self._settings.historical_rate_url.format(date=on_date.isoformat())
        payload = self._fetch(url)
        rates = payload.get("usd") or {}
        rate = _parse_rate(rates.get("uyu"), "historical rate service")
        logger.debug(
            "rate_fetched",
            kind="historical",
            date=on_date.isoformat(),
            rate=str(rate),
        )
        return rate


class FixedRateProvider(RateProvider):
    """Quotes the same rate for every date. Useful offline and in tests."""

    def __init__(self, rate: Decimal):
        self._rate = _parse_rate(rate, "fixed rate")

    def current_rate(self) -> Decimal:
        return self._rate

    def historical_rate(self, on_date: date) -> Decimal:
        return self._rate
