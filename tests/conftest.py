"""
Shared fixtures for the Household Ledger tests.

No real API calls: rates come from fixed or failing providers, Gemini is a
stub object, storage is in memory.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from household_ledger.audit import AuditLogger
from household_ledger.config import LedgerSettings
from household_ledger.config.settings import DEFAULT_COUNTERPARTIES
from household_ledger.enrichment import (
    FixedRateProvider,
    RateLookupError,
    RateProvider,
    TransactionEnricher,
)
from household_ledger.ledger import PayerDirectory
from household_ledger.models import Category, Currency, RateSource, Transaction
from household_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryBookingStorage,
    InMemoryTransactionStorage,
)
from household_ledger.validation import TransactionValidator

TODAY = date(2025, 1, 15)


class FailingRateProvider(RateProvider):
    """Every lookup fails, as when the rate service is down."""

    def current_rate(self) -> Decimal:
        raise RateLookupError("service down")

    def historical_rate(self, on_date: date) -> Decimal:
        raise RateLookupError("service down")


class RecordingRateProvider(RateProvider):
    """Distinct live and historical quotes, remembering what was asked."""

    def __init__(self, live: Decimal, historical: Decimal):
        self.live = live
        self.historical = historical
        self.calls = []

    def current_rate(self) -> Decimal:
        self.calls.append("current")
        return self.live

    def historical_rate(self, on_date: date) -> Decimal:
        self.calls.append(("historical", on_date))
        return self.historical


class StubGeminiModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, text: str = "", error: Exception = None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate_content_async(self, contents):
        self.calls.append(contents)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def ledger_settings():
    return LedgerSettings()


@pytest.fixture
def payer_directory():
    return PayerDirectory(DEFAULT_COUNTERPARTIES, property_name="El Eucalito")


@pytest.fixture
def fixed_rates():
    return FixedRateProvider(Decimal("40"))


@pytest.fixture
def failing_rates():
    return FailingRateProvider()


@pytest.fixture
def recording_rates():
    return RecordingRateProvider(live=Decimal("40"), historical=Decimal("38"))


@pytest.fixture
def make_stub_model():
    return StubGeminiModel


@pytest.fixture
def enricher(fixed_rates, payer_directory, ledger_settings):
    return TransactionEnricher(
        rate_provider=fixed_rates,
        payer_directory=payer_directory,
        settings=ledger_settings,
        today=lambda: TODAY,
    )


@pytest.fixture
def transaction_storage():
    return InMemoryTransactionStorage()


@pytest.fixture
def booking_storage():
    return InMemoryBookingStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def validator(payer_directory, transaction_storage, ledger_settings):
    return TransactionValidator(
        payer_directory,
        transaction_storage,
        settings=ledger_settings,
        today=lambda: TODAY,
    )


@pytest.fixture
def make_transaction(payer_directory):
    """Factory for confirmed USD transactions with the payer resolved."""
    counter = iter(range(1, 10_000))

    def _make(
        category,
        paid_by,
        amount,
        *,
        on_date=TODAY,
        confirmed=True,
        description="",
        tx_id=None,
    ) -> Transaction:
        payer = payer_directory.resolve(paid_by)
        amount = Decimal(str(amount))
        return Transaction(
            id=tx_id or f"tx-{next(counter)}",
            transaction_date=on_date,
            description=description,
            amount_usd=amount,
            original_amount=amount,
            original_currency=Currency.USD,
            exchange_rate=Decimal("1"),
            rate_source=RateSource.IDENTITY,
            category=Category(category),
            paid_by=payer.name,
            payer_kind=payer.kind,
            is_confirmed=confirmed,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )

    return _make
