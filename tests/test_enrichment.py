"""Tests for USD normalization at creation and edit time."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from household_ledger.enrichment import (
    EnrichmentError,
    TransactionEnricher,
    apply_edit,
    convert_to_usd,
    recompute_exchange_rate,
)
from household_ledger.models import (
    Category,
    Currency,
    PayerKind,
    RateSource,
    TransactionCandidate,
    TransactionEdit,
)


def _candidate(**overrides) -> TransactionCandidate:
    data = dict(
        transaction_date=date(2025, 1, 15),
        description="Supergás",
        original_amount=Decimal("1000"),
        original_currency="UYU",
        category="Servicios",
        paid_by="caja",
    )
    data.update(overrides)
    return TransactionCandidate(**data)


class TestConversion:
    """Pure money helpers."""

    def test_convert_rounds_half_up(self):
        assert convert_to_usd(Decimal("1000"), Decimal("40")) == Decimal("25.00")
        assert convert_to_usd(Decimal("1"), Decimal("8")) == Decimal("0.13")
        assert convert_to_usd(Decimal("100"), Decimal("3")) == Decimal("33.33")

    def test_convert_rejects_zero_rate(self):
        with pytest.raises(EnrichmentError):
            convert_to_usd(Decimal("10"), Decimal("0"))

    def test_recompute_rate(self):
        """2000 UYU against an unchanged 25 USD gives 80.00."""
        assert recompute_exchange_rate(Decimal("2000"), Decimal("25")) == Decimal("80.00")

    def test_recompute_rejects_zero_usd(self):
        with pytest.raises(EnrichmentError):
            recompute_exchange_rate(Decimal("2000"), Decimal("0"))


class TestEnrich:
    """Candidate -> unconfirmed transaction."""

    def test_uyu_uses_rate(self, enricher):
        tx = enricher.enrich(_candidate())
        assert tx.amount_usd == Decimal("25.00")
        assert tx.original_amount == Decimal("1000")
        assert tx.original_currency is Currency.UYU
        assert tx.exchange_rate == Decimal("40")
        assert tx.rate_source is RateSource.LIVE
        assert tx.is_confirmed is False

    def test_usd_is_identity(self, enricher):
        tx = enricher.enrich(_candidate(original_amount=Decimal("12.5"), original_currency="usd"))
        assert tx.amount_usd == Decimal("12.50")
        assert tx.exchange_rate == Decimal("1")
        assert tx.rate_source is RateSource.IDENTITY

    def test_payer_resolved_once(self, enricher):
        """Aliases become the canonical name and the kind is fixed."""
        tx = enricher.enrich(_candidate(paid_by="tincho"))
        assert tx.paid_by == "Martín"
        assert tx.payer_kind is PayerKind.COUNTERPARTY

        box = enricher.enrich(_candidate(paid_by="caja"))
        assert box.paid_by == "Caja"
        assert box.payer_kind is PayerKind.CASH_BOX

    def test_category_resolved(self, enricher):
        assert enricher.enrich(_candidate(category="prestamo")).category is Category.PRESTAMO

    @pytest.mark.parametrize("overrides", [
        {"original_amount": None},
        {"original_amount": Decimal("0")},
        {"original_currency": "EUR"},
        {"category": "Viajes"},
        {"paid_by": None},
        {"transaction_date": None},
    ])
    def test_incomplete_candidate_rejected(self, enricher, overrides):
        with pytest.raises(EnrichmentError):
            enricher.enrich(_candidate(**overrides))


class TestResolveRate:
    """Which rate a UYU record gets."""

    def _enricher(self, provider, payer_directory, ledger_settings, today):
        return TransactionEnricher(
            rate_provider=provider,
            payer_directory=payer_directory,
            settings=ledger_settings,
            today=lambda: today,
        )

    def test_today_uses_live(self, recording_rates, payer_directory, ledger_settings, today):
        enricher = self._enricher(recording_rates, payer_directory, ledger_settings, today)
        resolved = enricher.resolve_rate(today)
        assert resolved.rate == Decimal("40")
        assert resolved.source is RateSource.LIVE
        assert recording_rates.calls == ["current"]

    def test_past_uses_historical(self, recording_rates, payer_directory, ledger_settings, today):
        enricher = self._enricher(recording_rates, payer_directory, ledger_settings, today)
        past = today - timedelta(days=30)
        resolved = enricher.resolve_rate(past)
        assert resolved.rate == Decimal("38")
        assert resolved.source is RateSource.HISTORICAL
        assert recording_rates.calls == [("historical", past)]

    def test_user_rate_wins(self, recording_rates, payer_directory, ledger_settings, today):
        enricher = self._enricher(recording_rates, payer_directory, ledger_settings, today)
        tx = enricher.enrich(_candidate(exchange_rate=Decimal("50")))
        assert tx.amount_usd == Decimal("20.00")
        assert tx.rate_source is RateSource.USER
        assert recording_rates.calls == []

    def test_lookup_failure_falls_back(self, failing_rates, payer_directory, ledger_settings, today):
        """The constant is used and the record says so."""
        enricher = self._enricher(failing_rates, payer_directory, ledger_settings, today)
        resolved = enricher.resolve_rate(today - timedelta(days=3))
        assert resolved.is_fallback
        assert resolved.rate == ledger_settings.fallback_uyu_rate

        tx = enricher.enrich(_candidate(original_amount=Decimal("850")))
        assert tx.rate_source is RateSource.FALLBACK
        assert tx.exchange_rate == Decimal("42.5")
        assert tx.amount_usd == Decimal("20.00")


class TestApplyEdit:
    """Edits keep the money fields consistent."""

    def test_uyu_amount_edit_rederives_rate(self, enricher, payer_directory):
        tx = enricher.enrich(_candidate())
        edited = apply_edit(tx, TransactionEdit(original_amount=Decimal("2000")), payer_directory)
        assert edited.amount_usd == Decimal("25.00")
        assert edited.original_amount == Decimal("2000")
        assert edited.exchange_rate == Decimal("80.00")
        assert edited.rate_source is RateSource.EDITED

    def test_uyu_usd_edit_rederives_rate(self, enricher, payer_directory):
        tx = enricher.enrich(_candidate())
        edited = apply_edit(tx, TransactionEdit(amount_usd=Decimal("20")), payer_directory)
        assert edited.amount_usd == Decimal("20.00")
        assert edited.exchange_rate == Decimal("50.00")

    def test_switch_to_usd(self, enricher, payer_directory):
        tx = enricher.enrich(_candidate())
        edited = apply_edit(
            tx,
            TransactionEdit(original_currency=Currency.USD, original_amount=Decimal("30")),
            payer_directory,
        )
        assert edited.amount_usd == Decimal("30.00")
        assert edited.original_amount == Decimal("30.00")
        assert edited.exchange_rate == Decimal("1")
        assert edited.rate_source is RateSource.IDENTITY

    def test_usd_amount_edit_moves_both(self, enricher, payer_directory):
        tx = enricher.enrich(_candidate(original_currency="USD", original_amount=Decimal("10")))
        edited = apply_edit(tx, TransactionEdit(amount_usd=Decimal("15")), payer_directory)
        assert edited.amount_usd == Decimal("15.00")
        assert edited.original_amount == Decimal("15.00")

    def test_payer_edit_resolves_kind(self, enricher, payer_directory):
        tx = enricher.enrich(_candidate())
        edited = apply_edit(tx, TransactionEdit(paid_by="cami"), payer_directory)
        assert edited.paid_by == "Camila"
        assert edited.payer_kind is PayerKind.COUNTERPARTY
        assert edited.amount_usd == tx.amount_usd

    def test_empty_edit_returns_same_record(self, enricher, payer_directory):
        tx = enricher.enrich(_candidate())
        assert apply_edit(tx, TransactionEdit(), payer_directory) is tx

    def test_zero_usd_cannot_derive_rate(self, enricher, payer_directory):
        tx = enricher.enrich(_candidate())
        with pytest.raises(EnrichmentError):
            apply_edit(tx, TransactionEdit(amount_usd=Decimal("0")), payer_directory)
