"""Tests for the extraction collaborator (stubbed model, no API calls)."""

import json
from datetime import date
from decimal import Decimal
from io import BytesIO

import pytest
from PIL import Image

from household_ledger.config import AppSettings
from household_ledger.models import ExtractionKind
from household_ledger.services.extraction import (
    GeminiExtractionService,
    ImageRejectedError,
    build_prompt,
    parse_extraction_response,
    prepare_image,
)


def _image_bytes(fmt="PNG", size=(64, 48), mode="RGB") -> bytes:
    out = BytesIO()
    Image.new(mode, size, color=0).save(out, format=fmt)
    return out.getvalue()


TX_ANSWER = json.dumps({
    "type": "transaction",
    "data": {
        "date": "2025-01-14",
        "description": "Feria",
        "originalAmount": 1500,
        "originalCurrency": "UYU",
        "exchangeRate": None,
        "category": "Insumos",
        "paidBy": "Pablo",
    },
})


class TestParseExtractionResponse:
    """Raw model text -> ExtractionResult. Never raises."""

    def test_single_transaction(self):
        result = parse_extraction_response(TX_ANSWER)
        assert result.kind is ExtractionKind.TRANSACTION
        candidate = result.transactions[0]
        assert candidate.original_amount == Decimal("1500")
        assert candidate.original_currency == "UYU"
        assert candidate.transaction_date == date(2025, 1, 14)
        assert candidate.paid_by == "Pablo"

    def test_markdown_fences_tolerated(self):
        result = parse_extraction_response(f"```json\n{TX_ANSWER}\n```")
        assert result.kind is ExtractionKind.TRANSACTION

    def test_usd_amount_from_model_dropped(self):
        """The model never decides the USD amount."""
        answer = json.loads(TX_ANSWER)
        answer["data"]["amountUSD"] = 999
        result = parse_extraction_response(json.dumps(answer))
        assert result.transactions[0].original_amount == Decimal("1500")
        assert "amount_usd" not in result.transactions[0].model_dump()

    def test_batch(self):
        entry = json.loads(TX_ANSWER)["data"]
        answer = json.dumps({"type": "batch_transactions", "data": [entry, entry]})
        result = parse_extraction_response(answer)
        assert result.kind is ExtractionKind.BATCH_TRANSACTIONS
        assert len(result.transactions) == 2

    def test_transaction_list_treated_as_batch(self):
        entry = json.loads(TX_ANSWER)["data"]
        answer = json.dumps({"type": "transaction", "data": [entry, entry]})
        assert parse_extraction_response(answer).kind is ExtractionKind.BATCH_TRANSACTIONS

    def test_booking(self):
        answer = json.dumps({
            "type": "booking",
            "data": {
                "guestName": "Ana",
                "startDate": "2025-02-03",
                "endDate": "2025-02-07",
                "totalPriceUSD": 400,
                "isFamily": False,
            },
        })
        result = parse_extraction_response(answer)
        assert result.kind is ExtractionKind.BOOKING
        assert result.booking.guest_name == "Ana"
        assert result.booking.total_price_usd == Decimal("400")

    def test_model_error_message_passed_through(self):
        answer = json.dumps({"type": "error", "message": "No es un gasto"})
        result = parse_extraction_response(answer)
        assert result.is_error
        assert result.message == "No es un gasto"

    @pytest.mark.parametrize("text", [
        "",
        "   ",
        "no json here",
        "{not valid json}",
        json.dumps({"type": "weather", "data": {}}),
        json.dumps({"type": "batch_transactions", "data": []}),
        json.dumps({"type": "transaction", "data": "Pablo pagó"}),
        json.dumps({"type": "booking", "data": {"guestName": "Ana"}}),
        json.dumps({
            "type": "booking",
            "data": {"guestName": "Ana", "startDate": "2025-02-07", "endDate": "2025-02-03"},
        }),
    ])
    def test_garbage_becomes_error(self, text):
        result = parse_extraction_response(text)
        assert result.is_error
        assert result.transactions == []
        assert result.booking is None


class TestBuildPrompt:

    def test_prompt_contents(self, payer_directory):
        prompt = build_prompt(
            "Pablo compró pan",
            payer_directory,
            today=date(2025, 1, 15),
            rate_hint=Decimal("40"),
        )
        assert "Pablo compró pan" in prompt
        assert "2025-01-15" in prompt
        assert "1 USD = 40.00 UYU" in prompt
        assert "Pago Reserva" in prompt
        assert "tincho" in prompt
        assert "NO conviertas" in prompt

    def test_prompt_without_rate(self, payer_directory):
        prompt = build_prompt("hola", payer_directory, today=date(2025, 1, 15))
        assert "COTIZACIÓN" not in prompt


class TestGeminiExtractionService:
    """The service around a stub model."""

    @pytest.mark.asyncio
    async def test_extract_text(self, payer_directory, make_stub_model):
        model = make_stub_model(text=TX_ANSWER)
        service = GeminiExtractionService(payer_directory, model=model, property_name="El Eucalito")

        result = await service.extract("Pablo gastó 1500 en la feria", today=date(2025, 1, 15))

        assert result.kind is ExtractionKind.TRANSACTION
        assert len(model.calls) == 1
        assert isinstance(model.calls[0][0], str)

    @pytest.mark.asyncio
    async def test_extract_with_photo(self, payer_directory, make_stub_model):
        model = make_stub_model(text=TX_ANSWER)
        service = GeminiExtractionService(payer_directory, model=model, property_name="El Eucalito")

        await service.extract("", image_bytes=_image_bytes(), today=date(2025, 1, 15))

        image_part, prompt = model.calls[0]
        assert image_part["mime_type"] == "image/jpeg"
        assert image_part["data"][:2] == b"\xff\xd8"
        assert "ver imagen adjunta" in prompt

    @pytest.mark.asyncio
    async def test_empty_input_rejected_without_call(self, payer_directory, make_stub_model):
        model = make_stub_model(text=TX_ANSWER)
        service = GeminiExtractionService(payer_directory, model=model, property_name="El Eucalito")

        result = await service.extract("   ")

        assert result.is_error
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_bad_photo_is_error(self, payer_directory, make_stub_model):
        model = make_stub_model(text=TX_ANSWER)
        service = GeminiExtractionService(payer_directory, model=model, property_name="El Eucalito")

        result = await service.extract("boleta", image_bytes=b"not an image")

        assert result.is_error
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_model_failure_is_error(self, payer_directory, make_stub_model):
        model = make_stub_model(error=RuntimeError("quota exceeded"))
        service = GeminiExtractionService(payer_directory, model=model, property_name="El Eucalito")

        result = await service.extract("Pablo gastó 1500")

        assert result.is_error
        assert "try again" in result.message


class TestPrepareImage:
    """Photo checks before any model call."""

    def test_png_becomes_jpeg(self):
        data, mime = prepare_image(_image_bytes("PNG", mode="RGBA"), AppSettings())
        assert mime == "image/jpeg"
        assert Image.open(BytesIO(data)).format == "JPEG"

    def test_large_photo_scaled_down(self):
        settings = AppSettings(max_image_side_px=256)
        data, _ = prepare_image(_image_bytes("JPEG", size=(1024, 512)), settings)
        assert Image.open(BytesIO(data)).size == (256, 128)

    def test_empty_rejected(self):
        with pytest.raises(ImageRejectedError, match="empty"):
            prepare_image(b"", AppSettings())

    def test_unreadable_rejected(self):
        with pytest.raises(ImageRejectedError, match="Could not read"):
            prepare_image(b"plain text", AppSettings())

    def test_unsupported_format_rejected(self):
        with pytest.raises(ImageRejectedError, match="Unsupported"):
            prepare_image(_image_bytes("GIF", mode="L"), AppSettings())

    def test_oversized_rejected(self):
        settings = AppSettings(max_upload_size_mb=1)
        with pytest.raises(ImageRejectedError, match="larger than"):
            prepare_image(b"\x00" * (1024 * 1024 + 1), settings)
