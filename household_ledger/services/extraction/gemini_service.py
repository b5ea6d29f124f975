"""
Extraction Service using Gemini

Turns a chat message (text, voice transcript or a receipt photo) into
candidates for human review.

CRITICAL BOUNDARIES:
- CAN: Propose transactions or a booking from what the user said
- CANNOT: Persist anything; every candidate is confirmed by a person
- CANNOT: Decide the USD amount. Candidates carry the original amount and
  currency only; enrichment does the conversion with a traceable rate.
- MUST: Turn every failure into an error result with a readable message.
  No partial or garbage candidate ever leaves this module.

The LLM is a TRANSLATOR, not an ORACLE.
"""

import json
from datetime import date
from decimal import Decimal
from typing import Optional

import google.generativeai as genai
import structlog
from pydantic import ValidationError

from household_ledger.config import GeminiSettings, get_settings
from household_ledger.ledger.payers import CASH_BOX_NAME, CLIENT_NAME, PayerDirectory
from household_ledger.models.transaction import (
    BookingCandidate,
    Category,
    ExtractionKind,
    ExtractionResult,
    TransactionCandidate,
)
from household_ledger.services.extraction.image import ImageRejectedError, prepare_image

logger = structlog.get_logger(__name__)

# Keys the model may send but candidates must never carry
_DISCARDED_KEYS = ("amountUSD", "amount_usd", "amountUsd")


class ExtractionError(Exception):
    """Base exception for extraction errors."""
    pass


class ExtractionFailedError(ExtractionError):
    """The model's answer could not be turned into candidates."""
    pass


def build_prompt(
    message: str,
    payer_directory: PayerDirectory,
    today: date,
    rate_hint: Optional[Decimal] = None,
    property_name: str = "El Eucalito",
) -> str:
    """Full instruction text for one chat message."""
    categories = ", ".join(f"'{c.value}'" for c in Category)
    rate_line = (
        f"- COTIZACIÓN ACTUAL DE REFERENCIA: 1 USD = {rate_hint:.2f} UYU.\n"
        if rate_hint is not None
        else ""
    )

    return f"""Actúa como un asistente contable para "{property_name}", un Airbnb familiar en Uruguay.
Interpreta texto natural (o transcripción de voz) e imágenes de boletas para crear registros estructurados.

USUARIOS (Primos): {payer_directory.roster_for_prompt()}.
Si detectas un nombre o alias, normalízalo al nombre principal.
Usa "{CASH_BOX_NAME}" si se pagó con dinero de la caja y "{CLIENT_NAME}" si pagó un huésped.
Si no detectas usuario, usa "Desconocido".

MONEDA:
{rate_line}- NO conviertas montos. Devuelve el monto tal como lo dijo el usuario en "originalAmount" y su moneda en "originalCurrency" ("UYU" o "USD").
- Si el usuario especifica una cotización (ej: "a 40"), devuélvela en "exchangeRate".

CATEGORÍAS PERMITIDAS: {categories}.

SALIDA JSON:
Responde SIEMPRE en JSON puro, sin markdown.

SI ES UN GASTO/INGRESO/PRÉSTAMO (uno solo):
{{"type": "transaction", "data": {{"date": "YYYY-MM-DD", "description": "Breve descripción", "originalAmount": number, "originalCurrency": "UYU" | "USD", "exchangeRate": number | null, "category": "Una de las categorías permitidas", "paidBy": "Nombre del primo, '{CASH_BOX_NAME}' o '{CLIENT_NAME}'"}}}}

SI SON VARIOS MOVIMIENTOS:
{{"type": "batch_transactions", "data": [ ...objetos con el mismo formato... ]}}

SI ES UNA RESERVA (AGENDA):
{{"type": "booking", "data": {{"guestName": "Nombre", "startDate": "YYYY-MM-DD", "endDate": "YYYY-MM-DD", "totalPriceUSD": number, "isFamily": boolean, "notes": "string"}}}}
(totalPriceUSD es 0 si es familia o amigo y no paga; isFamily es false si es cliente de Airbnb)

SI ES UN MENSAJE IRRELEVANTE O NO SE ENTIENDE:
{{"type": "error", "message": "Explicación del error"}}

Hoy es {today.isoformat()}. Usa esa fecha si dice "hoy" y el día anterior si dice "ayer".

Mensaje del usuario:
{message}"""


def _extract_json(text: str) -> dict:
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ExtractionFailedError("The answer contains no JSON object")
    try:
        payload = json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise ExtractionFailedError(f"The answer is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ExtractionFailedError("The answer is not a JSON object")
    return payload


def _candidate(data) -> TransactionCandidate:
    if not isinstance(data, dict):
        raise ExtractionFailedError("A transaction entry is not an object")
    cleaned = {k: v for k, v in data.items() if k not in _DISCARDED_KEYS}
    return TransactionCandidate.model_validate(cleaned)


def parse_extraction_response(text: str) -> ExtractionResult:
    """
    Parse the model's raw answer.

    Never raises: anything unusable becomes an error result.
    """
    if not text or not text.strip():
        return ExtractionResult.error("The assistant returned an empty answer.")

    try:
        payload = _extract_json(text)
        kind = payload.get("type")
        data = payload.get("data")

        if kind == ExtractionKind.ERROR.value:
            message = payload.get("message") or "The message could not be understood."
            return ExtractionResult.error(str(message))

        if kind == ExtractionKind.TRANSACTION.value:
            if isinstance(data, list):
                return ExtractionResult(
                    kind=ExtractionKind.BATCH_TRANSACTIONS if len(data) > 1 else ExtractionKind.TRANSACTION,
                    transactions=[_candidate(item) for item in data],
                )
            return ExtractionResult(
                kind=ExtractionKind.TRANSACTION,
                transactions=[_candidate(data)],
            )

        if kind == ExtractionKind.BATCH_TRANSACTIONS.value:
            if not isinstance(data, list) or not data:
                raise ExtractionFailedError("A batch needs a non-empty list of transactions")
            return ExtractionResult(
                kind=ExtractionKind.BATCH_TRANSACTIONS,
                transactions=[_candidate(item) for item in data],
            )

        if kind == ExtractionKind.BOOKING.value:
            if not isinstance(data, dict):
                raise ExtractionFailedError("A booking entry is not an object")
            return ExtractionResult(
                kind=ExtractionKind.BOOKING,
                booking=BookingCandidate.model_validate(data),
            )

        raise ExtractionFailedError(f"Unknown answer type: {kind!r}")

    except (ExtractionFailedError, ValidationError) as e:
        logger.warning("extraction_response_rejected", error=str(e))
        return ExtractionResult.error("The assistant's answer was not in a usable format.")


class GeminiExtractionService:
    """
    Extraction collaborator backed by Gemini.

    IMPORTANT BOUNDARIES:
    1. This service ONLY proposes; validation and enrichment happen later
    2. Model or network failures come back as error results, never raised
    """

    def __init__(
        self,
        payer_directory: PayerDirectory,
        settings: Optional[GeminiSettings] = None,
        model=None,
        property_name: Optional[str] = None,
    ):
        self._payers = payer_directory
        self._property_name = property_name or get_settings().ledger.property_name
        if model is not None:
            self._model = model
        else:
            self._settings = settings or get_settings().gemini
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            },
        )

    async def extract(
        self,
        message: str,
        image_bytes: Optional[bytes] = None,
        today: Optional[date] = None,
        rate_hint: Optional[Decimal] = None,
    ) -> ExtractionResult:
        """
        Propose candidates for one chat message and/or photo.

        Returns:
            ExtractionResult; kind ERROR carries a user-visible message
        """
        if not (message and message.strip()) and not image_bytes:
            return ExtractionResult.error("Write a message or attach a photo.")

        prompt = build_prompt(
            message=message or "(ver imagen adjunta)",
            payer_directory=self._payers,
            today=today or date.today(),
            rate_hint=rate_hint,
            property_name=self._property_name,
        )

        contents: list = [prompt]
        if image_bytes:
            try:
                jpeg, mime_type = prepare_image(image_bytes)
            except ImageRejectedError as e:
                return ExtractionResult.error(str(e))
            contents = [{"mime_type": mime_type, "data": jpeg}, prompt]

        try:
            response = await self._model.generate_content_async(contents)
            text = response.text
        except Exception as e:
            logger.error("extraction_request_failed", error=str(e))
            return ExtractionResult.error("Could not reach the assistant. Please try again.")

        result = parse_extraction_response(text)
        logger.info(
            "extraction_completed",
            extraction_id=str(result.extraction_id),
            kind=result.kind.value,
            candidate_count=len(result.transactions),
        )
        return result
