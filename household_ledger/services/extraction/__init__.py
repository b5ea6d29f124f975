"""Extraction collaborator: Gemini-backed candidate proposals."""

from household_ledger.services.extraction.gemini_service import (
    ExtractionError,
    ExtractionFailedError,
    GeminiExtractionService,
    build_prompt,
    parse_extraction_response,
)
from household_ledger.services.extraction.image import ImageRejectedError, prepare_image

__all__ = [
    "ExtractionError",
    "ExtractionFailedError",
    "GeminiExtractionService",
    "build_prompt",
    "parse_extraction_response",
    "ImageRejectedError",
    "prepare_image",
]
