"""
Extraction Adapter

Normalizes the three kinds of chat content into one extraction call:

    text      → AI → (on failure) "Item Amount" regex fallback
    photo     → caption names an amount? caption → AI
                                      else OCR → AI
    PDF       → caption names an amount? caption → AI
                                      else embedded text → AI

Every stage returns an ExtractionResult; the chain stops at the first
success. Nothing here talks to Telegram or the session store.
"""

import asyncio
from io import BytesIO
from typing import Optional

import structlog
from pypdf import PdfReader

from chamber.agents import ExpenseExtractionAgent
from chamber.config import get_settings
from chamber.models.capture import (
    ExtractionResult,
    ExtractionSource,
    ExtractionSuccess,
    FailureKind,
    extraction_failed,
)
from chamber.extraction.parsing import has_useful_expense_info, parse_plain_expense
from chamber.validation import CandidateRejected, CandidateValidator

logger = structlog.get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"

# Photo captions this short are ignored even if they contain a number
MIN_PHOTO_CAPTION_LENGTH = 5

COULD_NOT_UNDERSTAND = "could not understand"
COULD_NOT_EXTRACT_PDF_TEXT = "could not extract text"


def _read_pdf_text(pdf_bytes: bytes) -> str:
    reader = PdfReader(BytesIO(pdf_bytes))
    return "\n".join((page.extract_text() or "") for page in reader.pages)


class ExtractionAdapter:
    """
    Single entry point from chat content to an expense candidate.

    Args:
        agent: AI extraction agent (Gemini + Mindee)
        validator: Shared candidate validator (used by the regex fallback)
        pdf_char_limit: How much PDF text is sent to the AI
    """

    def __init__(
        self,
        agent: ExpenseExtractionAgent,
        validator: Optional[CandidateValidator] = None,
        pdf_char_limit: Optional[int] = None,
    ):
        self._agent = agent
        self._validator = validator or CandidateValidator()
        self._pdf_char_limit = pdf_char_limit or get_settings().app.pdf_text_char_limit

    @staticmethod
    def is_supported_document(
        mime_type: Optional[str],
        file_name: Optional[str],
    ) -> bool:
        """Only PDF documents are accepted (by mime type or file suffix)."""
        if mime_type == PDF_MIME_TYPE:
            return True
        return bool(file_name) and file_name.lower().endswith(".pdf")

    @staticmethod
    def photo_caption_is_useful(caption: Optional[str]) -> bool:
        """True if a photo's caption will be used instead of OCR."""
        return (
            caption is not None
            and len(caption.strip()) > MIN_PHOTO_CAPTION_LENGTH
            and has_useful_expense_info(caption)
        )

    def _fallback(self, text: str) -> ExtractionResult:
        candidate = parse_plain_expense(text)
        if candidate is None:
            return extraction_failed(COULD_NOT_UNDERSTAND, FailureKind.USER_INPUT)
        try:
            expense = self._validator.validate(candidate, source=ExtractionSource.FALLBACK)
        except CandidateRejected as e:
            logger.info("fallback_candidate_rejected", reason=str(e))
            return extraction_failed(COULD_NOT_UNDERSTAND, FailureKind.USER_INPUT)
        return ExtractionSuccess(expense=expense)

    async def from_text(self, text: str) -> ExtractionResult:
        """Plain chat text: AI first, regex fallback second."""
        result = await self._agent.extract_from_text(text)
        if result.ok:
            return result

        logger.info("ai_extraction_failed_using_fallback", reason=result.reason)
        return self._fallback(text)

    async def from_photo(
        self,
        image_bytes: bytes,
        caption: Optional[str] = None,
    ) -> ExtractionResult:
        """A photo, usually a UPI payment screenshot."""
        if self.photo_caption_is_useful(caption):
            logger.debug("using_photo_caption")
            return await self._agent.extract_from_text(
                f'User sent a payment screenshot with this caption: "{caption}"',
                fallback_description=caption,
            )
        return await self._agent.extract_from_image(image_bytes)

    async def from_document(
        self,
        pdf_bytes: bytes,
        caption: Optional[str] = None,
    ) -> ExtractionResult:
        """A PDF invoice. Callers check is_supported_document first."""
        if has_useful_expense_info(caption):
            logger.debug("using_document_caption")
            return await self._agent.extract_from_text(
                f'User sent a PDF invoice with caption: "{caption}"',
                fallback_description=caption,
            )

        try:
            pdf_text = await asyncio.to_thread(_read_pdf_text, pdf_bytes)
        except Exception as e:
            logger.warning("pdf_text_extraction_failed", error=str(e))
            return extraction_failed(COULD_NOT_EXTRACT_PDF_TEXT, FailureKind.USER_INPUT)

        pdf_text = pdf_text.strip()
        if not pdf_text:
            return extraction_failed(COULD_NOT_EXTRACT_PDF_TEXT, FailureKind.USER_INPUT)

        return await self._agent.extract_from_text(
            "Extract expense details from this invoice text:\n\n"
            + pdf_text[:self._pdf_char_limit],
            fallback_description="Invoice",
        )
