"""
AI Agents for the Chat Capture Gateway

DESIGN DECISION: The LLM is a TRANSLATOR, not an ORACLE.
It converts a chat message (or the OCR text of a screenshot) into a
fixed JSON shape. Everything it returns is then validated like any
other untrusted input.

CRITICAL BOUNDARIES:

EXPENSE EXTRACTION AGENT:
   - CAN: Read an amount, pick a category from the fixed list,
     summarize a description, name the merchant
   - CANNOT: Persist anything (the user must pick a payment method)
   - CANNOT: Invent an amount; "no amount" is an error, not a guess
   - Single attempt per message, no retries
"""

import json
from typing import Any, Optional

import google.generativeai as genai
import structlog

from chamber.config import get_settings
from chamber.errors import TransientIOError
from chamber.models.capture import (
    ExpenseCategory,
    ExtractionResult,
    ExtractionSource,
    ExtractionSuccess,
    FailureKind,
    extraction_failed,
)
from chamber.services.ocr import NoTextFoundError, OCRError, ReceiptOCRService
from chamber.validation import CandidateRejected, CandidateValidator

logger = structlog.get_logger(__name__)


class ExtractionServiceError(TransientIOError):
    """The AI call failed or returned something unparseable."""
    pass


CATEGORY_LIST = ", ".join(category.value for category in ExpenseCategory)

TEXT_SYSTEM_PROMPT = f"""You are an expense parsing assistant. Extract expense information from user messages.

Categories available: {CATEGORY_LIST}

For text messages like "Lunch 450" or "Uber to airport 250":
- Extract the amount (number)
- Determine the category based on context
- Extract description/merchant if mentioned

Always respond in this exact JSON format only, no other text:
{{"amount": <number>, "category": "<category>", "description": "<brief description>", "merchant": "<merchant name if known>", "confidence": <0.0 to 1.0>}}

If you cannot parse the expense, respond with:
{{"error": "<reason>"}}"""

OCR_FRAMING = (
    'Extract expense from this UPI/payment screenshot OCR text. '
    'Note: "=" often means "₹" (rupee symbol).\n\nOCR Text:\n'
)


def parse_ai_response(text: str) -> dict[str, Any]:
    """
    Pull the JSON object out of a model reply.

    Models sometimes wrap the object in prose or code fences, so we
    take everything between the first "{" and the last "}".

    Raises:
        ExtractionServiceError: If no JSON object can be parsed
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ExtractionServiceError("Could not parse AI response")
    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise ExtractionServiceError(f"Could not parse AI response: {e}")
    if not isinstance(data, dict):
        raise ExtractionServiceError("AI response is not an object")
    return data


class ExpenseExtractionAgent:
    """
    AI agent that turns chat content into an expense candidate.

    RESPONSIBILITIES:
    - Text → candidate (Gemini)
    - Image → OCR text (Mindee) → candidate (Gemini)

    BOUNDARIES:
    - NEVER persists data
    - NEVER retries; one failure is reported immediately
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        ocr_service: Optional[ReceiptOCRService] = None,
        validator: Optional[CandidateValidator] = None,
    ):
        self._model = model
        self._ocr = ocr_service
        self._validator = validator or CandidateValidator()

    def _get_model(self):
        """Configure Google Generative AI on first use."""
        if self._model is None:
            settings = get_settings().gemini
            genai.configure(api_key=settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=settings.model_name,
                generation_config={
                    "temperature": settings.temperature,  # Low for consistency
                    "max_output_tokens": settings.max_tokens,
                },
            )
        return self._model

    def _get_ocr(self) -> ReceiptOCRService:
        if self._ocr is None:
            self._ocr = ReceiptOCRService()
        return self._ocr

    async def extract_from_text(
        self,
        text: str,
        fallback_description: Optional[str] = None,
    ) -> ExtractionResult:
        """
        Ask the model for a structured expense.

        Returns ExtractionSuccess, or ExtractionFailure with:
        - kind=USER_INPUT when the model says it cannot parse the message
          or the candidate fails validation
        - kind=TRANSIENT_IO when the call itself fails
        """
        prompt = f'{TEXT_SYSTEM_PROMPT}\n\nParse this expense: "{text}"'

        try:
            response = await self._get_model().generate_content_async(prompt)
            data = parse_ai_response(response.text.strip())
        except ExtractionServiceError as e:
            logger.warning("ai_response_unparseable", error=str(e))
            return extraction_failed(str(e))
        except Exception as e:
            logger.warning("ai_request_failed", error=str(e))
            return extraction_failed("AI request failed")

        if data.get("error"):
            return extraction_failed(str(data["error"]), FailureKind.USER_INPUT)

        try:
            expense = self._validator.validate(
                data,
                source=ExtractionSource.AI,
                fallback_description=fallback_description or text,
            )
        except CandidateRejected as e:
            logger.info("ai_candidate_rejected", reason=str(e))
            return extraction_failed(str(e), FailureKind.USER_INPUT)

        return ExtractionSuccess(expense=expense)

    async def extract_from_image(self, image_bytes: bytes) -> ExtractionResult:
        """
        OCR the image, then extract from its text.

        The OCR text is framed as a payment screenshot so the model knows
        to look for "Paid to" lines and treats "=" as a mangled "₹".
        """
        try:
            ocr_text = await self._get_ocr().read_text(image_bytes)
        except NoTextFoundError:
            return extraction_failed(
                "Could not read text from image", FailureKind.USER_INPUT
            )
        except OCRError as e:
            logger.warning("ocr_unavailable", error=str(e))
            return extraction_failed("Failed to process image")

        return await self.extract_from_text(
            f"{OCR_FRAMING}{ocr_text}", fallback_description="Payment"
        )
