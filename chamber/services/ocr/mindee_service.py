"""
OCR Service using Mindee

DESIGN DECISION: We use Mindee because:
1. Specialized for financial documents (receipts, invoices, payment slips)
2. Returns STRUCTURED fields we can flatten into clean text
3. Handles Indian receipt formats reasonably well

This service does NOT decide what the expense is. It turns a photo into
a short block of text lines (merchant, total, date, items) and hands it
to the extraction agent, which interprets it like any other message.
"""

import asyncio
from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog
from mindee import Client
from mindee.product import InvoiceV4

from chamber.config import get_settings
from chamber.errors import TransientIOError

logger = structlog.get_logger(__name__)

# Anything shorter than this is treated as "no text found"
MIN_TEXT_LENGTH = 5


class OCRError(TransientIOError):
    """Base exception for OCR errors."""
    pass


class NoTextFoundError(OCRError):
    """The image did not contain any readable text."""
    pass


class ReceiptOCRService:
    """
    Reads the text of a receipt or payment screenshot via Mindee.

    IMPORTANT BOUNDARIES:
    1. This service ONLY reads text - it does NOT interpret it
    2. Single attempt per image, no retries
    """

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key or get_settings().mindee.api_key
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        """Get or create Mindee client."""
        if self._client is None:
            self._client = Client(api_key=self._api_key)
        return self._client

    @staticmethod
    def _field_value(prediction, name: str):
        field = getattr(prediction, name, None)
        return getattr(field, "value", None) if field is not None else None

    @staticmethod
    def _format_amount(value) -> Optional[str]:
        if value is None:
            return None
        try:
            return str(Decimal(str(value)).quantize(Decimal("0.01")))
        except (InvalidOperation, TypeError, ValueError):
            return None

    def _prediction_to_text(self, prediction) -> str:
        """Flatten the fields we care about into text lines."""
        lines = []

        supplier = self._field_value(prediction, "supplier_name")
        if supplier:
            lines.append(f"Paid to: {supplier}")

        total = self._format_amount(self._field_value(prediction, "total_amount"))
        if total:
            lines.append(f"Total: ₹{total}")

        paid_on = self._field_value(prediction, "date")
        if paid_on:
            lines.append(f"Date: {paid_on}")

        for item in getattr(prediction, "line_items", None) or []:
            description = getattr(item, "description", None)
            amount = self._format_amount(getattr(item, "total_amount", None))
            if description and amount:
                lines.append(f"{str(description)[:80]} {amount}")
            elif description:
                lines.append(str(description)[:80])

        return "\n".join(lines)

    def _parse_sync(self, image_bytes: bytes) -> str:
        client = self._get_client()
        input_doc = client.source_from_bytes(image_bytes, "receipt.jpg")
        result = client.parse(InvoiceV4, input_doc)
        return self._prediction_to_text(result.document.inference.prediction)

    async def read_text(self, image_bytes: bytes) -> str:
        """
        Read the text of an image.

        Raises:
            NoTextFoundError: If nothing usable was read
            OCRError: If the Mindee call fails
        """
        try:
            text = await asyncio.to_thread(self._parse_sync, image_bytes)
        except Exception as e:
            logger.warning("ocr_failed", error=str(e))
            raise OCRError(f"Failed to read image: {e}")

        text = text.strip()
        if len(text) < MIN_TEXT_LENGTH:
            raise NoTextFoundError("No text found in image")
        return text
