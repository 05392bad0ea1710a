"""OCR services package."""

from chamber.services.ocr.mindee_service import (
    NoTextFoundError,
    OCRError,
    ReceiptOCRService,
)

__all__ = [
    "NoTextFoundError",
    "OCRError",
    "ReceiptOCRService",
]
