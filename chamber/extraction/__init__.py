"""Extraction package: chat content → expense candidate."""

from chamber.extraction.adapter import ExtractionAdapter
from chamber.extraction.parsing import has_useful_expense_info, parse_plain_expense

__all__ = [
    "ExtractionAdapter",
    "has_useful_expense_info",
    "parse_plain_expense",
]
