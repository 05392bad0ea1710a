"""
Non-AI text parsing

Two small pieces of deterministic parsing that sit next to the AI call:

- parse_plain_expense: the "Item Amount" fallback used when the AI
  cannot produce an expense from a plain text message
- has_useful_expense_info: decides whether a photo/PDF caption already
  names an amount, in which case the caption is used instead of OCR

Both are pure functions; neither touches the network.
"""

import re
from typing import Any, Optional

# First number in the text. Digit groups may be comma separated in
# Indian or Western style ("12,000", "1,25,000", "1,000,000"); up to two
# decimals. A number with more decimals or stray commas ("450.555",
# "1,2") is not an amount at all, rather than a truncated one.
FIRST_AMOUNT_PATTERN = re.compile(
    r"(?<!\d)(?<!\d[.,])"
    r"(?:\d{1,3}(?:,\d{2,3})*,\d{3}|\d+)"
    r"(?:\.\d{1,2})?"
    r"(?!\d|[.,]\d)"
)

# Caption phrasings that suggest an amount is present
USEFUL_CAPTION_PATTERNS = [
    re.compile(r"₹\s*[\d,]+", re.IGNORECASE),
    re.compile(r"Rs\.?\s*[\d,]+", re.IGNORECASE),
    re.compile(r"\d+\s*(?:rupees?|rs)", re.IGNORECASE),
    re.compile(r"paid\s+[\d,]+", re.IGNORECASE),
    re.compile(r"[\d,]+\s+(?:to|for)", re.IGNORECASE),
    re.compile(r"\d{2,}"),
]

DEFAULT_DESCRIPTION = "Expense"


def parse_plain_expense(text: str) -> Optional[dict[str, Any]]:
    """
    Parse "description amount" text without the AI.

    The FIRST number in the text is the amount; everything else is the
    description. "Uber to JFK 2023 terminal, paid 450" therefore yields
    2023. Category is always left to the catch-all.

    Returns:
        Candidate dict (amount as a string, commas stripped), or None
        if the text contains no usable amount
    """
    match = FIRST_AMOUNT_PATTERN.search(text)
    if match is None:
        return None

    remainder = text[:match.start()] + text[match.end():]
    description = " ".join(remainder.split()) or DEFAULT_DESCRIPTION

    return {
        "amount": match.group(0).replace(",", ""),
        "description": description,
        "category": None,
        "merchant": None,
    }


def has_useful_expense_info(caption: Optional[str]) -> bool:
    """True if the caption looks like it names an amount."""
    if not caption:
        return False
    return any(pattern.search(caption) for pattern in USEFUL_CAPTION_PATTERNS)
