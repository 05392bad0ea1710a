"""
Candidate Validation

DESIGN DECISION: Whatever produced a candidate (the AI or the regex
fallback), it goes through the same gate before it can become a
pending capture:

STAGE 1 - SHAPE:
- Amount must parse as a number (currency symbols and thousands
  separators are stripped, never guessed at)
- Description must be non-empty (falls back to the source text)

STAGE 2 - SANITY:
- Amount must be positive
- Amount must not exceed the configured ceiling
- Category must be in the shared vocabulary (else General)

IMPORTANT: The validator does not invent an amount. A candidate
without one is rejected, never defaulted.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import ValidationError

from chamber.config import get_settings
from chamber.models.capture import (
    ExpenseCategory,
    ExtractedExpense,
    ExtractionSource,
)

TWO_PLACES = Decimal("0.01")

# Characters that may surround or split an amount in AI output ("₹1,250.00")
_AMOUNT_NOISE = re.compile(r"[₹,\s]|^(rs\.?|inr)", re.IGNORECASE)


class CandidateRejected(ValueError):
    """The candidate cannot become an expense."""
    pass


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Normalize an amount to a 2-place Decimal.

    Returns None for anything that is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        text = str(value)
    else:
        text = _AMOUNT_NOISE.sub("", str(value).strip())
    if not text:
        return None
    try:
        amount = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class CandidateValidator:
    """
    Turns a loosely typed candidate dict into an ExtractedExpense.

    Used for both AI output (JSON dict) and regex fallback output.
    """

    def __init__(self, max_amount: Optional[float] = None):
        if max_amount is None:
            max_amount = get_settings().app.max_expense_amount
        self._max_amount = Decimal(str(max_amount))

    def validate(
        self,
        candidate: dict[str, Any],
        source: ExtractionSource,
        fallback_description: str = "Expense",
    ) -> ExtractedExpense:
        """
        Validate a candidate.

        Raises:
            CandidateRejected: With a reason suitable for logs
        """
        amount = parse_amount(candidate.get("amount"))
        if amount is None:
            raise CandidateRejected("no amount")
        if amount <= 0:
            raise CandidateRejected(f"amount must be positive, got {amount}")
        if amount > self._max_amount:
            raise CandidateRejected(f"amount {amount} exceeds limit")

        description = str(candidate.get("description") or "").strip()
        if not description:
            description = fallback_description.strip() or "Expense"

        merchant = candidate.get("merchant")
        merchant = str(merchant).strip()[:200] if merchant else None

        try:
            confidence = float(candidate.get("confidence") or 0.8)
        except (TypeError, ValueError):
            confidence = 0.8

        try:
            return ExtractedExpense(
                amount=amount,
                category=ExpenseCategory.coerce(candidate.get("category")),
                description=description[:200],
                merchant=merchant or None,
                confidence=min(max(confidence, 0.0), 1.0),
                source=source,
            )
        except ValidationError as e:
            raise CandidateRejected(str(e))
