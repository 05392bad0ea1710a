"""
Core Data Models for the Chat Capture Gateway

These models define the strict schemas for everything that flows
between the extraction step, the session store and the expense store.
They are designed to:
1. Enforce type safety at runtime
2. Keep amounts as Decimal, never float
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Extraction outcomes are a tagged result
(ExtractionSuccess | ExtractionFailure) rather than exceptions.
The fallback chain composes results with early exit on success.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Category vocabulary shared with the dashboard.

    Anything the extraction step returns outside this list is coerced
    to GENERAL, the catch-all category.
    """
    FOOD = "Food"
    TRAVEL = "Travel"
    ENTERTAINMENT = "Entertainment"
    BILLS = "Bills"
    SHOPPING = "Shopping"
    HEALTH = "Health"
    EDUCATION = "Education"
    INVESTMENTS = "Investments"
    SUBSCRIPTION = "Subscription"
    GENERAL = "General"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "ExpenseCategory":
        """Map a free-form label onto the vocabulary (case-insensitive)."""
        if not value:
            return cls.GENERAL
        wanted = value.strip().lower()
        for category in cls:
            if category.value.lower() == wanted:
                return category
        return cls.GENERAL


CATCH_ALL_CATEGORY = ExpenseCategory.GENERAL


class PaymentMethod(str, Enum):
    """
    Accounts a chat capture can be charged to.

    The member NAME is the callback token suffix (pay_CASH),
    the VALUE is the label stored on the expense ("Cash").
    """
    PNB = "PNB"
    SBI = "SBI"
    CASH = "Cash"
    CREDIT = "Credit"

    @property
    def callback_data(self) -> str:
        return f"{PAYMENT_CALLBACK_PREFIX}{self.name}"

    @classmethod
    def from_callback_token(cls, token: str) -> Optional["PaymentMethod"]:
        """Resolve the part after pay_ back to a method, or None."""
        try:
            return cls[token.upper()]
        except KeyError:
            return None


PAYMENT_CALLBACK_PREFIX = "pay_"
CANCEL_CALLBACK_DATA = "confirm_no"


class ExpenseSource(str, Enum):
    """Provenance tag stored on every expense."""
    WEB = "WEB"
    TELEGRAM = "TELEGRAM"
    IMPORT = "IMPORT"


class ExtractionSource(str, Enum):
    """Which stage of the fallback chain produced the candidate."""
    AI = "ai"
    FALLBACK = "fallback"


class FailureKind(str, Enum):
    """Error family of a failed extraction (see chamber.errors)."""
    USER_INPUT = "user_input"
    TRANSIENT_IO = "transient_io"


# =============================================================================
# EXTRACTION RESULT
# =============================================================================

class ExtractedExpense(BaseModel):
    """
    Structured expense candidate.

    CRITICAL: This is PROPOSED data. It is only saved after the user
    picks a payment method.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount spent"
    )
    category: ExpenseCategory = Field(
        default=CATCH_ALL_CATEGORY,
        description="Category from the shared vocabulary"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Short description of the expense"
    )
    merchant: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Merchant or recipient, if known"
    )
    confidence: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Extraction confidence (0-1)"
    )
    source: ExtractionSource = Field(
        default=ExtractionSource.AI,
        description="Stage that produced this candidate"
    )


class ExtractionSuccess(BaseModel):
    """Successful extraction."""

    ok: Literal[True] = True
    expense: ExtractedExpense


class ExtractionFailure(BaseModel):
    """Failed extraction with a human-readable reason."""

    ok: Literal[False] = False
    reason: str
    kind: FailureKind = FailureKind.TRANSIENT_IO


ExtractionResult = Union[ExtractionSuccess, ExtractionFailure]


def extraction_failed(
    reason: str,
    kind: FailureKind = FailureKind.TRANSIENT_IO,
) -> ExtractionFailure:
    return ExtractionFailure(reason=reason, kind=kind)


# =============================================================================
# PENDING CAPTURE (session state)
# =============================================================================

class PendingAttachment(BaseModel):
    """
    A receipt that belongs to a pending capture.

    The bytes are kept in memory until the capture is confirmed;
    storage_key is reserved up front but NOT yet written.
    """
    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    content_type: str
    extension: str
    storage_key: str
    kind: Literal["photo", "pdf"]


class PendingCapture(BaseModel):
    """
    An extracted expense waiting for a payment method.

    One per chat. Replace-only: a correction creates a new capture,
    nothing ever edits an existing one.
    """
    model_config = ConfigDict(frozen=True)

    capture_id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    category: ExpenseCategory = CATCH_ALL_CATEGORY
    description: str
    merchant: Optional[str] = None
    attachment: Optional[PendingAttachment] = None

    is_duplicate: bool = Field(
        default=False,
        description="Same amount already recorded today"
    )
    correlation_id: Optional[UUID] = None

    created_at: datetime
    expires_at: datetime

    @model_validator(mode='after')
    def validate_expiry(self) -> 'PendingCapture':
        if self.expires_at <= self.created_at:
            raise ValueError("Capture must expire after it was created")
        return self

    @classmethod
    def from_extraction(
        cls,
        expense: ExtractedExpense,
        user_id: str,
        created_at: datetime,
        ttl: timedelta,
        attachment: Optional[PendingAttachment] = None,
        is_duplicate: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> "PendingCapture":
        return cls(
            user_id=user_id,
            amount=expense.amount,
            category=expense.category,
            description=expense.description,
            merchant=expense.merchant,
            attachment=attachment,
            is_duplicate=is_duplicate,
            correlation_id=correlation_id,
            created_at=created_at,
            expires_at=created_at + ttl,
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


# =============================================================================
# FINALIZED EXPENSE (what the expense store receives)
# =============================================================================

class FinalizedExpenseRecord(BaseModel):
    """
    A confirmed expense, ready for the expense store.

    occurred_at is the COMMIT time (when the payment method was
    picked), not the time the message was extracted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    category: ExpenseCategory
    description: str
    merchant: Optional[str] = None
    payment_method: str
    receipt_key: Optional[str] = None
    source: ExpenseSource = ExpenseSource.TELEGRAM
    occurred_at: datetime
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_capture(
        cls,
        capture: PendingCapture,
        payment_method: PaymentMethod,
        occurred_at: datetime,
        receipt_key: Optional[str] = None,
    ) -> "FinalizedExpenseRecord":
        return cls(
            user_id=capture.user_id,
            amount=capture.amount,
            category=capture.category,
            description=capture.description,
            merchant=capture.merchant,
            payment_method=payment_method.value,
            receipt_key=receipt_key,
            source=ExpenseSource.TELEGRAM,
            occurred_at=occurred_at,
        )
