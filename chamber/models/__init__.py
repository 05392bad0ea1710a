"""
Data Models Package

This package contains all Pydantic models used by the gateway.
All data flowing through the system must conform to these schemas.
"""

from chamber.models.capture import (
    CANCEL_CALLBACK_DATA,
    CATCH_ALL_CATEGORY,
    PAYMENT_CALLBACK_PREFIX,
    ExpenseCategory,
    ExpenseSource,
    ExtractedExpense,
    ExtractionFailure,
    ExtractionResult,
    ExtractionSource,
    ExtractionSuccess,
    FailureKind,
    FinalizedExpenseRecord,
    PaymentMethod,
    PendingAttachment,
    PendingCapture,
    extraction_failed,
)
from chamber.models.updates import (
    CallbackUpdate,
    DocumentUpdate,
    InboundUpdate,
    PhotoUpdate,
    TextUpdate,
    parse_update,
)
from chamber.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Capture models
    "CANCEL_CALLBACK_DATA",
    "CATCH_ALL_CATEGORY",
    "PAYMENT_CALLBACK_PREFIX",
    "ExpenseCategory",
    "ExpenseSource",
    "ExtractedExpense",
    "ExtractionFailure",
    "ExtractionResult",
    "ExtractionSource",
    "ExtractionSuccess",
    "FailureKind",
    "FinalizedExpenseRecord",
    "PaymentMethod",
    "PendingAttachment",
    "PendingCapture",
    "extraction_failed",
    # Inbound updates
    "CallbackUpdate",
    "DocumentUpdate",
    "InboundUpdate",
    "PhotoUpdate",
    "TextUpdate",
    "parse_update",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
