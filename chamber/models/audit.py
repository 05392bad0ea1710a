"""
Audit Models for the Chat Capture Gateway

Every significant step of a chat capture is logged for audit purposes.
This provides:
1. Complete traceability from a Telegram message to a saved expense
2. Debugging information when extraction goes wrong
3. A record of what the user confirmed and when

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the capture pipeline has its own event type.
    """
    # Inbound
    UPDATE_RECEIVED = "update_received"
    CHAT_NOT_LINKED = "chat_not_linked"
    ACCOUNT_LINKED = "account_linked"
    LINKING_FAILED = "linking_failed"

    # Extraction
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    DOCUMENT_REJECTED = "document_rejected"

    # Pending capture lifecycle
    CAPTURE_PENDING = "capture_pending"
    CAPTURE_REPLACED = "capture_replaced"
    DUPLICATE_FLAGGED = "duplicate_flagged"
    CAPTURE_CONFIRMED = "capture_confirmed"
    CAPTURE_CANCELLED = "capture_cancelled"
    CAPTURE_EXPIRED = "capture_expired"

    # Persistence
    EXPENSE_SAVED = "expense_saved"
    ATTACHMENT_PERSIST_FAILED = "attachment_persist_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'chat', 'capture', 'expense')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - one id per inbound Telegram update
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate all events caused by one update"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.capture_pending(chat_id, capture, correlation_id)
        event = AuditEventBuilder.expense_saved(expense_id, amount, method, correlation_id)
    """

    @staticmethod
    def update_received(
        chat_id: int,
        kind: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPDATE_RECEIVED,
            severity=AuditSeverity.DEBUG,
            entity_type="chat",
            entity_id=str(chat_id),
            correlation_id=correlation_id,
            description=f"Telegram {kind} update received",
            details={"kind": kind},
            is_user_action=True,
        )

    @staticmethod
    def chat_not_linked(
        chat_id: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHAT_NOT_LINKED,
            severity=AuditSeverity.WARNING,
            entity_type="chat",
            entity_id=str(chat_id),
            correlation_id=correlation_id,
            description="Update from a chat that is not linked to an account",
        )

    @staticmethod
    def account_linked(
        chat_id: int,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_LINKED,
            entity_type="chat",
            entity_id=str(chat_id),
            correlation_id=correlation_id,
            description="Telegram chat linked to a Chamber account",
            details={"user_id": user_id},
            is_user_action=True,
        )

    @staticmethod
    def linking_failed(
        chat_id: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LINKING_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="chat",
            entity_id=str(chat_id),
            correlation_id=correlation_id,
            description="Linking code was invalid, used or expired",
            is_user_action=True,
        )

    @staticmethod
    def extraction_completed(
        chat_id: int,
        input_kind: str,
        source: str,
        confidence: float,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="chat",
            entity_id=str(chat_id),
            correlation_id=correlation_id,
            description=f"Expense extracted from {input_kind} ({source}, {confidence:.0%})",
            details={
                "input_kind": input_kind,
                "source": source,
                "confidence": confidence,
            },
        )

    @staticmethod
    def extraction_failed(
        chat_id: int,
        input_kind: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="chat",
            entity_id=str(chat_id),
            correlation_id=correlation_id,
            description=f"Could not extract an expense from {input_kind}",
            details={"input_kind": input_kind, "reason": reason},
        )

    @staticmethod
    def document_rejected(
        chat_id: int,
        mime_type: Optional[str],
        file_name: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="chat",
            entity_id=str(chat_id),
            correlation_id=correlation_id,
            description=f"Document rejected: not a PDF (mime type: {mime_type})",
            details={"mime_type": mime_type, "file_name": file_name},
        )

    @staticmethod
    def capture_pending(
        chat_id: int,
        capture_id: UUID,
        amount: str,
        has_attachment: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_PENDING,
            entity_type="capture",
            entity_id=str(capture_id),
            correlation_id=correlation_id,
            description=f"Capture of {amount} awaiting payment method",
            details={
                "chat_id": chat_id,
                "amount": amount,
                "has_attachment": has_attachment,
            },
        )

    @staticmethod
    def capture_replaced(
        chat_id: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_REPLACED,
            entity_type="chat",
            entity_id=str(chat_id),
            correlation_id=correlation_id,
            description="Pending capture discarded by a correction",
            is_user_action=True,
        )

    @staticmethod
    def duplicate_flagged(
        chat_id: int,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_FLAGGED,
            severity=AuditSeverity.WARNING,
            entity_type="chat",
            entity_id=str(chat_id),
            correlation_id=correlation_id,
            description=f"An expense of {amount} already exists today",
            details={"amount": amount},
        )

    @staticmethod
    def capture_confirmed(
        capture_id: UUID,
        payment_method: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_CONFIRMED,
            entity_type="capture",
            entity_id=str(capture_id),
            correlation_id=correlation_id,
            description=f"User confirmed capture with payment method {payment_method}",
            details={"payment_method": payment_method},
            is_user_action=True,
        )

    @staticmethod
    def capture_cancelled(
        chat_id: int,
        had_pending: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_CANCELLED,
            entity_type="chat",
            entity_id=str(chat_id),
            correlation_id=correlation_id,
            description="User cancelled the pending capture",
            details={"had_pending": had_pending},
            is_user_action=True,
        )

    @staticmethod
    def capture_expired(
        chat_id: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_EXPIRED,
            severity=AuditSeverity.WARNING,
            entity_type="chat",
            entity_id=str(chat_id),
            correlation_id=correlation_id,
            description="Payment method picked but no live capture exists",
            is_user_action=True,
        )

    @staticmethod
    def expense_saved(
        expense_id: UUID,
        amount: str,
        payment_method: str,
        has_receipt: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            entity_type="expense",
            entity_id=str(expense_id),
            correlation_id=correlation_id,
            description=f"Expense saved: {amount} via {payment_method}",
            details={
                "amount": amount,
                "payment_method": payment_method,
                "has_receipt": has_receipt,
            },
        )

    @staticmethod
    def attachment_persist_failed(
        storage_key: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ATTACHMENT_PERSIST_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            entity_id=storage_key,
            correlation_id=correlation_id,
            description="Receipt could not be stored; expense saved without it",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
