"""
Abstract Storage Interfaces

DESIGN DECISION: The gateway never talks to a database directly.
It consumes three narrow interfaces:
1. ExpenseStoreInterface - chat links, duplicate lookup, expense creation
2. BlobStorageInterface  - receipt files
3. AuditStorageInterface - append-only audit trail

This allows us to:
1. Run against Google Sheets today and the dashboard's database later
2. Use in-memory storage for testing
3. Keep the dialogue logic decoupled from storage implementation
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional

from chamber.errors import TransientIOError
from chamber.models.audit import AuditEvent
from chamber.models.capture import FinalizedExpenseRecord


class ExpenseStoreInterface(ABC):
    """
    Abstract interface for the expense store collaborator.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def find_user_by_chat_id(self, chat_id: int) -> Optional[str]:
        """
        Resolve a Telegram chat to a Chamber user.

        Returns:
            The user id, or None if the chat is not linked
        """
        pass

    @abstractmethod
    async def expense_exists(
        self,
        user_id: str,
        amount: Decimal,
        on_date: date,
    ) -> bool:
        """
        Check whether the user already has an expense of exactly this
        amount on this calendar day (duplicate detection).
        """
        pass

    @abstractmethod
    async def create_expense(
        self,
        record: FinalizedExpenseRecord,
    ) -> FinalizedExpenseRecord:
        """
        Persist a confirmed expense.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def redeem_linking_code(
        self,
        code: str,
        chat_id: int,
    ) -> Optional[str]:
        """
        Link a chat to the user who generated `code`.

        The code must exist, be unused and unexpired; it is marked used
        on success.

        Returns:
            The linked user id, or None if the code is not valid
        """
        pass


class BlobStorageInterface(ABC):
    """Abstract interface for receipt file storage."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """
        Store bytes under `key`.

        Returns:
            The key the object was stored under

        Raises:
            StorageError: If the upload fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(TransientIOError):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
