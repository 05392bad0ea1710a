"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the
expense store, receipt storage and the audit trail. Google Sheets and
Cloudinary are the production backends; the in-memory versions are
used for local development and tests.
"""

from chamber.services.storage.interface import (
    AuditStorageInterface,
    BlobStorageInterface,
    ExpenseStoreInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)
from chamber.services.storage.memory import (
    InMemoryBlobStorage,
    InMemoryExpenseStore,
)
from chamber.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BlobStorageInterface",
    "ExpenseStoreInterface",
    # Exceptions
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryBlobStorage",
    "InMemoryExpenseStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStore",
]
