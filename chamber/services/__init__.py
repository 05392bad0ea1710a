"""Services package."""

from chamber.services.storage import (
    AuditStorageInterface,
    BlobStorageInterface,
    ExpenseStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStore,
    InMemoryBlobStorage,
    InMemoryExpenseStore,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)
from chamber.services.telegram import (
    TelegramAPIError,
    TelegramClient,
)
from chamber.services.ocr import (
    NoTextFoundError,
    OCRError,
    ReceiptOCRService,
)
from chamber.services.media import (
    CloudinaryBlobStorage,
    FileTooLargeError,
    MediaDownloadError,
    MediaResolver,
    ReceiptUploadError,
    UnreadableImageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "BlobStorageInterface",
    "ExpenseStoreInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStore",
    "InMemoryBlobStorage",
    "InMemoryExpenseStore",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # Telegram
    "TelegramAPIError",
    "TelegramClient",
    # OCR services
    "NoTextFoundError",
    "OCRError",
    "ReceiptOCRService",
    # Media services
    "CloudinaryBlobStorage",
    "FileTooLargeError",
    "MediaDownloadError",
    "MediaResolver",
    "ReceiptUploadError",
    "UnreadableImageError",
]
