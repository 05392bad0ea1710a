"""Media (attachment) services package."""

from chamber.services.media.cloudinary_service import (
    CloudinaryBlobStorage,
    ReceiptUploadError,
)
from chamber.services.media.resolver import (
    FileTooLargeError,
    MediaDownloadError,
    MediaResolver,
    UnreadableImageError,
)

__all__ = [
    "CloudinaryBlobStorage",
    "FileTooLargeError",
    "MediaDownloadError",
    "MediaResolver",
    "ReceiptUploadError",
    "UnreadableImageError",
]
