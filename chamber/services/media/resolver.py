"""
Media Resolver

Turns a Telegram file reference into bytes, and, only once a capture
is confirmed, writes those bytes to receipt storage.

Flow:
1. fetch_bytes: getFile → download (two remote calls, one failure mode)
2. prepare_attachment: sniff the format, reserve a user-scoped key
3. persist: upload under the reserved key at commit time

CRITICAL: Receipts are best-effort. A failed upload never blocks the
expense from being saved; persist() returns None and the expense is
stored without a receipt.
"""

from datetime import datetime, timezone
from io import BytesIO
from typing import Callable, Optional
from uuid import UUID

import structlog
from PIL import Image, UnidentifiedImageError

from chamber.audit import AuditLogger
from chamber.errors import TransientIOError, UserInputError
from chamber.models.audit import AuditEventBuilder
from chamber.models.capture import PendingAttachment
from chamber.services.storage import BlobStorageInterface
from chamber.services.telegram import TelegramAPIError, TelegramClient

logger = structlog.get_logger(__name__)


class MediaDownloadError(TransientIOError):
    """Could not download a file from Telegram."""

    def __init__(self, file_ref: str):
        self.file_ref = file_ref
        super().__init__("could not download")


class UnreadableImageError(UserInputError):
    """The photo could not be decoded as an image."""
    pass


class FileTooLargeError(UserInputError):
    """The attachment exceeds the download limit."""
    pass


# Pillow format name → (content type, extension)
IMAGE_FORMATS = {
    "JPEG": ("image/jpeg", "jpg"),
    "PNG": ("image/png", "png"),
    "WEBP": ("image/webp", "webp"),
    "GIF": ("image/gif", "gif"),
}

PDF_CONTENT_TYPE = "application/pdf"


class MediaResolver:
    """
    Downloads chat attachments and stores confirmed receipts.

    Args:
        telegram: Bot API client used for getFile and the download
        blob_storage: Receipt storage; None disables receipt persistence
        max_bytes: Largest attachment we agree to download
        audit_logger: Records failed uploads
        clock: Returns the current UTC time (key suffixes)
    """

    def __init__(
        self,
        telegram: TelegramClient,
        blob_storage: Optional[BlobStorageInterface],
        max_bytes: int,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._telegram = telegram
        self._blob_storage = blob_storage
        self._max_bytes = max_bytes
        self._audit_logger = audit_logger
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def fetch_bytes(
        self,
        file_ref: str,
        declared_size: Optional[int] = None,
    ) -> bytes:
        """
        Download a Telegram file.

        Raises:
            FileTooLargeError: If the file is over the size limit
            MediaDownloadError: If either getFile or the download fails
        """
        if declared_size is not None and declared_size > self._max_bytes:
            raise FileTooLargeError(
                "This file is too large to process.",
                hint=f"Please send a file under {self._max_bytes // (1024 * 1024)} MB.",
            )

        try:
            file_path = await self._telegram.get_file_path(file_ref)
            data = await self._telegram.download_file(file_path)
        except TelegramAPIError as e:
            logger.warning("media_download_failed", file_ref=file_ref, error=str(e))
            raise MediaDownloadError(file_ref)

        if len(data) > self._max_bytes:
            raise FileTooLargeError(
                "This file is too large to process.",
                hint=f"Please send a file under {self._max_bytes // (1024 * 1024)} MB.",
            )
        return data

    @staticmethod
    def describe_image(data: bytes) -> tuple[str, str]:
        """
        Identify an image's format.

        Returns: (content_type, extension)

        Raises:
            UnreadableImageError: If Pillow cannot decode the bytes
        """
        try:
            with Image.open(BytesIO(data)) as img:
                fmt = img.format or ""
        except (UnidentifiedImageError, OSError):
            raise UnreadableImageError(
                "Could not read this image.",
                hint="Please send the screenshot again as a photo.",
            )
        # Telegram recompresses photos to JPEG; anything unknown is stored as such
        return IMAGE_FORMATS.get(fmt, IMAGE_FORMATS["JPEG"])

    def build_storage_key(self, user_id: str, extension: str) -> str:
        """receipts/<user>/<epoch ms>.<ext>"""
        stamp = int(self._clock().timestamp() * 1000)
        return f"receipts/{user_id}/{stamp}.{extension}"

    def prepare_attachment(
        self,
        data: bytes,
        user_id: str,
        kind: str,
    ) -> PendingAttachment:
        """Wrap downloaded bytes for a pending capture and reserve their key."""
        if kind == "pdf":
            content_type, extension = PDF_CONTENT_TYPE, "pdf"
        else:
            content_type, extension = self.describe_image(data)

        return PendingAttachment(
            data=data,
            content_type=content_type,
            extension=extension,
            storage_key=self.build_storage_key(user_id, extension),
            kind=kind,
        )

    async def persist(
        self,
        attachment: PendingAttachment,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[str]:
        """
        Upload a confirmed receipt.

        Returns:
            The storage key, or None if storage is not configured or
            the upload failed
        """
        if self._blob_storage is None:
            return None

        try:
            return await self._blob_storage.put(
                attachment.storage_key,
                attachment.data,
                attachment.content_type,
            )
        except Exception as e:
            logger.warning(
                "receipt_persist_failed",
                storage_key=attachment.storage_key,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log(
                    AuditEventBuilder.attachment_persist_failed(
                        storage_key=attachment.storage_key,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                )
            return None
