"""
Receipt storage using Cloudinary

DESIGN DECISION: We use Cloudinary because:
1. Stores both images and raw files (PDF invoices)
2. Reliable cloud infrastructure
3. Simple API
4. Free tier sufficient for personal use

Receipts are stored under the key the media resolver reserved for
them (receipts/<user>/<timestamp>.<ext>). Images keep the key minus
the extension as public_id (Cloudinary appends the format itself);
raw files keep the full key.
"""

import asyncio
from pathlib import PurePosixPath

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from chamber.config import get_settings
from chamber.services.storage.interface import BlobStorageInterface, StorageError


class ReceiptUploadError(StorageError):
    """Failed to upload a receipt to Cloudinary."""
    pass


class CloudinaryBlobStorage(BlobStorageInterface):
    """Blob storage backed by Cloudinary uploads."""

    def __init__(self):
        self._settings = get_settings().cloudinary
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _public_id(self, key: str, resource_type: str) -> str:
        path = PurePosixPath(key)
        if resource_type == "image":
            path = path.with_suffix("")
        return f"{self._settings.folder}/{path}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """
        Upload a receipt.

        Raises:
            ReceiptUploadError: If the upload fails
        """
        self._configure()

        resource_type = "image" if content_type.startswith("image/") else "raw"
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                data,
                public_id=self._public_id(key, resource_type),
                resource_type=resource_type,
                overwrite=False,
            )
        except cloudinary.exceptions.Error as e:
            raise ReceiptUploadError(f"Cloudinary error: {e}")
        except Exception as e:
            raise ReceiptUploadError(f"Failed to upload receipt: {e}")

        if not result.get("secure_url", result.get("url")):
            raise ReceiptUploadError("No URL returned from Cloudinary")

        return key
