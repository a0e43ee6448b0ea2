"""S3 Storage Service for payment proof uploads.

Proof images are stored in S3 (MinIO in development). The content type is
sniffed from the bytes with Pillow rather than trusted from the client.
"""

import asyncio
import logging
import uuid
from io import BytesIO
from typing import BinaryIO
from uuid import UUID

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from app.config import settings
from app.gateways.base import StoredObject

logger = logging.getLogger(__name__)

# Pillow format name -> MIME type
IMAGE_FORMAT_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
    "BMP": "image/bmp",
}

UNKNOWN_CONTENT_TYPE = "application/octet-stream"


class StorageError(Exception):
    """Blob store could not be reached or refused the upload."""


def detect_content_type(data: bytes) -> str:
    """Detect an image's MIME type from its bytes.

    Returns ``application/octet-stream`` for anything Pillow cannot identify.
    """
    try:
        with Image.open(BytesIO(data)) as image:
            image.verify()
            return IMAGE_FORMAT_TYPES.get(image.format or "", UNKNOWN_CONTENT_TYPE)
    except (UnidentifiedImageError, OSError, SyntaxError):
        return UNKNOWN_CONTENT_TYPE


class StorageService:
    """S3/MinIO storage service for payment proofs."""

    def __init__(self) -> None:
        """Initialize S3 client."""
        self._client = None
        self._bucket = settings.s3_bucket_name

    @property
    def client(self):
        """Lazy-load S3 client."""
        if self._client is None:
            config = Config(
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "adaptive"},
            )
            self._client = boto3.client(
                "s3",
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                region_name=settings.aws_region,
                endpoint_url=settings.s3_endpoint_url,  # For MinIO in dev
                config=config,
            )
        return self._client

    def _generate_key(self, folder: str, filename: str) -> str:
        """Generate unique S3 key like 'bookings/<id>/payment-proofs/<hex>.jpg'."""
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
        unique_id = uuid.uuid4().hex[:12]
        return f"{folder}/{unique_id}.{ext}"

    def _public_url(self, key: str) -> str:
        if settings.s3_endpoint_url:
            # MinIO in development
            return f"{settings.s3_endpoint_url}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{settings.aws_region}.amazonaws.com/{key}"

    def _key_from_url(self, file_url: str) -> str:
        if settings.s3_endpoint_url:
            prefix = f"{settings.s3_endpoint_url}/{self._bucket}/"
        else:
            prefix = f"https://{self._bucket}.s3.{settings.aws_region}.amazonaws.com/"
        return file_url[len(prefix):] if file_url.startswith(prefix) else file_url

    async def upload_payment_proof(
        self,
        file: BinaryIO,
        booking_id: UUID,
        filename: str,
    ) -> StoredObject:
        """Upload a payment proof image.

        Args:
            file: File-like object to upload
            booking_id: Booking the proof belongs to
            filename: Original filename

        Returns:
            StoredObject: URL, size and sniffed content type

        Raises:
            StorageError: If the blob store is unreachable or refuses the upload
        """
        data = file.read()
        content_type = detect_content_type(data)
        key = self._generate_key(f"bookings/{booking_id}/payment-proofs", filename)

        # Proofs are private to the booking parties
        try:
            await asyncio.to_thread(
                self.client.upload_fileobj,
                BytesIO(data),
                self._bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError, S3UploadFailedError) as e:
            logger.warning(f"Payment proof upload for booking {booking_id} failed: {e}")
            raise StorageError(str(e)) from e
        logger.info(f"Stored payment proof for booking {booking_id} at {key}")

        return StoredObject(
            url=self._public_url(key),
            size_bytes=len(data),
            content_type=content_type,
        )

    async def delete_file(self, file_url: str) -> bool:
        """Delete a stored file.

        Args:
            file_url: URL returned from upload

        Returns:
            bool: True if deleted
        """
        try:
            await asyncio.to_thread(
                self.client.delete_object,
                Bucket=self._bucket,
                Key=self._key_from_url(file_url),
            )
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Failed to delete {file_url}: {e}")
            return False


# Singleton instance
storage_service = StorageService()
