"""Payment proof validation and upload.

Proof constraints are checked here, before the booking service is asked to
move the booking forward, so an invalid file never reaches a transition.
"""

import logging
from io import BytesIO
from uuid import UUID

from app.config import settings
from app.core.exceptions import BookingError, CollaboratorUnavailable, InvalidAttachment
from app.core.permissions import ActorContext
from app.gateways.base import StoredObject
from app.schemas.booking import BookingSnapshot
from app.services.booking_service import BookingService
from app.services.storage_service import StorageError, StorageService

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/png"})


class PaymentProofService:
    """Validates payment proofs and hands them to the booking service."""

    def __init__(
        self,
        booking_service: BookingService,
        storage: StorageService,
        max_bytes: int | None = None,
        allowed_extensions: list[str] | None = None,
    ) -> None:
        self.booking_service = booking_service
        self.storage = storage
        self.max_bytes = max_bytes or settings.payment_proof_max_bytes
        self.allowed_extensions = frozenset(
            ext.lower() for ext in (allowed_extensions or settings.payment_proof_extensions)
        )

    def validate(self, booking_id: UUID, stored: StoredObject) -> None:
        """Check a stored proof reference.

        Raises:
            InvalidAttachment: If the reference is empty, not a JPEG/PNG
                image, or larger than the size ceiling
        """
        if not stored.url or not stored.url.strip():
            raise InvalidAttachment(booking_id, rule="empty_reference")
        if stored.content_type not in ALLOWED_CONTENT_TYPES:
            raise InvalidAttachment(
                booking_id, rule="content_type", content_type=stored.content_type
            )
        if stored.size_bytes <= 0 or stored.size_bytes > self.max_bytes:
            raise InvalidAttachment(
                booking_id,
                rule="size",
                size_bytes=stored.size_bytes,
                max_bytes=self.max_bytes,
            )

    async def submit(
        self,
        booking_id: UUID,
        actor: ActorContext,
        stored: StoredObject,
    ) -> BookingSnapshot:
        """Validate an already stored proof and attach it to the booking."""
        self.validate(booking_id, stored)
        return await self.booking_service.upload_payment_proof(booking_id, actor, stored)

    async def upload(
        self,
        booking_id: UUID,
        actor: ActorContext,
        data: bytes,
        filename: str | None,
    ) -> BookingSnapshot:
        """Store an uploaded proof file and attach it to the booking.

        Callers read at most ``max_bytes + 1`` bytes of the upload, so an
        oversized file is detected without buffering all of it. The file is
        removed from storage again if the booking refuses it.

        Args:
            booking_id: Booking to pay for
            actor: Guest uploading the proof
            data: Uploaded file contents
            filename: Original filename, used for the extension check

        Returns:
            BookingSnapshot: Booking in WAITING_CONFIRMATION

        Raises:
            InvalidAttachment: If the file breaks a proof constraint
            CollaboratorUnavailable: If the blob store cannot take the file
        """
        filename = filename or ""
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if ext not in self.allowed_extensions:
            raise InvalidAttachment(booking_id, rule="extension", extension=ext)

        # Oversized files are never stored
        if not data:
            raise InvalidAttachment(booking_id, rule="empty_file")
        if len(data) > self.max_bytes:
            raise InvalidAttachment(booking_id, rule="size", max_bytes=self.max_bytes)

        try:
            stored = await self.storage.upload_payment_proof(BytesIO(data), booking_id, filename)
        except StorageError as e:
            raise CollaboratorUnavailable(booking_id, collaborator="blob_store") from e

        try:
            return await self.submit(booking_id, actor, stored)
        except BookingError:
            logger.info(f"Payment proof for booking {booking_id} refused, removing {stored.url}")
            await self.storage.delete_file(stored.url)
            raise
