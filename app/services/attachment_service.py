# app/services/attachment_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from app.core.config import Settings
from app.core.errors import UpstreamStorageError, ValidationError
from app.schemas.primitives import Attachment
from app.services.object_store import ObjectStore, build_object_store

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class PendingUploads:
    """Raw files received with a request, not yet in the object store."""

    document: Optional[UploadedFile] = None
    images: List[UploadedFile] = field(default_factory=list)

    def is_empty(self) -> bool:
        return self.document is None and not self.images


@dataclass
class StoredUploads:
    document: Optional[Attachment] = None
    images: List[Attachment] = field(default_factory=list)

    def all(self) -> List[Attachment]:
        return ([self.document] if self.document else []) + list(self.images)


class AttachmentService:
    """
    Relays request files to the object store as one unit: either every file
    is stored, or none is left behind.
    """

    def __init__(self, store: ObjectStore, *, max_bytes: int, max_images: int):
        self.store = store
        self.max_bytes = max_bytes
        self.max_images = max_images

    @classmethod
    def from_settings(cls, settings: Settings, store: Optional[ObjectStore] = None) -> "AttachmentService":
        return cls(
            store or build_object_store(settings),
            max_bytes=settings.max_upload_bytes,
            max_images=settings.max_images_per_upload,
        )

    def validate(self, uploads: Optional[PendingUploads]) -> None:
        if uploads is None:
            return
        if len(uploads.images) > self.max_images:
            raise ValidationError(
                f"At most {self.max_images} images may be uploaded at once.", fields=["images"]
            )
        too_big = []
        if uploads.document and uploads.document.size > self.max_bytes:
            too_big.append("document")
        if any(img.size > self.max_bytes for img in uploads.images):
            too_big.append("images")
        if too_big:
            raise ValidationError(
                f"Uploaded files must not exceed {self.max_bytes} bytes.", fields=too_big
            )

    def _put(self, f: UploadedFile, folder: str) -> Attachment:
        obj = self.store.put(f.data, f.filename, f.content_type, folder)
        return Attachment(
            url=obj.url,
            storage_id=obj.id,
            mime_type=f.content_type or "application/octet-stream",
            size=f.size,
        )

    def store_all(self, uploads: Optional[PendingUploads], *, folder: str) -> StoredUploads:
        """
        Upload the document to <folder>/documents and images to <folder>/images.
        On any failure, already stored objects are removed before re-raising.
        """
        stored = StoredUploads()
        if uploads is None or uploads.is_empty():
            return stored

        self.validate(uploads)
        try:
            if uploads.document is not None:
                stored.document = self._put(uploads.document, f"{folder}/documents")
            for img in uploads.images:
                stored.images.append(self._put(img, f"{folder}/images"))
        except UpstreamStorageError:
            self.discard(stored.all())
            raise
        return stored

    def discard(self, attachments: List[Attachment]) -> None:
        """Remove stored objects that will never be referenced. Failures are logged only."""
        for att in attachments:
            try:
                self.store.delete(att.storage_id)
            except UpstreamStorageError:
                logger.warning("Orphaned object left in store: %s", att.storage_id)
