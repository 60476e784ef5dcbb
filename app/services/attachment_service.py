"""
Upload handling for task attachments.

Validates incoming files, writes them through the attachment store, and
turns them into typed ``Attachment`` values.
"""

import logging
import os
import secrets
import time
from typing import List, Optional, Sequence

from fastapi import UploadFile

from app.errors import ValidationError
from app.models.attachment import Attachment
from app.schemas.task import AttachmentRef
from app.storage.attachment_store import AttachmentStore

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "application/zip",
    "application/x-zip-compressed",
    "video/mp4",
    "video/webm",
    "video/ogg",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-matroska",
})


def stored_filename(original_name: Optional[str]) -> str:
    """Unique storage name that keeps the original extension."""
    extension = os.path.splitext(original_name or "")[1].lower()
    return f"task-attachment-{int(time.time() * 1000)}-{secrets.token_hex(4)}{extension}"


def kept_attachments(refs: Sequence[AttachmentRef]) -> List[Attachment]:
    """Client-submitted entries that point at something; placeholders are dropped."""
    kept = []
    for ref in refs:
        if not ref.url:
            continue
        kept.append(Attachment.from_dict(ref.model_dump(mode="json", exclude_none=True)))
    return kept


class AttachmentUploadService:
    """Stores uploaded files and describes them as attachments."""

    def __init__(self, store: AttachmentStore, max_bytes: int):
        self.store = store
        self.max_bytes = max_bytes

    def validate(self, files: Sequence[UploadFile], max_files: int) -> None:
        if len(files) > max_files:
            raise ValidationError(
                f"Too many files uploaded. Maximum is {max_files} attachments per task.",
                {"received": len(files), "limit": max_files},
            )
        for upload in files:
            if upload.content_type not in ALLOWED_MIME_TYPES:
                raise ValidationError(
                    "File type not allowed!",
                    {"filename": upload.filename, "content_type": upload.content_type},
                )

    async def store_uploads(self, files: Sequence[UploadFile], max_files: int) -> List[Attachment]:
        """
        Validate and read every file first, then write them one by one.

        Nothing is written unless every file passes. If a write fails, files
        already written for this request are removed before re-raising.

        Raises:
            ValidationError: count, type or size limits exceeded
            StorageBackendError: the backend rejected a write
        """
        files = [f for f in files if f is not None and f.filename]
        self.validate(files, max_files)

        contents = []
        for upload in files:
            content = await upload.read()
            if len(content) > self.max_bytes:
                raise ValidationError(
                    f"File {upload.filename} exceeds the {self.max_bytes // (1024 * 1024)}MB limit",
                    {"filename": upload.filename, "size": len(content)},
                )
            contents.append((upload, content))

        attachments: List[Attachment] = []
        try:
            for upload, content in contents:
                filename = stored_filename(upload.filename)
                url = await self.store.save_upload(content, filename, upload.content_type)
                attachments.append(Attachment.new(url=url, name=upload.filename, mime_type=upload.content_type))
                logger.info("Stored upload %s as %s", upload.filename, url)
        except Exception:
            await self.discard(attachments)
            raise
        return attachments

    async def discard(self, attachments: Sequence[Attachment]) -> None:
        """Remove blobs written for a request that did not go through."""
        if not attachments:
            return
        report = await self.store.remove_attachments(attachments)
        logger.info("Discarded %d uploaded attachments", report.attempted)
