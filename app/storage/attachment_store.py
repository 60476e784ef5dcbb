"""
Attachment store.

Routes each attachment URL to the backend that owns it, writes new uploads
to the backend selected at startup, and performs best-effort batch cleanup
for task deletion.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from app.core.config import Settings
from app.errors import StorageBackendError
from app.models.attachment import Attachment
from app.storage.backends import (
    AttachmentBackend,
    DeleteOutcome,
    LocalAttachmentBackend,
    R2AttachmentBackend,
)

logger = logging.getLogger(__name__)


@dataclass
class AttachmentCleanupReport:
    """Result of deleting every attachment of one task."""

    attempted: int = 0
    outcomes: Dict[str, DeleteOutcome] = field(default_factory=dict)
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def as_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "outcomes": {url: outcome.value for url, outcome in self.outcomes.items()},
            "failures": [{"url": url, "error": error} for url, error in self.failures],
        }


class AttachmentStore:
    """Single entry point for attachment blobs across storage backends."""

    def __init__(
        self,
        upload_backend: AttachmentBackend,
        backends: Sequence[AttachmentBackend],
        delete_timeout_seconds: float = 10.0,
    ):
        self.upload_backend = upload_backend
        self.backends = list(backends)
        self.delete_timeout_seconds = delete_timeout_seconds

    def backend_for(self, url: Optional[str]) -> Optional[AttachmentBackend]:
        if not url:
            return None
        for backend in self.backends:
            if backend.owns(url):
                return backend
        return None

    async def save_upload(self, content: bytes, filename: str, content_type: str) -> str:
        """Write a new upload and return the URL to store on the task."""
        return await self.upload_backend.save(content, filename, content_type)

    async def delete(self, url: Optional[str]) -> DeleteOutcome:
        """
        Delete the blob behind one attachment URL.

        Raises:
            StorageBackendError: backend failure or timeout
        """
        backend = self.backend_for(url)
        if backend is None:
            logger.info("Skipping deletion of external file: %s", url)
            return DeleteOutcome.SKIPPED_EXTERNAL

        try:
            return await asyncio.wait_for(backend.delete(url), timeout=self.delete_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise StorageBackendError(
                f"{backend.name} delete timed out after {self.delete_timeout_seconds}s: {url}"
            ) from exc

    async def remove_attachments(self, attachments: Iterable[Attachment]) -> AttachmentCleanupReport:
        """
        Attempt deletion of every attachment independently.

        Failures are logged and collected in the report, never raised.
        """
        report = AttachmentCleanupReport()
        for attachment in attachments:
            report.attempted += 1
            try:
                report.outcomes[attachment.url] = await self.delete(attachment.url)
            except Exception as exc:  # noqa: BLE001
                logger.error("Error deleting attachment file %s: %s", attachment.url, exc, exc_info=True)
                report.failures.append((attachment.url, str(exc)))
        return report


def build_attachment_store(settings: Settings) -> AttachmentStore:
    """Create the store for this process from configuration."""
    local = LocalAttachmentBackend(settings.UPLOADS_DIR, settings.UPLOADS_URL_PREFIX)
    r2 = R2AttachmentBackend(
        bucket_name=settings.R2_BUCKET_NAME,
        access_key_id=settings.R2_ACCESS_KEY_ID,
        secret_access_key=settings.R2_SECRET_ACCESS_KEY,
        account_id=settings.R2_ACCOUNT_ID,
        endpoint_url=settings.R2_ENDPOINT_URL,
        public_base_url=settings.R2_PUBLIC_BASE_URL,
        host_suffix=settings.R2_HOST_SUFFIX,
        timeout_seconds=settings.ATTACHMENT_DELETE_TIMEOUT_SECONDS,
    )

    backend_name = settings.STORAGE_BACKEND.lower()
    if backend_name == "r2" and r2.is_configured:
        upload_backend: AttachmentBackend = r2
    else:
        if backend_name == "r2":
            logger.error("STORAGE_BACKEND=r2 but R2 settings are incomplete; storing uploads on local disk")
        elif backend_name != "local":
            logger.warning("Unknown STORAGE_BACKEND %r; using local disk", settings.STORAGE_BACKEND)
        upload_backend = local
        local.ensure_root()

    logger.info("Attachment uploads go to the %s backend", upload_backend.name)
    return AttachmentStore(
        upload_backend=upload_backend,
        backends=[local, r2],
        delete_timeout_seconds=settings.ATTACHMENT_DELETE_TIMEOUT_SECONDS,
    )
