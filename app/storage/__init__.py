from app.storage.attachment_store import AttachmentCleanupReport, AttachmentStore, build_attachment_store
from app.storage.backends import DeleteOutcome, LocalAttachmentBackend, R2AttachmentBackend

__all__ = [
    "AttachmentCleanupReport",
    "AttachmentStore",
    "build_attachment_store",
    "DeleteOutcome",
    "LocalAttachmentBackend",
    "R2AttachmentBackend",
]
