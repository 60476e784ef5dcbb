"""
Attachment storage backends.

Two implementations share one interface: files on local disk served under
``/uploads/``, and objects in a Cloudflare R2 bucket (S3-compatible, via boto3).
Both are async at the edges; blocking filesystem and boto3 calls run in a
worker thread.
"""

import asyncio
import enum
import logging
from pathlib import Path, PurePosixPath
from typing import Optional, Protocol
from urllib.parse import urlparse

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from app.errors import StorageBackendError

logger = logging.getLogger(__name__)


class DeleteOutcome(str, enum.Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    SKIPPED_EXTERNAL = "skipped_external"
    SKIPPED_UNCONFIGURED = "skipped_unconfigured"
    SKIPPED_UNSAFE_PATH = "skipped_unsafe_path"


class AttachmentBackend(Protocol):
    """Interface for attachment storage backends."""

    name: str

    @property
    def is_configured(self) -> bool:
        ...

    def owns(self, url: str) -> bool:
        ...

    async def save(self, content: bytes, filename: str, content_type: str) -> str:
        ...

    async def delete(self, url: str) -> DeleteOutcome:
        ...


def url_basename(url: str) -> str:
    """Final path segment of a URL or path, ignoring query strings."""
    path = urlparse(url).path.rstrip("/")
    return PurePosixPath(path).name


class LocalAttachmentBackend:
    """Attachments stored as files in a single uploads directory."""

    name = "local"

    def __init__(self, uploads_dir: str, url_prefix: str = "/uploads/"):
        self.root = Path(uploads_dir).resolve()
        self.url_prefix = url_prefix if url_prefix.endswith("/") else url_prefix + "/"

    @property
    def is_configured(self) -> bool:
        return True

    def owns(self, url: str) -> bool:
        return bool(url) and url.startswith(self.url_prefix)

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, url: str) -> Optional[Path]:
        """
        Resolve a local upload URL to a file inside the uploads root.

        Only the basename is used; anything resolving outside the root is
        refused.
        """
        filename = url_basename(url)
        if not filename:
            return None
        candidate = (self.root / filename).resolve()
        if candidate == self.root or not candidate.is_relative_to(self.root):
            return None
        return candidate

    async def save(self, content: bytes, filename: str, content_type: str) -> str:
        await asyncio.to_thread(self._write, filename, content)
        return f"{self.url_prefix}{filename}"

    def _write(self, filename: str, content: bytes) -> None:
        self.ensure_root()
        target = self.root / filename
        try:
            target.write_bytes(content)
        except OSError as exc:
            raise StorageBackendError(f"Could not write {target}: {exc}") from exc
        logger.info("Stored attachment on local disk: %s", target)

    async def delete(self, url: str) -> DeleteOutcome:
        return await asyncio.to_thread(self._delete_sync, url)

    def _delete_sync(self, url: str) -> DeleteOutcome:
        path = self.path_for(url)
        if path is None:
            logger.warning("Skipped deletion - path escapes uploads directory: %s", url)
            return DeleteOutcome.SKIPPED_UNSAFE_PATH
        if not path.exists():
            logger.info("Attachment file not found: %s", path)
            return DeleteOutcome.NOT_FOUND
        try:
            path.unlink()
        except FileNotFoundError:
            return DeleteOutcome.NOT_FOUND
        except OSError as exc:
            raise StorageBackendError(f"Could not delete {path}: {exc}") from exc
        logger.info("Deleted attachment file: %s", path)
        return DeleteOutcome.DELETED


class R2AttachmentBackend:
    """
    Attachments stored as objects in a Cloudflare R2 bucket.

    The object key is the final path segment of the attachment URL.
    A backend with missing credentials still recognises R2 URLs so that
    deletions can be skipped with a warning instead of treated as external.
    """

    name = "r2"

    def __init__(
        self,
        bucket_name: Optional[str],
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        account_id: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
        host_suffix: str = "r2.cloudflarestorage.com",
        timeout_seconds: float = 10.0,
        client=None,
    ):
        self.bucket_name = bucket_name
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.account_id = account_id
        self.host_suffix = host_suffix
        self.endpoint_url = endpoint_url or (f"https://{account_id}.{host_suffix}" if account_id else None)
        self.public_base_url = (public_base_url or "").rstrip("/") or None
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def is_configured(self) -> bool:
        if self._client is not None:
            return bool(self.bucket_name)
        return all([self.bucket_name, self.access_key_id, self.secret_access_key, self.endpoint_url])

    def owns(self, url: str) -> bool:
        if not url:
            return False
        if self.public_base_url and url.startswith(self.public_base_url + "/"):
            return True
        host = (urlparse(url).hostname or "").lower()
        return host == self.host_suffix or host.endswith("." + self.host_suffix)

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        if self.account_id:
            return f"https://{self.bucket_name}.{self.account_id}.{self.host_suffix}/{key}"
        return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{key}"

    def _get_client(self):
        """Get or create boto3 S3 client for R2."""
        if self._client is not None:
            return self._client
        if not self.is_configured:
            raise StorageBackendError("Cloud storage is not configured. Check R2 settings.")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            region_name="auto",  # R2 uses 'auto' region
            config=BotoConfig(
                connect_timeout=self.timeout_seconds,
                read_timeout=self.timeout_seconds,
                retries={"max_attempts": 2},
            ),
        )
        return self._client

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._exists_sync, key)

    def _exists_sync(self, key: str) -> bool:
        try:
            self._get_client().head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise StorageBackendError(f"R2 head_object failed for {key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageBackendError(f"R2 head_object failed for {key}: {exc}") from exc
        return True

    async def save(self, content: bytes, filename: str, content_type: str) -> str:
        await asyncio.to_thread(self._put_sync, filename, content, content_type)
        return self.public_url(filename)

    def _put_sync(self, key: str, content: bytes, content_type: str) -> None:
        try:
            self._get_client().put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageBackendError(f"R2 upload failed for {key}: {exc}") from exc
        logger.info("Uploaded attachment to R2: %s (%d bytes)", key, len(content))

    async def delete(self, url: str) -> DeleteOutcome:
        if not self.is_configured:
            logger.warning("Cloudflare R2 is not configured. Skipping deletion of %s", url)
            return DeleteOutcome.SKIPPED_UNCONFIGURED

        key = url_basename(url)
        if not key:
            return DeleteOutcome.NOT_FOUND
        if not await self.exists(key):
            logger.info("R2 object already absent: %s", key)
            return DeleteOutcome.NOT_FOUND

        await asyncio.to_thread(self._delete_sync, key)
        return DeleteOutcome.DELETED

    def _delete_sync(self, key: str) -> None:
        try:
            self._get_client().delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise StorageBackendError(f"R2 delete failed for {key}: {exc}") from exc
        logger.info("Deleted attachment from R2: %s", key)
