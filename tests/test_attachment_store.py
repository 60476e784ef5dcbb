"""Attachment storage backends and the routing store."""

import asyncio
from io import BytesIO

import boto3
import pytest
from botocore.stub import Stubber
from starlette.datastructures import Headers, UploadFile

from app.core.config import Settings
from app.errors import StorageBackendError, ValidationError
from app.models.attachment import Attachment, AttachmentType
from app.services.attachment_service import AttachmentUploadService
from app.storage.attachment_store import AttachmentStore, build_attachment_store
from app.storage.backends import DeleteOutcome, LocalAttachmentBackend, R2AttachmentBackend, url_basename

pytestmark = pytest.mark.unit

R2_HOST = "https://tasket.acct123.r2.cloudflarestorage.com"


def stubbed_r2():
    client = boto3.client(
        "s3",
        region_name="auto",
        endpoint_url="https://acct123.r2.cloudflarestorage.com",
        aws_access_key_id="test-key",
        aws_secret_access_key="test-secret",
    )
    backend = R2AttachmentBackend(
        bucket_name="tasket",
        access_key_id=None,
        secret_access_key=None,
        account_id="acct123",
        client=client,
    )
    return backend, Stubber(client)


def test_url_basename():
    assert url_basename("/uploads/report.pdf") == "report.pdf"
    assert url_basename(f"{R2_HOST}/task-attachment-1-ab.png?x=1") == "task-attachment-1-ab.png"
    assert url_basename("https://example.com/") == ""


def test_local_save_then_delete(store, uploads_dir):
    url = asyncio.run(store.save_upload(b"hello", "task-attachment-1-aa.txt", "text/plain"))

    assert url == "/uploads/task-attachment-1-aa.txt"
    assert (uploads_dir / "task-attachment-1-aa.txt").read_bytes() == b"hello"
    assert asyncio.run(store.delete(url)) == DeleteOutcome.DELETED
    assert not (uploads_dir / "task-attachment-1-aa.txt").exists()


def test_local_delete_of_missing_file(store):
    assert asyncio.run(store.delete("/uploads/never-written.txt")) == DeleteOutcome.NOT_FOUND


def test_local_delete_stays_inside_uploads_dir(store, uploads_dir):
    outside = uploads_dir.parent / "secret.txt"
    outside.write_text("keep me")

    assert asyncio.run(store.delete("/uploads/../secret.txt")) == DeleteOutcome.NOT_FOUND
    assert asyncio.run(store.delete("/uploads/..")) == DeleteOutcome.SKIPPED_UNSAFE_PATH
    assert outside.exists()


def test_external_urls_are_left_alone(store):
    assert asyncio.run(store.delete("https://example.com/cat.jpg")) == DeleteOutcome.SKIPPED_EXTERNAL
    assert asyncio.run(store.delete("")) == DeleteOutcome.SKIPPED_EXTERNAL


def test_unconfigured_r2_skips_deletion(store):
    outcome = asyncio.run(store.delete(f"{R2_HOST}/task-attachment-2-bb.png"))

    assert outcome == DeleteOutcome.SKIPPED_UNCONFIGURED


def test_r2_delete_existing_object():
    backend, stubber = stubbed_r2()
    key = "task-attachment-3-cc.pdf"
    stubber.add_response("head_object", {}, {"Bucket": "tasket", "Key": key})
    stubber.add_response("delete_object", {}, {"Bucket": "tasket", "Key": key})

    with stubber:
        outcome = asyncio.run(backend.delete(f"{R2_HOST}/{key}"))

    assert outcome == DeleteOutcome.DELETED
    stubber.assert_no_pending_responses()


def test_r2_delete_missing_object():
    backend, stubber = stubbed_r2()
    stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

    with stubber:
        outcome = asyncio.run(backend.delete(f"{R2_HOST}/gone.png"))

    assert outcome == DeleteOutcome.NOT_FOUND


def test_r2_access_denied_is_a_backend_error():
    backend, stubber = stubbed_r2()
    stubber.add_client_error("head_object", service_error_code="AccessDenied", http_status_code=403)

    with stubber, pytest.raises(StorageBackendError):
        asyncio.run(backend.delete(f"{R2_HOST}/locked.png"))


def test_r2_save_returns_public_url():
    backend, stubber = stubbed_r2()
    stubber.add_response(
        "put_object",
        {},
        {"Bucket": "tasket", "Key": "task-attachment-4-dd.png", "Body": b"png", "ContentType": "image/png"},
    )

    with stubber:
        url = asyncio.run(backend.save(b"png", "task-attachment-4-dd.png", "image/png"))

    assert url == f"{R2_HOST}/task-attachment-4-dd.png"
    assert backend.owns(url)


def test_r2_owns_public_base_url():
    backend = R2AttachmentBackend(
        bucket_name="tasket",
        access_key_id="k",
        secret_access_key="s",
        account_id="acct123",
        public_base_url="https://files.example.com/",
    )

    assert backend.owns("https://files.example.com/a.png")
    assert not backend.owns("https://example.com/a.png")
    assert backend.public_url("a.png") == "https://files.example.com/a.png"


class SlowBackend:
    name = "slow"
    is_configured = True

    def owns(self, url):
        return url.startswith("slow://")

    async def save(self, content, filename, content_type):
        return f"slow://{filename}"

    async def delete(self, url):
        await asyncio.sleep(5)
        return DeleteOutcome.DELETED


def test_delete_timeout_is_reported_per_attachment(store, uploads_dir):
    (uploads_dir / "fast.txt").write_text("x")
    slow_store = AttachmentStore(store.upload_backend, [SlowBackend(), *store.backends], delete_timeout_seconds=0.05)
    attachments = [
        Attachment(id="1", type=AttachmentType.VIDEO, url="slow://clip.mp4", name="clip.mp4"),
        Attachment(id="2", type=AttachmentType.DOCUMENT, url="/uploads/fast.txt", name="fast.txt"),
    ]

    report = asyncio.run(slow_store.remove_attachments(attachments))

    assert report.attempted == 2
    assert [url for url, _ in report.failures] == ["slow://clip.mp4"]
    assert report.outcomes == {"/uploads/fast.txt": DeleteOutcome.DELETED}
    assert not report.ok


def test_build_store_falls_back_to_local_without_r2_credentials(tmp_path):
    settings = Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        STORAGE_BACKEND="r2",
        UPLOADS_DIR=str(tmp_path / "files"),
    )

    store = build_attachment_store(settings)

    assert isinstance(store.upload_backend, LocalAttachmentBackend)
    assert (tmp_path / "files").is_dir()
    assert [b.name for b in store.backends] == ["local", "r2"]


def test_build_store_uses_r2_when_configured(tmp_path):
    settings = Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        STORAGE_BACKEND="r2",
        UPLOADS_DIR=str(tmp_path / "files"),
        R2_ACCOUNT_ID="acct123",
        R2_ACCESS_KEY_ID="key",
        R2_SECRET_ACCESS_KEY="secret",
        R2_BUCKET_NAME="tasket",
    )

    store = build_attachment_store(settings)

    assert isinstance(store.upload_backend, R2AttachmentBackend)
    assert store.upload_backend.endpoint_url == "https://acct123.r2.cloudflarestorage.com"


def make_upload(name, body, content_type="text/plain"):
    return UploadFile(file=BytesIO(body), filename=name, headers=Headers({"content-type": content_type}))


def test_oversized_file_blocks_the_whole_batch(store, uploads_dir):
    service = AttachmentUploadService(store, max_bytes=10)
    files = [make_upload("a.txt", b"short"), make_upload("b.txt", b"x" * 25)]

    with pytest.raises(ValidationError):
        asyncio.run(service.store_uploads(files, max_files=5))
    assert list(uploads_dir.iterdir()) == []


def test_failed_write_removes_files_already_stored(store, uploads_dir, monkeypatch):
    real_save = store.save_upload
    calls = []

    async def flaky_save(content, filename, content_type):
        calls.append(filename)
        if len(calls) == 2:
            raise StorageBackendError("disk full")
        return await real_save(content, filename, content_type)

    monkeypatch.setattr(store, "save_upload", flaky_save)
    service = AttachmentUploadService(store, max_bytes=1024)
    files = [make_upload("a.txt", b"one"), make_upload("b.txt", b"two")]

    with pytest.raises(StorageBackendError):
        asyncio.run(service.store_uploads(files, max_files=5))
    assert len(calls) == 2
    assert list(uploads_dir.iterdir()) == []
