import re
import uuid

import pytest

from app.core.permissions import Actor, Roles, can_access_task, can_manage_task
from app.models.attachment import Attachment, AttachmentList, AttachmentType
from app.schemas.task import AttachmentRef, TaskCreate, TaskUpdate
from app.services.attachment_service import kept_attachments, stored_filename

pytestmark = pytest.mark.unit


def test_type_follows_mime_family():
    assert AttachmentType.from_mime_type("image/png") is AttachmentType.PHOTO
    assert AttachmentType.from_mime_type("video/mp4") is AttachmentType.VIDEO
    assert AttachmentType.from_mime_type("application/pdf") is AttachmentType.DOCUMENT
    assert AttachmentType.from_mime_type(None) is AttachmentType.DOCUMENT


def test_stored_filename_keeps_extension():
    name = stored_filename("Quarterly Report.PDF")

    assert re.fullmatch(r"task-attachment-\d+-[0-9a-f]{8}\.pdf", name)
    assert stored_filename("Quarterly Report.PDF") != name


def test_placeholders_are_dropped():
    refs = [
        AttachmentRef(name="uploading.png"),
        AttachmentRef(id="k1", type="photo", url="/uploads/a.png", name="a.png"),
    ]

    kept = kept_attachments(refs)

    assert kept == [Attachment(id="k1", type=AttachmentType.PHOTO, url="/uploads/a.png", name="a.png")]


def test_column_type_reads_back_typed_values():
    column = AttachmentList()
    stored = column.process_bind_param(
        [Attachment(id="1", type=AttachmentType.VIDEO, url="/uploads/v.mp4", name="v.mp4"), {"url": "/uploads/x"}],
        dialect=None,
    )

    loaded = column.process_result_value(stored, dialect=None)

    assert loaded[0] == Attachment(id="1", type=AttachmentType.VIDEO, url="/uploads/v.mp4", name="v.mp4")
    assert loaded[1].type is AttachmentType.DOCUMENT
    assert column.process_result_value(None, dialect=None) == []


def test_task_payloads_cannot_target_the_trash():
    with pytest.raises(ValueError):
        TaskCreate(title="x", estimated_hours=1, status="trashed")
    with pytest.raises(ValueError):
        TaskUpdate(status="trashed")
    with pytest.raises(ValueError):
        TaskCreate(title="x", estimated_hours=0)


def test_ownership_rules():
    creator, assignee, other = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    admin = Actor(id=uuid.uuid4(), role=Roles.ADMIN)

    assert can_manage_task(Actor(id=creator), creator)
    assert not can_manage_task(Actor(id=assignee), creator)
    assert can_manage_task(admin, creator)
    assert can_access_task(Actor(id=assignee), creator, assignee)
    assert not can_access_task(Actor(id=other), creator, assignee)
