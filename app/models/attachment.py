"""
Task attachment value object and its JSON column type.

Attachments are embedded in the task row as an ordered JSON list of
``{id, type, url, name}``. The column type converts between that JSON and
``Attachment`` instances so code reading ``task.attachments`` always gets
typed values.
"""

import enum
import uuid
from dataclasses import asdict, dataclass
from typing import Any, List, Optional

from sqlalchemy import JSON
from sqlalchemy.types import TypeDecorator


class AttachmentType(str, enum.Enum):
    PHOTO = "photo"
    VIDEO = "video"
    DOCUMENT = "document"

    @classmethod
    def from_mime_type(cls, mime_type: Optional[str]) -> "AttachmentType":
        """image/* -> photo, video/* -> video, anything else -> document."""
        mime_type = (mime_type or "").lower()
        if mime_type.startswith("image/"):
            return cls.PHOTO
        if mime_type.startswith("video/"):
            return cls.VIDEO
        return cls.DOCUMENT


@dataclass(frozen=True)
class Attachment:
    id: str
    type: AttachmentType
    url: str
    name: str

    @classmethod
    def new(cls, url: str, name: str, mime_type: Optional[str]) -> "Attachment":
        return cls(
            id=uuid.uuid4().hex,
            type=AttachmentType.from_mime_type(mime_type),
            url=url,
            name=name,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Attachment":
        raw_type = data.get("type") or AttachmentType.DOCUMENT.value
        try:
            attachment_type = AttachmentType(raw_type)
        except ValueError:
            attachment_type = AttachmentType.DOCUMENT
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            type=attachment_type,
            url=data.get("url") or "",
            name=data.get("name") or "",
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        return data


class AttachmentList(TypeDecorator):
    """JSON list column holding ``Attachment`` values."""

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value: Any, dialect) -> Optional[list]:
        if value is None:
            return []
        return [
            item.to_dict() if isinstance(item, Attachment) else Attachment.from_dict(item).to_dict()
            for item in value
        ]

    def process_result_value(self, value: Any, dialect) -> List[Attachment]:
        if not value:
            return []
        return [Attachment.from_dict(item) for item in value if isinstance(item, dict)]
