"""Notification request/response schemas."""

import base64
import binascii
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class NewAttachment(BaseModel):
    content_type: str = Field(..., min_length=1, max_length=255)
    file_name: str = Field(..., min_length=1, max_length=255)
    data: bytes

    @field_validator("content_type", "file_name")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class AttachmentContent(BaseModel):
    content_type: str
    file_name: str
    data: bytes


class PendingNotification(BaseModel):
    notification_id: UUID
    kind: str
    email: str
    template_data: dict[str, Any] | None = None
    attachment_ids: list[UUID] | None = None


class EnqueueAttachmentRequest(BaseModel):
    content_type: str = Field(..., min_length=1, max_length=255)
    file_name: str = Field(..., min_length=1, max_length=255)
    data_base64: str

    def decode(self) -> NewAttachment:
        try:
            data = base64.b64decode(self.data_base64, validate=True)
        except binascii.Error as exc:
            raise ValueError("data_base64 is not valid base64") from exc
        return NewAttachment(content_type=self.content_type, file_name=self.file_name, data=data)


class EnqueueRequest(BaseModel):
    kind: str = Field(..., max_length=50)
    template_data: dict[str, Any] | None = None
    attachments: list[EnqueueAttachmentRequest] = []
    recipients: list[UUID] = []
