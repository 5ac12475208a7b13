"""Content-addressed storage for notification template data and attachments.

Rows are keyed by the SHA-256 of their content. Writes are a single
``INSERT ... ON CONFLICT (hash) DO NOTHING`` followed by a lookup by hash, so
concurrent writers submitting the same content end up with the same row and
never see a unique-violation error.
"""

import base64
import hashlib
import json
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ..integrations.cache import CacheService
from .exceptions import AttachmentNotFound
from .models import Attachment, TemplateData
from .schemas import AttachmentContent

logger = logging.getLogger(__name__)

ATTACHMENT_CACHE_TTL = 7200  # 2 hours; attachment rows are immutable

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def canonical_json(payload: Any) -> str:
    """Stable text encoding: sorted keys, no insignificant whitespace."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def template_data_hash(payload: Any) -> str:
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def attachment_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _insert_if_absent(db: Session, model, values: dict) -> UUID:
    """Insert a content-addressed row unless its hash exists, then return the row id."""
    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise NotImplementedError(f"content store does not support the {dialect} dialect")

    stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=["hash"])
    db.execute(stmt)
    return db.execute(select(model.id).where(model.hash == values["hash"])).scalar_one()


def put_template_data(db: Session, payload: Any) -> UUID:
    """Store a template payload (or reuse the identical one) and return its id."""
    digest = template_data_hash(payload)
    template_data_id = _insert_if_absent(db, TemplateData, {"data": payload, "hash": digest})
    logger.debug("Template data %s resolved to %s", digest[:12], template_data_id)
    return template_data_id


def put_attachment(db: Session, content_type: str, file_name: str, data: bytes) -> UUID:
    """Store attachment bytes (or reuse an identical upload) and return its id.

    Only the bytes are hashed: when the content already exists the stored
    content type and file name are kept as they are.
    """
    digest = attachment_hash(data)
    attachment_id = _insert_if_absent(
        db,
        Attachment,
        {"content_type": content_type, "file_name": file_name, "data": data, "hash": digest},
    )
    logger.debug("Attachment %s (%d bytes) resolved to %s", file_name, len(data), attachment_id)
    return attachment_id


def get_notification_attachment(
    db: Session, attachment_id: UUID, cache: CacheService | None = None
) -> AttachmentContent:
    """Load an attachment for delivery, going through the cache when one is given."""
    key = f"notifications:attachment:{attachment_id}"
    if cache is not None:
        cached = cache.get_json(key)
        if cached:
            return AttachmentContent(
                content_type=cached["content_type"],
                file_name=cached["file_name"],
                data=base64.b64decode(cached["data_base64"]),
            )

    row = db.query(Attachment).filter(Attachment.id == attachment_id).first()
    if row is None:
        raise AttachmentNotFound(attachment_id)

    attachment = AttachmentContent(content_type=row.content_type, file_name=row.file_name, data=row.data)
    if cache is not None:
        cache.set_json(
            key,
            {
                "content_type": attachment.content_type,
                "file_name": attachment.file_name,
                "data_base64": base64.b64encode(attachment.data).decode("ascii"),
            },
            ATTACHMENT_CACHE_TTL,
        )
    return attachment
