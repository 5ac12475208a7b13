"""Notification operations routes."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..config import settings
from ..database.base import get_db
from ..dependencies import get_cache, require_api_token
from ..integrations.cache import CacheService
from .exceptions import UnknownNotificationKind
from .reminders import enqueue_due_event_reminders
from .schemas import EnqueueRequest
from .service import enqueue_notification, get_pending_notification, send_custom_notification
from .store import get_notification_attachment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"], dependencies=[Depends(require_api_token)])


class CustomNotificationRequest(BaseModel):
    created_by: UUID
    event_id: UUID | None = None
    group_id: UUID | None = None
    subject: str = Field(..., min_length=1, max_length=500)
    body: str = Field(..., min_length=1)


@router.post("")
def enqueue(payload: EnqueueRequest, db: Session = Depends(get_db)):
    try:
        attachments = [a.decode() for a in payload.attachments]
        count = enqueue_notification(db, payload.kind, payload.template_data, attachments, payload.recipients)
    except (UnknownNotificationKind, ValueError) as exc:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    db.commit()
    return JSONResponse({"ok": True, "enqueued": count})


@router.post("/custom")
def send_custom(payload: CustomNotificationRequest, db: Session = Depends(get_db)):
    """Send a custom message to an event's attendees or a group's members."""
    try:
        count = send_custom_notification(
            db, payload.created_by, payload.event_id, payload.group_id, payload.subject, payload.body
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    db.commit()
    return JSONResponse({"ok": True, "enqueued": count})


@router.post("/reminders")
def run_reminders(db: Session = Depends(get_db)):
    count = enqueue_due_event_reminders(db, settings.base_url)
    db.commit()
    return JSONResponse({"ok": True, "enqueued": count})


@router.get("/pending")
def peek_pending(db: Session = Depends(get_db), cache: CacheService = Depends(get_cache)):
    """Next notification a worker would receive, with its attachment metadata. Nothing is claimed."""
    notification = get_pending_notification(db)
    if notification is None:
        db.rollback()
        return JSONResponse({"notification": None})

    attachments = []
    for attachment_id in notification.attachment_ids or []:
        attachment = get_notification_attachment(db, attachment_id, cache)
        attachments.append(
            {
                "id": str(attachment_id),
                "content_type": attachment.content_type,
                "file_name": attachment.file_name,
                "size": len(attachment.data),
            }
        )
    db.rollback()

    body = notification.model_dump(mode="json")
    body["attachments"] = attachments
    return JSONResponse({"notification": body})
