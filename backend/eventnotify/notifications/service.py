"""Notification queue service: enqueue, eligibility, dequeue and completion.

Functions take the caller's session and only flush; the caller owns the
transaction. ``get_pending_notification`` locks the row it returns, so a
delivery worker must keep its transaction open until it has called
``mark_notification_processed`` (or ``record_delivery_error``) and committed.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth.models import User
from ..community.service import list_event_attendee_ids, list_group_member_ids
from .exceptions import UnknownNotificationKind
from .models import CustomNotification, Notification, NotificationAttachment, NotificationKind, TemplateData
from .schemas import NewAttachment, PendingNotification
from .store import put_attachment, put_template_data

logger = logging.getLogger(__name__)

# Kinds deliverable to users whose email is not verified yet
UNVERIFIED_ALLOWED_KINDS = frozenset({NotificationKind.EMAIL_VERIFICATION.value})


def parse_kind(kind: str | NotificationKind) -> NotificationKind:
    try:
        return NotificationKind(kind)
    except ValueError:
        raise UnknownNotificationKind(str(kind)) from None


# ── Enqueue ────────────────────────────────────────────────────────────


def enqueue_notification(
    db: Session,
    kind: str | NotificationKind,
    template_data: dict[str, Any] | None,
    attachments: Iterable[NewAttachment],
    recipients: Iterable[UUID],
) -> int:
    """Create one notification per recipient. Returns the number of rows created.

    The template payload and the attachments go through the content store, so
    every notification of the call shares the same template data row and is
    linked to the same attachment rows. Calling this twice enqueues twice.
    """
    kind = parse_kind(kind)
    recipients = list(recipients)
    if not recipients:
        return 0

    template_data_id = put_template_data(db, template_data) if template_data is not None else None

    notifications = [
        Notification(user_id=user_id, kind=kind.value, template_data_id=template_data_id) for user_id in recipients
    ]
    db.add_all(notifications)
    db.flush()

    attachment_ids: list[UUID] = []
    for attachment in attachments:
        attachment_id = put_attachment(db, attachment.content_type, attachment.file_name, attachment.data)
        if attachment_id not in attachment_ids:
            attachment_ids.append(attachment_id)

    if attachment_ids:
        db.add_all(
            NotificationAttachment(notification_id=n.id, attachment_id=attachment_id)
            for n in notifications
            for attachment_id in attachment_ids
        )
        db.flush()

    logger.info(
        "Enqueued %d %s notification(s) with %d attachment(s)",
        len(notifications),
        kind.value,
        len(attachment_ids),
    )
    return len(notifications)


# ── Eligibility ────────────────────────────────────────────────────────


def is_eligible(kind: str, email_verified: bool) -> bool:
    """Whether a notification of this kind may be delivered to its recipient now."""
    return str(kind) in UNVERIFIED_ALLOWED_KINDS or bool(email_verified)


def _eligibility_clause():
    """SQL mirror of is_eligible(), evaluated against the joined recipient."""
    return or_(
        Notification.kind.in_(sorted(UNVERIFIED_ALLOWED_KINDS)),
        User.email_verified.is_(True),
    )


# ── Dequeue ────────────────────────────────────────────────────────────


def get_pending_notification(db: Session) -> PendingNotification | None:
    """Return the oldest eligible, unprocessed notification, or None.

    Ineligible notifications are skipped rather than blocking the queue. The
    selected row is locked with SKIP LOCKED so concurrent workers each get a
    different notification. Nothing is modified.
    """
    row = (
        db.query(Notification.id, Notification.kind, User.email, TemplateData.data)
        .join(User, User.id == Notification.user_id)
        .outerjoin(TemplateData, TemplateData.id == Notification.template_data_id)
        .filter(Notification.processed.is_(False), _eligibility_clause())
        .order_by(Notification.created_at.asc(), Notification.id.asc())
        .with_for_update(of=Notification, skip_locked=True)
        .first()
    )
    if row is None:
        return None

    notification_id, kind, email, template_data = row
    attachment_ids = sorted(
        {
            a
            for (a,) in db.query(NotificationAttachment.attachment_id).filter(
                NotificationAttachment.notification_id == notification_id
            )
        }
    )

    return PendingNotification(
        notification_id=notification_id,
        kind=kind,
        email=email,
        template_data=template_data,
        attachment_ids=attachment_ids or None,
    )


# ── Completion ─────────────────────────────────────────────────────────


def mark_notification_processed(db: Session, notification_id: UUID, error: str | None = None) -> bool:
    """Mark a notification delivered (or permanently failed with ``error``).

    Already processed notifications are left as they are. Returns True when a
    row was updated.
    """
    updated = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.processed.is_(False))
        .update(
            {
                Notification.processed: True,
                Notification.processed_at: datetime.now(UTC),
                Notification.error: error,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        logger.warning("Notification %s was already processed or does not exist", notification_id)
    return bool(updated)


def record_delivery_error(db: Session, notification_id: UUID, error: str) -> bool:
    """Store a transient delivery error. The notification stays pending."""
    updated = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.processed.is_(False))
        .update({Notification.error: error}, synchronize_session=False)
    )
    return bool(updated)


def track_custom_notification(
    db: Session,
    created_by: UUID,
    event_id: UUID | None,
    group_id: UUID | None,
    subject: str,
    body: str,
) -> CustomNotification:
    """Keep a record of a custom message once it has been enqueued."""
    custom = CustomNotification(
        created_by=created_by,
        event_id=event_id,
        group_id=group_id,
        subject=subject,
        body=body,
    )
    db.add(custom)
    db.flush()
    return custom


def send_custom_notification(
    db: Session,
    created_by: UUID,
    event_id: UUID | None,
    group_id: UUID | None,
    subject: str,
    body: str,
) -> int:
    """Enqueue an organizer's message to an event's attendees or a group's members.

    Exactly one of ``event_id`` and ``group_id`` must be given. An empty
    audience enqueues nothing and leaves no audit record. Returns the number of
    notifications created.
    """
    if (event_id is None) == (group_id is None):
        raise ValueError("exactly one of event_id or group_id is required")

    if event_id is not None:
        kind = NotificationKind.EVENT_CUSTOM
        recipients = list_event_attendee_ids(db, event_id)
    else:
        kind = NotificationKind.GROUP_CUSTOM
        recipients = list_group_member_ids(db, group_id)

    if not recipients:
        logger.info("Custom %s notification has no recipients, nothing enqueued", kind.value)
        return 0

    count = enqueue_notification(db, kind, {"subject": subject, "body": body}, [], recipients)
    track_custom_notification(db, created_by, event_id, group_id, subject, body)
    return count
