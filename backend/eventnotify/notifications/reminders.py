"""Event reminder scheduler.

Enqueues an ``event-reminder`` notification for the verified attendees and
speakers of every event starting within the next 24 hours.

Each event carries a watermark, ``event_reminder_evaluated_for_starts_at``.
Once it equals the event's current ``starts_at`` the event is never evaluated
again for that start time, whether or not anybody was notified. Rescheduling
the event changes ``starts_at`` and re-arms it. The watermark is written in the
same transaction as the notifications, so a run either does both or neither.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, union
from sqlalchemy.orm import Session

from ..auth.models import User
from ..community.models import Community, Event, EventAttendee, EventSpeaker, Group
from .models import NotificationKind
from .service import enqueue_notification

logger = logging.getLogger(__name__)

REMINDER_WINDOW = timedelta(hours=24)

# Serializes concurrent scheduler runs on PostgreSQL
_ADVISORY_LOCK_KEY = "eventnotify:event-reminder-enqueue"


def _try_advisory_lock(db: Session) -> bool:
    if db.get_bind().dialect.name != "postgresql":
        return True
    return bool(
        db.execute(select(func.pg_try_advisory_xact_lock(func.hashtextextended(_ADVISORY_LOCK_KEY, 0)))).scalar()
    )


def _due_events(db: Session, now: datetime) -> list[tuple[Event, Group, Community]]:
    return (
        db.query(Event, Group, Community)
        .join(Group, Group.id == Event.group_id)
        .join(Community, Community.id == Group.community_id)
        .filter(
            Community.active.is_(True),
            Group.active.is_(True),
            Group.deleted.is_(False),
            Event.published.is_(True),
            Event.canceled.is_(False),
            Event.deleted.is_(False),
            Event.event_reminder_enabled.is_(True),
            Event.starts_at.isnot(None),
            Event.starts_at > now,
            Event.starts_at <= now + REMINDER_WINDOW,
            Event.event_reminder_evaluated_for_starts_at.is_distinct_from(Event.starts_at),
        )
        .order_by(Event.starts_at.asc(), Event.id.asc())
        .with_for_update(of=Event, skip_locked=True)
        .all()
    )


def get_event_reminder_recipients(db: Session, event_id: UUID) -> list[UUID]:
    """Verified attendees and speakers of an event, deduplicated and sorted."""
    attendees = (
        select(EventAttendee.user_id)
        .join(User, User.id == EventAttendee.user_id)
        .where(EventAttendee.event_id == event_id, User.email_verified.is_(True))
    )
    speakers = (
        select(EventSpeaker.user_id)
        .join(User, User.id == EventSpeaker.user_id)
        .where(EventSpeaker.event_id == event_id, User.email_verified.is_(True))
    )
    return sorted(set(db.execute(union(attendees, speakers)).scalars()))


def build_event_link(base_url: str | None, community_name: str, group_slug: str, event_slug: str) -> str:
    base = (base_url or "").rstrip("/")
    return f"{base}/{community_name}/group/{group_slug}/event/{event_slug}"


def _epoch(value: datetime | None) -> int | None:
    if value is None:
        return None
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())


def _reminder_template_data(event: Event, group: Group, community: Community, link: str) -> dict[str, Any]:
    details = {
        "canceled": event.canceled,
        "community_display_name": community.display_name,
        "community_name": community.name,
        "event_id": str(event.id),
        "group_category_name": group.category_name,
        "group_name": group.name,
        "group_slug": group.slug,
        "kind": event.kind,
        "logo_url": event.logo_url or group.logo_url or community.logo_url,
        "meeting_join_url": event.meeting_join_url,
        "name": event.name,
        "published": event.published,
        "slug": event.slug,
        "starts_at": _epoch(event.starts_at),
        "timezone": event.timezone,
        "venue_address": event.venue_address,
        "venue_city": event.venue_city,
        "venue_country_code": event.venue_country_code,
        "venue_country_name": event.venue_country_name,
        "venue_name": event.venue_name,
        "venue_state": event.venue_state,
        "zip_code": event.venue_zip_code,
    }
    return {
        "event": {k: v for k, v in details.items() if v is not None},
        "link": link,
    }


def enqueue_due_event_reminders(db: Session, link_base_url: str | None, now: datetime | None = None) -> int:
    """Enqueue reminders for due events. Returns the number of notifications created.

    An event is due when ``now < starts_at <= now + 24h``; ``now`` defaults to
    the current time. Calling it again without any data change returns 0. The
    caller commits.
    """
    if not _try_advisory_lock(db):
        logger.info("Another scheduler run holds the reminder lock, skipping")
        return 0

    if now is None:
        now = datetime.now(UTC)
    total = 0

    for event, group, community in _due_events(db, now):
        recipients = get_event_reminder_recipients(db, event.id)

        if recipients:
            link = build_event_link(link_base_url, community.name, group.slug, event.slug)
            total += enqueue_notification(
                db,
                NotificationKind.EVENT_REMINDER,
                _reminder_template_data(event, group, community, link),
                [],
                recipients,
            )
            event.event_reminder_sent_at = now
            logger.info("Event reminder for %s (%s) enqueued to %d recipient(s)", event.slug, event.id, len(recipients))
        else:
            logger.info("Event %s (%s) has no verified recipients, marking evaluated", event.slug, event.id)

        event.event_reminder_evaluated_for_starts_at = event.starts_at

    db.flush()
    if total:
        logger.info("Enqueued %d event reminder notification(s)", total)
    return total
