"""Audience lookups over the community read model."""

from uuid import UUID

from sqlalchemy.orm import Session

from .models import EventAttendee, GroupMember


def list_event_attendee_ids(db: Session, event_id: UUID) -> list[UUID]:
    """Ids of the users attending an event, ordered by user id."""
    rows = db.query(EventAttendee.user_id).filter(EventAttendee.event_id == event_id).order_by(EventAttendee.user_id)
    return [user_id for (user_id,) in rows]


def list_group_member_ids(db: Session, group_id: UUID) -> list[UUID]:
    """Ids of the members of a group, ordered by user id."""
    rows = db.query(GroupMember.user_id).filter(GroupMember.group_id == group_id).order_by(GroupMember.user_id)
    return [user_id for (user_id,) in rows]
