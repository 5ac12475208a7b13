"""Community, group and event read model.

These tables are owned by the community management side of the platform.
The notifications package only reads them, except for the three
``event_reminder_*`` columns on ``Event`` which the reminder scheduler writes.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class Community(Base):
    __tablename__ = "communities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False)
    display_name = Column(String(255), nullable=False)
    logo_url = Column(String(500), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    groups = relationship("Group", back_populates="community")


class Group(Base):
    __tablename__ = "groups"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    community_id = Column(
        UUID(as_uuid=True),
        ForeignKey("communities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False)
    category_name = Column(String(100), nullable=True)
    logo_url = Column(String(500), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    deleted = Column(Boolean, nullable=False, default=False)

    community = relationship("Community", back_populates="groups")
    events = relationship("Event", back_populates="group")


class GroupMember(Base):
    __tablename__ = "group_members"

    group_id = Column(UUID(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )


class Event(Base):
    __tablename__ = "events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(
        UUID(as_uuid=True),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False)
    kind = Column(String(20), nullable=False, default="in-person")  # in-person / virtual / hybrid
    timezone = Column(String(64), nullable=False, default="UTC")
    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)

    published = Column(Boolean, nullable=False, default=False)
    canceled = Column(Boolean, nullable=False, default=False)
    deleted = Column(Boolean, nullable=False, default=False)

    logo_url = Column(String(500), nullable=True)
    meeting_join_url = Column(String(500), nullable=True)
    venue_name = Column(String(255), nullable=True)
    venue_address = Column(Text, nullable=True)
    venue_city = Column(String(100), nullable=True)
    venue_state = Column(String(100), nullable=True)
    venue_zip_code = Column(String(20), nullable=True)
    venue_country_code = Column(String(2), nullable=True)
    venue_country_name = Column(String(100), nullable=True)

    # Reminder bookkeeping (written by the reminder scheduler)
    event_reminder_enabled = Column(Boolean, nullable=False, default=True)
    event_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    event_reminder_evaluated_for_starts_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    group = relationship("Group", back_populates="events")

    __table_args__ = (Index("idx_events_starts_at", "starts_at"),)


class EventAttendee(Base):
    __tablename__ = "event_attendees"

    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    checked_in = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )


class EventSpeaker(Base):
    __tablename__ = "event_speakers"

    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    featured = Column(Boolean, nullable=False, default=False)
