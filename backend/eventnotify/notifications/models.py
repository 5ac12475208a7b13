"""Notification queue models: notifications, template data and attachments."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base, JSONType


class NotificationKind(enum.StrEnum):
    """Closed set of notification kinds the delivery worker knows how to send."""

    CFS_SUBMISSION_UPDATED = "cfs-submission-updated"
    COMMUNITY_TEAM_INVITATION = "community-team-invitation"
    EMAIL_VERIFICATION = "email-verification"
    EVENT_CANCELED = "event-canceled"
    EVENT_CUSTOM = "event-custom"
    EVENT_PUBLISHED = "event-published"
    EVENT_REMINDER = "event-reminder"
    EVENT_RESCHEDULED = "event-rescheduled"
    EVENT_WELCOME = "event-welcome"
    GROUP_CUSTOM = "group-custom"
    GROUP_TEAM_INVITATION = "group-team-invitation"
    GROUP_WELCOME = "group-welcome"
    SESSION_PROPOSAL_CO_SPEAKER_INVITATION = "session-proposal-co-speaker-invitation"
    SPEAKER_WELCOME = "speaker-welcome"


class TemplateData(Base):
    """Content-addressed template payload shared by every notification of a batch."""

    __tablename__ = "notification_template_data"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    data = Column(JSONType, nullable=False)
    hash = Column(String(64), nullable=False, unique=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )


class Attachment(Base):
    """Content-addressed file. The hash covers the bytes only."""

    __tablename__ = "attachments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    content_type = Column(String(255), nullable=False)
    file_name = Column(String(255), nullable=False)
    data = Column(LargeBinary, nullable=False)
    hash = Column(String(64), nullable=False, unique=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )


class NotificationAttachment(Base):
    __tablename__ = "notification_attachments"

    notification_id = Column(
        UUID(as_uuid=True),
        ForeignKey("notifications.id", ondelete="CASCADE"),
        primary_key=True,
    )
    attachment_id = Column(
        UUID(as_uuid=True),
        ForeignKey("attachments.id", ondelete="CASCADE"),
        primary_key=True,
    )


class Notification(Base):
    """One pending or delivered message for a single recipient."""

    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind = Column(String(50), nullable=False)
    template_data_id = Column(
        UUID(as_uuid=True),
        ForeignKey("notification_template_data.id", ondelete="SET NULL"),
        nullable=True,
    )
    processed = Column(Boolean, nullable=False, default=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    template_data = relationship("TemplateData")
    attachments = relationship("Attachment", secondary="notification_attachments", viewonly=True)

    __table_args__ = (
        Index("idx_notifications_pending", "processed", "created_at"),
        CheckConstraint(
            "kind IN (" + ", ".join(f"'{k.value}'" for k in NotificationKind) + ")",
            name="ck_notifications_kind",
        ),
    )


class CustomNotification(Base):
    """Record of a free-form message an organizer sent to a group or event audience."""

    __tablename__ = "custom_notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=True)
    group_id = Column(UUID(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), nullable=True)
    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
