"""Add notification queue: template data, attachments, notifications, custom notifications.

Revision ID: 002
Revises: 001
Create Date: 2026-10-12
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

NOTIFICATION_KINDS = (
    "cfs-submission-updated",
    "community-team-invitation",
    "email-verification",
    "event-canceled",
    "event-custom",
    "event-published",
    "event-reminder",
    "event-rescheduled",
    "event-welcome",
    "group-custom",
    "group-team-invitation",
    "group-welcome",
    "session-proposal-co-speaker-invitation",
    "speaker-welcome",
)


def upgrade() -> None:
    op.create_table(
        "notification_template_data",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("data", JSONB(), nullable=False),
        sa.Column("hash", sa.String(64), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "attachments",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("content_type", sa.String(255), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("data", sa.LargeBinary(), nullable=False),
        sa.Column("hash", sa.String(64), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("btrim(content_type) <> ''", name="ck_attachments_content_type"),
        sa.CheckConstraint("btrim(file_name) <> ''", name="ck_attachments_file_name"),
    )

    kinds = ", ".join(f"'{k}'" for k in NOTIFICATION_KINDS)
    op.create_table(
        "notifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column(
            "template_data_id",
            UUID(as_uuid=True),
            sa.ForeignKey("notification_template_data.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(f"kind IN ({kinds})", name="ck_notifications_kind"),
        sa.CheckConstraint("error IS NULL OR btrim(error) <> ''", name="ck_notifications_error"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("idx_notifications_pending", "notifications", ["processed", "created_at"])

    op.create_table(
        "notification_attachments",
        sa.Column(
            "notification_id",
            UUID(as_uuid=True),
            sa.ForeignKey("notifications.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "attachment_id",
            UUID(as_uuid=True),
            sa.ForeignKey("attachments.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "custom_notifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("created_by", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("event_id", UUID(as_uuid=True), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=True),
        sa.Column("group_id", UUID(as_uuid=True), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=True),
        sa.Column("subject", sa.String(500), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("custom_notifications")
    op.drop_table("notification_attachments")
    op.drop_index("idx_notifications_pending", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("attachments")
    op.drop_table("notification_template_data")
