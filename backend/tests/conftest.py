"""Shared test fixtures."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from eventnotify.auth.models import User
from eventnotify.community.models import Community, Event, EventAttendee, EventSpeaker, Group, GroupMember
from eventnotify.database.base import Base
from eventnotify.integrations.cache import NullCacheService
from eventnotify.notifications.models import (
    Attachment,
    CustomNotification,
    Notification,
    NotificationAttachment,
    TemplateData,
)

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [
    User,
    Community,
    Group,
    GroupMember,
    Event,
    EventAttendee,
    EventSpeaker,
    TemplateData,
    Attachment,
    Notification,
    NotificationAttachment,
    CustomNotification,
]


@pytest.fixture
def session_factory():
    """In-memory SQLite database shared by every session of a test.

    Note: SQLite ignores FOR UPDATE SKIP LOCKED and advisory locks, so these
    tests cover single-caller behavior only.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db_session):
    """Factory for users; verified by default."""

    def _make(username: str, email_verified: bool = True) -> User:
        user = User(
            id=uuid.uuid4(),
            email=f"{username}@example.com",
            username=username,
            email_verified=email_verified,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def verified_user(make_user):
    return make_user("verified")


@pytest.fixture
def unverified_user(make_user):
    return make_user("unverified", email_verified=False)


@pytest.fixture
def community(db_session):
    c = Community(
        id=uuid.uuid4(),
        name="test-community",
        display_name="Test Community",
        logo_url="https://example.com/community.png",
    )
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture
def group(db_session, community):
    g = Group(
        id=uuid.uuid4(),
        community_id=community.id,
        name="Rust Meetup",
        slug="rust-meetup",
        category_name="Technology",
    )
    db_session.add(g)
    db_session.commit()
    return g


@pytest.fixture
def make_event(db_session, group):
    """Factory for published events starting ``hours`` from now."""

    def _make(slug: str, hours: float = 23, **kwargs) -> Event:
        fields = {
            "id": uuid.uuid4(),
            "group_id": group.id,
            "name": slug.replace("-", " ").title(),
            "slug": slug,
            "starts_at": datetime.now(UTC) + timedelta(hours=hours),
            "published": True,
        }
        fields.update(kwargs)
        event = Event(**fields)
        db_session.add(event)
        db_session.commit()
        return event

    return _make


@pytest.fixture
def null_cache():
    """No-op cache for testing."""
    return NullCacheService()
