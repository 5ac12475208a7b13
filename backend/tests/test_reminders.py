"""Tests for the event reminder scheduler."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from eventnotify.community.models import Community, EventAttendee, EventSpeaker, Group
from eventnotify.notifications.models import Notification
from eventnotify.notifications.reminders import (
    REMINDER_WINDOW,
    build_event_link,
    enqueue_due_event_reminders,
    get_event_reminder_recipients,
)

BASE_URL = "https://events.example.org"


def _attend(db, event, *users):
    for user in users:
        db.add(EventAttendee(event_id=event.id, user_id=user.id))
    db.commit()


def _speak(db, event, user, featured=False):
    db.add(EventSpeaker(event_id=event.id, user_id=user.id, featured=featured))
    db.commit()


def _reminders(db):
    return db.query(Notification).filter(Notification.kind == "event-reminder").all()


class TestBuildEventLink:
    def test_builds_link(self):
        assert (
            build_event_link("https://x.org", "cncf", "rust-meetup", "october")
            == "https://x.org/cncf/group/rust-meetup/event/october"
        )

    def test_strips_trailing_slashes(self):
        assert build_event_link("https://x.org//", "c", "g", "e") == "https://x.org/c/group/g/event/e"

    def test_empty_base(self):
        assert build_event_link(None, "c", "g", "e") == "/c/group/g/event/e"


class TestRecipients:
    def test_union_of_verified_attendees_and_speakers(self, db_session, make_event, make_user):
        event = make_event("meetup")
        both, speaker, unverified = make_user("both"), make_user("speaker"), make_user("nope", email_verified=False)
        _attend(db_session, event, both, unverified)
        _speak(db_session, event, both, featured=True)
        _speak(db_session, event, speaker)

        recipients = get_event_reminder_recipients(db_session, event.id)
        assert recipients == sorted([both.id, speaker.id])

    def test_no_recipients(self, db_session, make_event):
        event = make_event("empty")
        assert get_event_reminder_recipients(db_session, event.id) == []


class TestEnqueueDueEventReminders:
    def test_due_event_recipient_scenario(self, db_session, make_event, make_user):
        due = make_event("due", hours=23)
        later = make_event("later", hours=30)
        attendee_speaker = make_user("attendee")
        other_speaker = make_user("speaker")
        unverified = make_user("unverified", email_verified=False)
        _attend(db_session, due, attendee_speaker, unverified)
        _speak(db_session, due, attendee_speaker, featured=True)
        _speak(db_session, due, other_speaker, featured=False)
        _attend(db_session, later, attendee_speaker)

        count = enqueue_due_event_reminders(db_session, BASE_URL)
        db_session.commit()

        assert count == 2
        reminders = _reminders(db_session)
        assert {n.user_id for n in reminders} == {attendee_speaker.id, other_speaker.id}

        db_session.refresh(later)
        assert later.event_reminder_evaluated_for_starts_at is None
        assert later.event_reminder_sent_at is None

    def test_sets_watermark_and_sent_at(self, db_session, make_event, verified_user):
        event = make_event("due")
        _attend(db_session, event, verified_user)

        enqueue_due_event_reminders(db_session, BASE_URL)
        db_session.commit()
        db_session.refresh(event)

        assert event.event_reminder_evaluated_for_starts_at == event.starts_at
        assert event.event_reminder_sent_at is not None

    def test_template_payload(self, db_session, make_event, verified_user, community, group):
        event = make_event("october-meetup", venue_city="Lisbon")
        _attend(db_session, event, verified_user)

        enqueue_due_event_reminders(db_session, BASE_URL + "/")
        db_session.commit()

        (reminder,) = _reminders(db_session)
        data = reminder.template_data.data
        assert data["link"] == f"{BASE_URL}/test-community/group/rust-meetup/event/october-meetup"
        assert data["event"]["name"] == "October Meetup"
        assert data["event"]["group_name"] == "Rust Meetup"
        assert data["event"]["community_display_name"] == "Test Community"
        assert data["event"]["venue_city"] == "Lisbon"
        assert data["event"]["logo_url"] == "https://example.com/community.png"
        assert isinstance(data["event"]["starts_at"], int)
        # Null fields are stripped
        assert "venue_name" not in data["event"]
        assert "meeting_join_url" not in data["event"]

    def test_second_run_is_noop(self, db_session, make_event, verified_user):
        event = make_event("due")
        _attend(db_session, event, verified_user)

        first = enqueue_due_event_reminders(db_session, BASE_URL)
        db_session.commit()
        second = enqueue_due_event_reminders(db_session, BASE_URL)
        db_session.commit()

        assert first == 1
        assert second == 0
        assert len(_reminders(db_session)) == 1

    def test_no_recipients_marks_evaluated(self, db_session, make_event):
        event = make_event("empty")

        assert enqueue_due_event_reminders(db_session, BASE_URL) == 0
        db_session.commit()
        db_session.refresh(event)

        assert event.event_reminder_evaluated_for_starts_at == event.starts_at
        assert event.event_reminder_sent_at is None

    def test_late_signup_after_evaluation_gets_no_reminder(self, db_session, make_event, make_user):
        event = make_event("empty")
        enqueue_due_event_reminders(db_session, BASE_URL)
        db_session.commit()

        _attend(db_session, event, make_user("late"))

        assert enqueue_due_event_reminders(db_session, BASE_URL) == 0
        db_session.commit()
        assert _reminders(db_session) == []

    def test_reschedule_rearms_evaluation(self, db_session, make_event, verified_user):
        event = make_event("moved", hours=23)
        _attend(db_session, event, verified_user)
        enqueue_due_event_reminders(db_session, BASE_URL)
        db_session.commit()

        event.starts_at = event.starts_at + timedelta(hours=-2)
        db_session.commit()

        assert enqueue_due_event_reminders(db_session, BASE_URL) == 1
        db_session.commit()
        assert len(_reminders(db_session)) == 2

    @pytest.mark.parametrize(
        "offset,due",
        [
            (timedelta(0), False),
            (timedelta(microseconds=1), True),
            (REMINDER_WINDOW, True),
            (REMINDER_WINDOW + timedelta(microseconds=1), False),
        ],
        ids=["starts-now", "just-after-now", "window-end", "just-past-window"],
    )
    def test_due_window_edges(self, db_session, make_event, verified_user, offset, due):
        now = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
        event = make_event("edge", starts_at=now + offset)
        _attend(db_session, event, verified_user)

        count = enqueue_due_event_reminders(db_session, BASE_URL, now=now)
        db_session.commit()
        db_session.refresh(event)

        assert count == (1 if due else 0)
        assert (event.event_reminder_evaluated_for_starts_at is not None) is due

    @pytest.mark.parametrize(
        "overrides",
        [
            {"hours": 30},
            {"hours": -1},
            {"published": False},
            {"canceled": True},
            {"deleted": True},
            {"event_reminder_enabled": False},
        ],
        ids=["not-due", "past", "unpublished", "canceled", "deleted", "disabled"],
    )
    def test_skipped_events_untouched(self, db_session, make_event, verified_user, overrides):
        event = make_event("skipped", **overrides)
        _attend(db_session, event, verified_user)

        assert enqueue_due_event_reminders(db_session, BASE_URL) == 0
        db_session.commit()
        db_session.refresh(event)

        assert event.event_reminder_evaluated_for_starts_at is None
        assert event.event_reminder_sent_at is None
        assert _reminders(db_session) == []

    def test_already_evaluated_event_skipped(self, db_session, make_event, verified_user):
        event = make_event("evaluated")
        event.event_reminder_evaluated_for_starts_at = event.starts_at
        db_session.commit()
        _attend(db_session, event, verified_user)

        assert enqueue_due_event_reminders(db_session, BASE_URL) == 0

    @pytest.mark.parametrize(
        "group_fields,community_active",
        [
            ({"active": False}, True),
            ({"deleted": True}, True),
            ({}, False),
        ],
        ids=["inactive-group", "deleted-group", "inactive-community"],
    )
    def test_inactive_or_deleted_owners_skipped(
        self, db_session, make_event, verified_user, group_fields, community_active
    ):
        community = Community(
            id=uuid.uuid4(), name="other", display_name="Other", active=community_active
        )
        db_session.add(community)
        db_session.flush()
        group = Group(id=uuid.uuid4(), community_id=community.id, name="G", slug="g", **group_fields)
        db_session.add(group)
        db_session.commit()
        event = make_event("owned", group_id=group.id)
        _attend(db_session, event, verified_user)

        assert enqueue_due_event_reminders(db_session, BASE_URL) == 0
        db_session.commit()
        db_session.refresh(event)
        assert event.event_reminder_evaluated_for_starts_at is None

    def test_counts_across_events(self, db_session, make_event, make_user):
        first, second = make_event("first", hours=2), make_event("second", hours=20)
        u1, u2, u3 = make_user("u1"), make_user("u2"), make_user("u3")
        _attend(db_session, first, u1, u2)
        _attend(db_session, second, u3)

        assert enqueue_due_event_reminders(db_session, BASE_URL) == 3
