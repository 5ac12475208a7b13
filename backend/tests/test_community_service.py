"""Tests for audience lookups."""

import uuid

from eventnotify.community.models import EventAttendee, GroupMember
from eventnotify.community.service import list_event_attendee_ids, list_group_member_ids


class TestListEventAttendeeIds:
    def test_sorted_by_user_id(self, db_session, make_event, make_user):
        event, other = make_event("meetup"), make_event("other")
        users = [make_user(f"u{i}") for i in range(3)]
        db_session.add_all([EventAttendee(event_id=event.id, user_id=u.id) for u in users])
        db_session.add(EventAttendee(event_id=other.id, user_id=make_user("elsewhere").id))
        db_session.commit()

        assert list_event_attendee_ids(db_session, event.id) == sorted(u.id for u in users)

    def test_unknown_event(self, db_session):
        assert list_event_attendee_ids(db_session, uuid.uuid4()) == []


class TestListGroupMemberIds:
    def test_sorted_by_user_id(self, db_session, group, make_user):
        users = [make_user(f"m{i}") for i in range(3)]
        db_session.add_all([GroupMember(group_id=group.id, user_id=u.id) for u in users])
        db_session.commit()

        assert list_group_member_ids(db_session, group.id) == sorted(u.id for u in users)

    def test_empty_group(self, db_session, group):
        assert list_group_member_ids(db_session, group.id) == []
