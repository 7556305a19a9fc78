from __future__ import annotations

import pytest

from athlete_hub.errors import BadRequestError, NotFoundError
from athlete_hub.services import notifications


def test_create_and_list_newest_first(make_user):
    user = make_user("alice")
    first = notifications.create_notification(user.id, "FOLLOW", "New follower", "bob started following you")
    second = notifications.create_notification(
        user.id, "STAT_UPDATE_REQUEST", "New request", "carol asked for an evaluation", data={"requestId": 7}
    )

    items = notifications.list_notifications(user.id)
    assert [item.id for item in items] == [second.id, first.id]
    assert items[0].data == {"requestId": 7}
    assert items[0].is_read is False
    assert notifications.unread_count(user.id) == 2


def test_unknown_type_and_user_are_rejected(make_user):
    user = make_user("alice")
    with pytest.raises(BadRequestError):
        notifications.create_notification(user.id, "LIKE", "Like", "Someone liked your post")
    with pytest.raises(NotFoundError):
        notifications.create_notification(999, "FOLLOW", "New follower", "hello")


def test_mark_read_and_filter(make_user):
    user = make_user("alice")
    first = notifications.create_notification(user.id, "FOLLOW", "New follower", "one")
    notifications.create_notification(user.id, "FOLLOW", "New follower", "two")

    updated = notifications.mark_read(user.id, first.id)
    assert updated.is_read is True
    assert [item.message for item in notifications.list_notifications(user.id, unread_only=True)] == ["two"]
    assert notifications.mark_all_read(user.id) == 1
    assert notifications.unread_count(user.id) == 0


def test_users_only_touch_their_own_notifications(make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    note = notifications.create_notification(alice.id, "FOLLOW", "New follower", "bob started following you")

    with pytest.raises(NotFoundError):
        notifications.mark_read(bob.id, note.id)
    with pytest.raises(NotFoundError):
        notifications.delete_notification(bob.id, note.id)

    notifications.delete_notification(alice.id, note.id)
    assert notifications.list_notifications(alice.id) == []


def test_limit(make_user):
    user = make_user("alice")
    for index in range(3):
        notifications.create_notification(user.id, "FOLLOW", "New follower", f"follower {index}")
    assert len(notifications.list_notifications(user.id, limit=2)) == 2
