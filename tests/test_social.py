from __future__ import annotations

import pytest

from athlete_hub.errors import BadRequestError, ConflictError, NotFoundError
from athlete_hub.services import notifications, social


def test_follow_updates_both_counters_and_notifies(make_user):
    alice = make_user("alice", firstName="Alice")
    bob = make_user("bob")

    result = social.follow_user(alice.id, bob.id)
    assert result == {"following": True, "counters": {"followers": 1, "following": 0, "posts": 0}}
    assert social.is_following(alice.id, bob.id)
    assert not social.is_following(bob.id, alice.id)

    alice_card = social.get_user_profile("alice")
    assert alice_card["counters"]["following"] == 1

    inbox = notifications.list_notifications(bob.id)
    assert len(inbox) == 1
    assert inbox[0].type == "FOLLOW"
    assert inbox[0].actor_id == alice.id
    assert inbox[0].data["followerId"] == alice.id


def test_follow_errors(make_user):
    alice = make_user("alice")
    bob = make_user("bob")

    with pytest.raises(BadRequestError):
        social.follow_user(alice.id, alice.id)
    with pytest.raises(NotFoundError):
        social.follow_user(alice.id, 999)

    social.follow_user(alice.id, bob.id)
    with pytest.raises(ConflictError):
        social.follow_user(alice.id, bob.id)


def test_unfollow_restores_counters(make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    social.follow_user(alice.id, bob.id)

    result = social.unfollow_user(alice.id, bob.id)
    assert result["following"] is False
    assert result["counters"]["followers"] == 0
    assert social.get_user_profile("alice")["counters"]["following"] == 0

    with pytest.raises(ConflictError):
        social.unfollow_user(alice.id, bob.id)


def test_followers_and_following_lists(make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    carol = make_user("carol")
    social.follow_user(alice.id, carol.id)
    social.follow_user(bob.id, carol.id)

    followers = social.list_followers(carol.id)
    assert {user["username"] for user in followers} == {"alice", "bob"}
    assert len(social.list_followers(carol.id, limit=1)) == 1
    assert [user["username"] for user in social.list_following(alice.id)] == ["carol"]
    with pytest.raises(NotFoundError):
        social.list_followers(999)


def test_search_matches_username_and_names(make_user):
    alice = make_user("alice_runs", firstName="Alice", lastName="Novak")
    make_user("bob_swims", firstName="Robert", lastName="Novakova")
    make_user("carol", firstName="Carol", lastName="King")
    make_user(profile=False)

    assert [user["username"] for user in social.search_users("NOVAK")] == ["alice_runs", "bob_swims"]
    assert [user["username"] for user in social.search_users("swim")] == ["bob_swims"]
    assert [user["username"] for user in social.search_users("novak", exclude_user_id=alice.id)] == ["bob_swims"]
    assert len(social.search_users("novak", limit=1)) == 1


def test_search_escapes_wildcards(make_user):
    make_user("alice_runs")
    make_user("alicexruns")
    assert [user["username"] for user in social.search_users("e_r")] == ["alice_runs"]
    assert social.search_users("%%") == []


def test_search_requires_minimum_length():
    with pytest.raises(BadRequestError):
        social.search_users(" a ")


def test_public_profile_flags(make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    social.follow_user(alice.id, bob.id)

    seen_by_alice = social.get_user_profile("BOB", viewer_id=alice.id)
    assert seen_by_alice["isFollowing"] is True
    assert seen_by_alice["isOwnProfile"] is False
    assert "email" not in seen_by_alice["user"]

    own = social.get_user_profile("bob", viewer_id=bob.id)
    assert own["isOwnProfile"] is True
    assert own["isFollowing"] is False

    with pytest.raises(NotFoundError):
        social.get_user_profile("nobody")
