import pytest

from classroom.errors import NameTaken, NotMember, UnknownClass, UnknownGroup, UnknownUser
from classroom.registry import RoomRegistry


@pytest.fixture
def physics():
    registry = RoomRegistry()
    return registry.add_class("c0ffee00", 1, "Physics", [1, 2])


def test_lookup_of_missing_class_fails():
    registry = RoomRegistry()
    with pytest.raises(UnknownClass):
        registry.get_class("nope")
    with pytest.raises(UnknownClass):
        registry.remove_class("nope")


def test_usernames_are_unique_per_class(physics):
    physics.add_user("alice")
    with pytest.raises(NameTaken):
        physics.add_user("alice")


def test_new_users_start_at_origin(physics):
    state = physics.add_user("alice")
    assert (state.x, state.y, state.info) == (0, 0, {})


def test_remove_unknown_user_fails(physics):
    with pytest.raises(UnknownUser):
        physics.remove_user("ghost")


def test_members_keep_join_order(physics):
    for name in ("carol", "alice", "bob"):
        physics.add_user(name)
        physics.add_member(name, 2)
    assert physics.get_group(2).members == ["carol", "alice", "bob"]
    assert [m.member_name for m in physics.members_info(2)] == ["carol", "alice", "bob"]


def test_adding_member_resets_state(physics):
    state = physics.add_user("alice")
    state.x, state.y, state.info = 5, 6, {"k": 1}
    physics.add_member("alice", 1)
    assert (state.x, state.y, state.info) == (0, 0, {})


def test_remove_member_requires_membership(physics):
    physics.add_user("alice")
    with pytest.raises(NotMember):
        physics.remove_member("alice", 1)
    with pytest.raises(UnknownGroup):
        physics.remove_member("alice", 9)


def test_group_summaries_count_members(physics):
    physics.add_user("alice")
    physics.add_member("alice", 2)
    physics.add_group(3)
    summaries = physics.group_summaries()
    assert [(s.grp_name, s.num) for s in summaries] == [(1, 0), (2, 1), (3, 0)]


def test_members_info_skips_users_already_gone(physics):
    physics.add_user("alice")
    physics.add_member("alice", 1)
    del physics.users["alice"]
    assert physics.members_info(1) == []
