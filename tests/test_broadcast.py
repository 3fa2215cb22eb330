from classroom import broadcast
from classroom.broadcast import Target
from classroom.constants import admin_room, class_room, group_room
from classroom.membership import DeleteClassOutcome, GroupInfoOutcome, LogoutOutcome
from classroom.schemas import ClassClosed, GroupEvent, LogoutResponse, MemberInfo

H = "c0ffee00"


def shape(deliveries):
    return [(d.target, d.room, d.event, d.exclude_sender) for d in deliveries]


def leave_event(**overrides) -> GroupEvent:
    fields = dict(username="alice", class_id=H, group_id=2, status=False, group_size=1)
    fields.update(overrides)
    return GroupEvent(**fields)


def test_group_join_goes_socket_class_admin():
    event = leave_event(status=True)
    assert shape(broadcast.group_join(event)) == [
        (Target.SOCKET, None, "group_join_response", False),
        (Target.ROOM, class_room(H), "group_numbers_response", False),
        (Target.ROOM, admin_room(H), "group_info_response", False),
    ]


def test_lobby_only_gets_numbers():
    deliveries = broadcast.group_leave(leave_event())
    numbers = deliveries[2].payload.model_dump()
    assert numbers == {"class_id": H, "group_id": 2, "group_size": 1, "status": False}


def test_group_leave_order():
    assert [d.room for d in broadcast.group_leave(leave_event())] == [
        None,
        group_room(H, 2),
        class_room(H),
        admin_room(H),
    ]


def test_logout_from_group_emits_leave_first():
    outcome = LogoutOutcome(
        logout=LogoutResponse(username="alice", class_id=H, disconnect=True),
        group_left=leave_event(disconnect=True),
    )
    events = [d.event for d in broadcast.logout(outcome)]
    assert events == [
        "group_leave_response",
        "group_info_response",
        "group_numbers_response",
        "group_info_response",
        "logout_response",
    ]


def test_group_info_closed_status_skips_requester():
    member = MemberInfo(member_name="alice", group_id=2)
    requester = GroupEvent(username="alice", class_id=H, group_id=2, status=False, other_members=[member])
    outcome = GroupInfoOutcome(full=requester, requester_only=requester)
    assert shape(broadcast.group_info(outcome)) == [
        (Target.ROOM, group_room(H, 2), "group_info_response", True),
    ]


def test_delete_class_fan_out_order():
    closed = ClassClosed(class_id=H, disconnect=True)
    deliveries = broadcast.delete_class(DeleteClassOutcome(closed=closed, group_ids=[1, 2]))
    assert shape(deliveries) == [
        (Target.ROOM, group_room(H, 1), "group_leave_response", False),
        (Target.ROOM, group_room(H, 1), "logout_response", False),
        (Target.ROOM, group_room(H, 2), "group_leave_response", False),
        (Target.ROOM, group_room(H, 2), "logout_response", False),
        (Target.ROOM, class_room(H), "logout_response", False),
        (Target.EVERYONE, None, "delete-student-class-response", False),
        (Target.ROOM, admin_room(H), "leave-class-response", False),
        (Target.ROOM, admin_room(H), "delete-class-response", False),
    ]


def test_server_error_only_to_socket():
    (delivery,) = broadcast.server_error("Class ID x is invalid.")
    assert delivery.target is Target.SOCKET
    assert delivery.payload.model_dump() == {"message": "Class ID x is invalid."}
