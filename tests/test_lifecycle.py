import asyncio

from classroom.hub import ConnectionState

from .conftest import SECRET


async def student(lifecycle, connect, class_id, name, group_id=None, lobby=False):
    conn, socket = connect()
    await lifecycle.handle(conn, "login", [name, class_id])
    if lobby:
        await lifecycle.handle(conn, "groups_get", [name, class_id])
    if group_id is not None:
        await lifecycle.handle(conn, "group_join", [name, class_id, group_id])
    socket.clear()
    return conn, socket


async def admin(lifecycle, connect, class_id):
    conn, socket = connect()
    await lifecycle.handle(conn, "join-class", [class_id, SECRET])
    socket.clear()
    return conn, socket


async def test_concurrent_logins_with_same_name(lifecycle, connect, class_id):
    (c1, s1), (c2, s2) = connect(), connect()
    await asyncio.gather(
        lifecycle.handle(c1, "login", ["alice", class_id]),
        lifecycle.handle(c2, "login", ["alice", class_id]),
    )
    events = s1.events() + s2.events()
    assert sorted(events) == ["login_response", "server_error"]
    assert [c.state for c in (c1, c2)].count(ConnectionState.IN_CLASS) == 1


async def test_usernames_are_sanitized(lifecycle, connect, class_id):
    conn, socket = connect()
    await lifecycle.handle(conn, "login", ["<b>bob</b>", class_id])
    assert socket.of("login_response") == [{"username": "&lt;b&gt;bob&lt;/b&gt;", "class_id": class_id}]


async def test_join_group_notifies_lobby_and_admin(lifecycle, connect, class_id):
    _, watcher = await student(lifecycle, connect, class_id, "watcher", lobby=True)
    _, admin_socket = await admin(lifecycle, connect, class_id)
    conn, socket = await student(lifecycle, connect, class_id, "alice")

    await lifecycle.handle(conn, "group_join", ["alice", class_id, 1])

    assert socket.events() == ["group_join_response"]
    assert watcher.of("group_numbers_response") == [
        {"class_id": class_id, "group_id": 1, "group_size": 1, "status": True}
    ]
    assert admin_socket.events() == ["group_info_response"]


async def test_coordinates_reach_group_and_admin(lifecycle, connect, class_id):
    alice, alice_socket = await student(lifecycle, connect, class_id, "alice", 1)
    _, bob_socket = await student(lifecycle, connect, class_id, "bob", 1)
    _, carol_socket = await student(lifecycle, connect, class_id, "carol", 2)
    _, admin_socket = await admin(lifecycle, connect, class_id)

    await lifecycle.handle(alice, "coordinate_change", ["alice", class_id, 1, 3, -2, None])
    await lifecycle.handle(alice, "coordinate_change", ["alice", class_id, 1, 1, 1, {"hp": 2}])

    (first, second) = bob_socket.of("coordinate_change_response")
    assert (first["x"], first["y"], first["info"]) == (3, -2, {})
    assert (second["x"], second["y"], second["info"]) == (4, -1, {"hp": 2})
    assert len(alice_socket.of("coordinate_change_response")) == 2
    assert len(admin_socket.of("coordinate_change_response")) == 2
    assert carol_socket.messages == []


async def test_errors_only_reach_the_sender(lifecycle, connect, class_id):
    alice, alice_socket = await student(lifecycle, connect, class_id, "alice", 1)
    _, bob_socket = await student(lifecycle, connect, class_id, "bob", 1)

    await lifecycle.handle(alice, "coordinate_change", ["alice", class_id, 1, "far", 0, None])

    assert alice_socket.events() == ["server_error"]
    assert bob_socket.messages == []


async def test_unknown_event(lifecycle, connect):
    conn, socket = connect()
    await lifecycle.handle(conn, "teleport", [])
    assert socket.of("server_error") == [{"message": "Unknown event 'teleport'."}]


async def test_wrong_secret_is_silent(lifecycle, connect, class_id, store):
    conn, socket = connect()
    await lifecycle.handle(conn, "add-group", [class_id, "guess"])
    await lifecycle.handle(conn, "delete-class", [class_id, "guess", True])
    assert socket.messages == []
    assert len(store.classes) == 1


async def test_store_failure_becomes_server_error(lifecycle, connect, class_id, store):
    conn, socket = await admin(lifecycle, connect, class_id)
    store.fail.add("create_group")
    await lifecycle.handle(conn, "add-group", [class_id, SECRET])
    assert socket.of("server_error") == [{"message": "create_group failed"}]


async def test_disconnect_from_group_cascades_once(lifecycle, connect, class_id, registry):
    alice, alice_socket = await student(lifecycle, connect, class_id, "alice", 1)
    _, bob_socket = await student(lifecycle, connect, class_id, "bob", 1, lobby=True)
    _, admin_socket = await admin(lifecycle, connect, class_id)

    await lifecycle.teardown(alice)
    await lifecycle.teardown(alice)

    assert alice_socket.events() == ["group_leave_response", "logout_response"]
    (info,) = bob_socket.of("group_info_response")
    assert info["disconnect"] is True and info["group_size"] == 1
    assert [m["member_name"] for m in info["other_members"]] == ["bob"]
    assert len(bob_socket.of("group_numbers_response")) == 1
    assert admin_socket.events() == ["group_info_response"]
    assert "alice" not in registry.get_class(class_id).users
    assert alice.closed


async def test_teardown_touches_admin_session(lifecycle, connect, store):
    conn, socket = connect()
    await lifecycle.handle(conn, "create-session", [4, "pw"])
    await lifecycle.teardown(conn)
    assert store.touched == [4]
    assert socket.messages == []


async def test_events_after_close_are_dropped(lifecycle, connect, class_id, registry, hub):
    conn, socket = connect()
    await lifecycle.teardown(conn)
    await lifecycle.handle(conn, "login", ["alice", class_id])
    assert socket.messages == []
    assert "alice" not in registry.get_class(class_id).users
    assert conn.sid not in hub.connections


async def test_delete_group_sends_one_leave_per_member(lifecycle, connect, class_id):
    members = [await student(lifecycle, connect, class_id, name, 2) for name in ("a", "b", "c")]
    conn, admin_socket = await admin(lifecycle, connect, class_id)

    await lifecycle.handle(conn, "delete-group", [class_id, 2, SECRET])

    for _, socket in members:
        (leave,) = socket.of("group_leave_response")
        assert leave["username"] == "Admin" and leave["group_size"] is None
    (changed,) = admin_socket.of("delete-group-response")
    assert [g["grp_name"] for g in changed["groups"]] == [1, 3]


async def test_deleted_group_members_are_unbound_from_reused_id(lifecycle, connect, class_id):
    alice, alice_socket = await student(lifecycle, connect, class_id, "alice", 3)
    conn, _ = await admin(lifecycle, connect, class_id)

    await lifecycle.handle(conn, "delete-group", [class_id, 3, SECRET])
    assert alice.state is ConnectionState.IN_CLASS and not alice.rooms

    await lifecycle.handle(conn, "add-group", [class_id, SECRET])
    _, bob_socket = await student(lifecycle, connect, class_id, "bob", 3)
    alice_socket.clear()

    await lifecycle.handle(alice, "coordinate_change", ["alice", class_id, 3, 5, 5, None])

    assert alice_socket.events() == ["server_error"]
    assert bob_socket.messages == []

    await lifecycle.handle(alice, "group_join", ["alice", class_id, 1])
    assert alice_socket.events()[-1] == "group_join_response"
    assert alice.state is ConnectionState.IN_GROUP


async def test_delete_class_unbinds_everyone(lifecycle, connect, class_id, registry):
    alice, alice_socket = await student(lifecycle, connect, class_id, "alice", 1)
    _, bystander = connect()
    conn, admin_socket = await admin(lifecycle, connect, class_id)

    await lifecycle.handle(conn, "delete-class", [class_id, SECRET, True])

    assert alice_socket.events() == [
        "group_leave_response",
        "logout_response",
        "delete-student-class-response",
    ]
    assert bystander.events() == ["delete-student-class-response"]
    assert admin_socket.events() == [
        "delete-student-class-response",
        "leave-class-response",
        "delete-class-response",
    ]
    assert alice.state is ConnectionState.ANONYMOUS and not alice.rooms
    assert class_id not in registry

    alice_socket.clear()
    await lifecycle.teardown(alice)
    assert alice_socket.messages == []


async def test_settings_fan_out_to_groups(lifecycle, connect, class_id):
    _, in_group = await student(lifecycle, connect, class_id, "alice", 3)
    _, lobby_only = await student(lifecycle, connect, class_id, "bob", lobby=True)
    conn, _ = await admin(lifecycle, connect, class_id)

    await lifecycle.handle(conn, "save-settings", [class_id, {"grid": True}, SECRET])

    assert in_group.of("get-settings-response") == [{"class_id": class_id, "settings": {"grid": True}}]
    assert lobby_only.messages == []
