import asyncio
import math

import pytest

from event_keys import ROLE_ADMIN, ROLE_VIEWER


async def join_admin(gateway, connect, room, connection_id="admin-conn", name="Host"):
    connection = connect(connection_id)
    await gateway.join(connection_id, room.id, room.admin_token, name)
    return connection


async def join_viewer(gateway, connect, room, connection_id="viewer-conn", name="Viewer"):
    connection = connect(connection_id)
    await gateway.join(connection_id, room.id, None, name)
    return connection


async def test_join_unknown_room_reports_error(gateway, connect):
    connection = connect("c1")
    assert await gateway.join("c1", "nope1234", None, "Ann") is None
    assert connection.sent == [{"type": "error-message", "message": "Room not found"}]


async def test_join_with_token_grants_admin(gateway, connect, room):
    connection = await join_admin(gateway, connect, room)

    assert room.admin_connection_id == "admin-conn"
    joined = connection.of_type("room-joined")[0]
    assert joined["role"] == ROLE_ADMIN
    assert joined["room"] == {
        "id": room.id,
        "name": "Movie night",
        "video": room.video.to_dict(),
        "isPlaying": False,
        "currentTime": 0.0,
    }
    assert joined["chat"] == []


@pytest.mark.parametrize("token", [None, "", "wrong-token"])
async def test_join_without_valid_token_is_viewer(gateway, connect, room, token):
    connection = connect("c1")
    snapshot = await gateway.join("c1", room.id, token, "Ann")

    assert snapshot["role"] == ROLE_VIEWER
    assert room.admin_connection_id is None
    assert room.admin_token not in str(connection.sent)


async def test_join_notifies_others_but_not_self(gateway, connect, room, clock):
    admin = await join_admin(gateway, connect, room)
    viewer = await join_viewer(gateway, connect, room, name="  Bob  ")

    assert admin.of_type("system-message") == [
        {"type": "system-message", "message": "Bob joined", "ts": int(clock() * 1000)}
    ]
    assert viewer.of_type("system-message") == []


async def test_snapshot_replays_last_fifty_messages(gateway, connect, room):
    for i in range(120):
        room.chat.append("bot", f"m{i}", ts=i)

    viewer = await join_viewer(gateway, connect, room)
    chat = viewer.of_type("room-joined")[0]["chat"]
    assert len(chat) == 50
    assert chat[0]["text"] == "m70"
    assert chat[-1] == {"user": "bot", "text": "m119", "ts": 119}


async def test_play_then_pause_scenario(gateway, connect, room, clock):
    await join_admin(gateway, connect, room)
    viewer = await join_viewer(gateway, connect, room)
    start = clock()

    await gateway.admin_action("admin-conn", room.id, "play", 10)
    clock.advance(5)
    state = await gateway.request_sync("viewer-conn", room.id)
    assert state["isPlaying"] is True
    assert state["currentTime"] == pytest.approx(15)

    await gateway.admin_action("admin-conn", room.id, "pause", 16)
    clock.advance(25)
    state = await gateway.request_sync("viewer-conn", room.id)
    assert state["isPlaying"] is False
    assert state["currentTime"] == 16

    events = viewer.of_type("video-event")
    assert [(e["action"], e["time"]) for e in events] == [("play", 10), ("pause", 16)]
    assert events[0]["at"] == int(start * 1000)
    assert events[1]["at"] == int((start + 5) * 1000)
    assert len(viewer.of_type("sync-state")) == 2


async def test_admin_receives_its_own_video_event(gateway, connect, room):
    admin = await join_admin(gateway, connect, room)
    await gateway.admin_action("admin-conn", room.id, "play", 3)
    assert admin.of_type("video-event")[0]["action"] == "play"


async def test_seek_while_playing_keeps_playing(gateway, connect, room, clock):
    await join_admin(gateway, connect, room)
    await gateway.admin_action("admin-conn", room.id, "play", 0)
    clock.advance(10)

    await gateway.admin_action("admin-conn", room.id, "seek", 120)
    assert room.is_playing is True
    clock.advance(2)
    state = await gateway.request_sync("admin-conn", room.id)
    assert state["currentTime"] == pytest.approx(122)


async def test_seek_while_paused_stays_paused(gateway, connect, room):
    await join_admin(gateway, connect, room)
    await gateway.admin_action("admin-conn", room.id, "seek", 45)
    assert room.is_playing is False
    assert room.last_known_time == 45


@pytest.mark.parametrize("requested", [None, "30", math.nan, math.inf, True, 10**400])
async def test_unusable_time_falls_back_to_current_position(gateway, connect, room, clock, requested):
    await join_admin(gateway, connect, room)
    await gateway.admin_action("admin-conn", room.id, "play", 8)
    clock.advance(4)

    event = await gateway.admin_action("admin-conn", room.id, "pause", requested)
    assert event["time"] == pytest.approx(12)
    assert room.last_known_time == pytest.approx(12)


async def test_negative_time_is_clamped(gateway, connect, room):
    await join_admin(gateway, connect, room)
    event = await gateway.admin_action("admin-conn", room.id, "seek", -20)
    assert event["time"] == 0
    assert room.last_known_time == 0


async def test_viewer_actions_are_dropped(gateway, connect, room, clock):
    admin = await join_admin(gateway, connect, room)
    viewer = await join_viewer(gateway, connect, room)
    before = (room.is_playing, room.last_known_time, room.last_update_at)

    clock.advance(3)
    assert await gateway.admin_action("viewer-conn", room.id, "play", 99) is None

    assert (room.is_playing, room.last_known_time, room.last_update_at) == before
    assert admin.of_type("video-event") == []
    assert viewer.of_type("video-event") == []
    assert viewer.of_type("error-message") == []


async def test_unknown_action_and_room_are_dropped(gateway, connect, room):
    admin = await join_admin(gateway, connect, room)
    assert await gateway.admin_action("admin-conn", room.id, "rewind", 5) is None
    assert await gateway.admin_action("admin-conn", "missing0", "play", 5) is None
    assert await gateway.request_sync("admin-conn", "missing0") is None
    assert admin.of_type("video-event") == []
    assert admin.of_type("sync-state") == []


async def test_second_token_holder_takes_over_authority(gateway, connect, room):
    first = await join_admin(gateway, connect, room, connection_id="first")
    second = await join_admin(gateway, connect, room, connection_id="second")

    assert room.admin_connection_id == "second"
    assert gateway.sessions["first"].role == ROLE_VIEWER

    assert await gateway.admin_action("first", room.id, "play", 1) is None
    assert room.is_playing is False
    assert await gateway.admin_action("second", room.id, "play", 1) is not None
    assert len(first.of_type("video-event")) == 1
    assert len(second.of_type("video-event")) == 1


async def test_disconnect_releases_authority(gateway, connect, room):
    await join_admin(gateway, connect, room)
    viewer = await join_viewer(gateway, connect, room)

    gateway.disconnect("admin-conn")
    assert room.admin_connection_id is None
    assert "admin-conn" not in gateway.sessions
    assert gateway.broadcaster.members(room.id) == ["viewer-conn"]

    assert await gateway.admin_action("admin-conn", room.id, "play", 1) is None
    assert viewer.of_type("video-event") == []


async def test_viewer_disconnect_keeps_admin(gateway, connect, room):
    await join_admin(gateway, connect, room)
    await join_viewer(gateway, connect, room)

    gateway.disconnect("viewer-conn")
    assert room.admin_connection_id == "admin-conn"


async def test_rejoining_token_after_disconnect_restores_control(gateway, connect, room):
    await join_admin(gateway, connect, room, connection_id="old")
    gateway.disconnect("old")
    await join_admin(gateway, connect, room, connection_id="new")

    assert room.admin_connection_id == "new"
    assert await gateway.admin_action("new", room.id, "play", 0) is not None


async def test_moving_to_another_room_releases_authority(gateway, connect, registry, room):
    other = registry.create("Other", room.video)
    connection = await join_admin(gateway, connect, room)

    await gateway.join("admin-conn", other.id, None, "Host")
    assert room.admin_connection_id is None
    assert gateway.broadcaster.members(room.id) == []
    assert gateway.broadcaster.members(other.id) == ["admin-conn"]
    assert connection.of_type("room-joined")[-1]["room"]["id"] == other.id


async def test_chat_is_broadcast_to_everyone_including_sender(gateway, connect, room, clock):
    admin = await join_admin(gateway, connect, room)
    viewer = await join_viewer(gateway, connect, room)

    payload = await gateway.chat("viewer-conn", room.id, " Bob ", "  hi all  ")
    expected = {"type": "chat-message", "user": "Bob", "text": "hi all", "ts": int(clock() * 1000)}

    assert payload == {"user": "Bob", "text": "hi all", "ts": int(clock() * 1000)}
    assert admin.of_type("chat-message") == [expected]
    assert viewer.of_type("chat-message") == [expected]
    assert len(room.chat) == 1


async def test_blank_chat_is_ignored(gateway, connect, room):
    viewer = await join_viewer(gateway, connect, room)
    assert await gateway.chat("viewer-conn", room.id, "Bob", "    ") is None
    assert viewer.of_type("chat-message") == []
    assert len(room.chat) == 0


async def test_chat_from_outside_the_room_is_delivered(gateway, connect, registry, room):
    other = registry.create("Other", room.video)
    member = await join_viewer(gateway, connect, room)
    outsider = connect("outsider")
    await gateway.join("outsider", other.id, None, "Eve")

    payload = await gateway.chat("outsider", room.id, "Eve", "hi")
    assert payload["text"] == "hi"
    assert member.of_type("chat-message") == [{"type": "chat-message", **payload}]
    assert outsider.of_type("chat-message") == []
    assert len(room.chat) == 1


async def test_chat_for_unknown_room_is_ignored(gateway, connect, room):
    member = await join_viewer(gateway, connect, room)
    assert await gateway.chat("viewer-conn", "missing0", "Bob", "hello") is None
    assert member.of_type("chat-message") == []


async def test_failed_delivery_keeps_session_consistent(gateway, connect, room):
    admin = await join_admin(gateway, connect, room)
    viewer = await join_viewer(gateway, connect, room)
    viewer.closed = True

    await gateway.admin_action("admin-conn", room.id, "play", 0)
    assert admin.of_type("video-event")
    assert gateway.broadcaster.members(room.id) == ["admin-conn", "viewer-conn"]
    assert gateway.sessions["viewer-conn"].room_id == room.id

    gateway.disconnect("viewer-conn")
    assert gateway.broadcaster.members(room.id) == ["admin-conn"]


async def test_concurrent_actions_are_delivered_in_applied_order(gateway, connect, room):
    await join_admin(gateway, connect, room)
    viewer = await join_viewer(gateway, connect, room)

    await asyncio.gather(
        gateway.admin_action("admin-conn", room.id, "play", 1),
        gateway.admin_action("admin-conn", room.id, "seek", 2),
        gateway.admin_action("admin-conn", room.id, "pause", 3),
    )

    events = viewer.of_type("video-event")
    assert [e["action"] for e in events] == ["play", "seek", "pause"]
    assert room.is_playing is False
    assert room.last_known_time == 3


async def test_describe_hides_admin_token(gateway, connect, room):
    await join_admin(gateway, connect, room)
    await join_viewer(gateway, connect, room)

    details = gateway.describe(room)
    assert details["memberCount"] == 2
    assert details["hasAdmin"] is True
    assert room.admin_token not in str(details)
