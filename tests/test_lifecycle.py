"""Tests for room create, join, leave and rejoin."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeTransport, RecordingMedia, settle

from aiosyncplayer.client import (
    JoinAccepted,
    JoinRejected,
    PlaybackState,
    RoomErrorEvent,
    RoomLifecycle,
    RoomStatusChangedEvent,
    SyncSession,
)
from aiosyncplayer.errors import ValidationError
from aiosyncplayer.models import ClientEvent, Origin, Participant, RoomStatus, Track

ROOM_ACK = {
    "room": {
        "id": "ABCD",
        "participants": ["alice", "bob"],
        "queue": [{"id": "q1"}],
        "currentTrack": {"id": "t0", "title": "Opening"},
    }
}


@pytest.fixture
def lifecycle(session: SyncSession, transport: FakeTransport) -> RoomLifecycle:
    return RoomLifecycle(session, transport)


async def test_join_success(
    lifecycle: RoomLifecycle,
    session: SyncSession,
    transport: FakeTransport,
    media: RecordingMedia,
) -> None:
    statuses: list[RoomStatus] = []
    session.add_event_listener(
        lambda event: statuses.append(event.status)
        if isinstance(event, RoomStatusChangedEvent)
        else None
    )
    transport.responses[ClientEvent.JOIN_ROOM].append(ROOM_ACK)

    result = await lifecycle.join_room(" ABCD ", "alice")

    assert isinstance(result, JoinAccepted)
    assert transport.calls == [(ClientEvent.JOIN_ROOM, {"roomId": "ABCD", "user": "alice"})]
    assert session.room is not None
    assert session.room.id == "ABCD"
    assert session.room.participants == [Participant("alice"), Participant("bob")]
    assert [track.id for track in session.room.queue] == ["q1"]
    assert session.username == "alice"
    assert session.playback.track_id == "t0"
    assert session.playback.origin is Origin.REMOTE
    assert not session.playback.playing
    assert ("load", "t0") in media.calls
    assert lifecycle.status is RoomStatus.IN_ROOM
    assert statuses == [RoomStatus.JOINING, RoomStatus.IN_ROOM]


async def test_join_refused_clears_everything(
    lifecycle: RoomLifecycle, session: SyncSession, transport: FakeTransport
) -> None:
    errors: list[str] = []
    session.add_event_listener(
        lambda event: errors.append(event.message) if isinstance(event, RoomErrorEvent) else None
    )
    session.reset_playback(Track(id="old"), Origin.REMOTE)
    transport.responses[ClientEvent.JOIN_ROOM].append({"error": "Room not found"})

    result = await lifecycle.join_room("ABCD", "alice")

    assert result == JoinRejected("Room not found")
    assert session.room is None
    assert session.playback == PlaybackState()
    assert lifecycle.last_error == "Room not found"
    assert lifecycle.status is RoomStatus.NO_ROOM
    assert errors == ["Room not found"]


async def test_join_timeout_is_a_rejection(
    lifecycle: RoomLifecycle, transport: FakeTransport
) -> None:
    transport.responses[ClientEvent.JOIN_ROOM].append(TimeoutError("no answer"))
    result = await lifecycle.join_room("ABCD", "alice")
    assert result == JoinRejected("no answer")
    assert lifecycle.last_error == "no answer"


async def test_join_with_malformed_ack_is_rejected(
    lifecycle: RoomLifecycle, transport: FakeTransport
) -> None:
    transport.responses[ClientEvent.JOIN_ROOM].append("ok")
    result = await lifecycle.join_room("ABCD", "alice")
    assert isinstance(result, JoinRejected)
    assert lifecycle.status is RoomStatus.NO_ROOM


@pytest.mark.parametrize(
    "room",
    [
        "ABCD",
        ["ABCD"],
        {"id": "ABCD", "queue": [{"title": "no id"}]},
        {"id": "ABCD", "currentTrack": {"title": "no id"}},
    ],
)
async def test_join_with_invalid_room_is_rejected(
    lifecycle: RoomLifecycle, session: SyncSession, transport: FakeTransport, room: object
) -> None:
    transport.responses[ClientEvent.JOIN_ROOM].append({"room": room})

    result = await lifecycle.join_room("ABCD", "alice")

    assert result == JoinRejected("Invalid response from coordinator")
    assert lifecycle.status is RoomStatus.NO_ROOM
    assert lifecycle.last_error == "Invalid response from coordinator"
    assert session.room is None


@pytest.mark.parametrize(("room_id", "username"), [("", "alice"), ("ABCD", "  "), (" ", "")])
async def test_join_requires_room_and_name(
    lifecycle: RoomLifecycle, transport: FakeTransport, room_id: str, username: str
) -> None:
    with pytest.raises(ValidationError, match="Please enter a room code and username."):
        await lifecycle.join_room(room_id, username)
    assert transport.calls == []


async def test_join_while_disconnected_does_nothing(
    lifecycle: RoomLifecycle, transport: FakeTransport
) -> None:
    transport.connected = False
    assert await lifecycle.join_room("ABCD", "alice") is None
    assert lifecycle.status is RoomStatus.NO_ROOM


async def test_stale_ack_is_dropped(
    lifecycle: RoomLifecycle, session: SyncSession, transport: FakeTransport
) -> None:
    late: asyncio.Future[object] = asyncio.get_running_loop().create_future()
    transport.responses[ClientEvent.JOIN_ROOM].extend([late, {"room": {"id": "BBBB"}}])

    first = asyncio.create_task(lifecycle.join_room("AAAA", "alice"))
    await settle()
    second = await lifecycle.join_room("BBBB", "alice")
    late.set_result({"error": "Room not found"})

    assert await first is None
    assert isinstance(second, JoinAccepted)
    assert session.room is not None
    assert session.room.id == "BBBB"
    assert lifecycle.status is RoomStatus.IN_ROOM
    assert lifecycle.last_error is None


async def test_broadcast_during_join_is_kept(
    lifecycle: RoomLifecycle, session: SyncSession, transport: FakeTransport
) -> None:
    pending: asyncio.Future[object] = asyncio.get_running_loop().create_future()
    transport.responses[ClientEvent.JOIN_ROOM].append(pending)

    join = asyncio.create_task(lifecycle.join_room("ABCD", "alice"))
    await settle()
    session.apply(Origin.REMOTE, current_track=Track(id="t9"), playing=True, position=5.0)
    pending.set_result(ROOM_ACK)

    assert isinstance(await join, JoinAccepted)
    assert session.playback.track_id == "t9"
    assert session.playback.playing
    assert session.playback.position == 5.0


async def test_create_room_then_joins(
    lifecycle: RoomLifecycle, session: SyncSession, transport: FakeTransport
) -> None:
    transport.responses[ClientEvent.CREATE_ROOM].append("WXYZ")
    transport.responses[ClientEvent.JOIN_ROOM].append({"room": {"id": "WXYZ"}})

    result = await lifecycle.create_room("alice")

    assert isinstance(result, JoinAccepted)
    assert result.room.id == "WXYZ"
    assert transport.calls == [
        (ClientEvent.CREATE_ROOM, "alice"),
        (ClientEvent.JOIN_ROOM, {"roomId": "WXYZ", "user": "alice"}),
    ]
    assert session.playback.current_track is None


async def test_create_room_requires_name(
    lifecycle: RoomLifecycle, transport: FakeTransport
) -> None:
    with pytest.raises(ValidationError, match="Please enter a username."):
        await lifecycle.create_room(" ")
    assert transport.calls == []


async def test_create_room_without_id_is_rejected(
    lifecycle: RoomLifecycle, transport: FakeTransport
) -> None:
    transport.responses[ClientEvent.CREATE_ROOM].append(None)
    assert isinstance(await lifecycle.create_room("alice"), JoinRejected)
    assert lifecycle.last_error is not None


async def test_create_room_while_disconnected(
    lifecycle: RoomLifecycle, transport: FakeTransport
) -> None:
    transport.connected = False
    assert await lifecycle.create_room("alice") is None


async def test_leave_discards_room_and_playback(
    lifecycle: RoomLifecycle,
    session: SyncSession,
    transport: FakeTransport,
    media: RecordingMedia,
) -> None:
    transport.responses[ClientEvent.JOIN_ROOM].append(ROOM_ACK)
    await lifecycle.join_room("ABCD", "alice")

    await lifecycle.leave_room()

    assert session.room is None
    assert session.playback == PlaybackState()
    assert lifecycle.status is RoomStatus.NO_ROOM
    assert media.calls[-1] == ("unload",)

    lifecycle.on_connection_changed(True)
    await settle()
    assert len(transport.calls) == 1


async def test_reconnect_rejoins_room(
    lifecycle: RoomLifecycle, session: SyncSession, transport: FakeTransport
) -> None:
    transport.responses[ClientEvent.JOIN_ROOM].extend([ROOM_ACK, ROOM_ACK])
    await lifecycle.join_room("ABCD", "alice")

    lifecycle.on_connection_changed(False)
    lifecycle.on_connection_changed(True)
    await settle()

    assert transport.calls[1] == (ClientEvent.JOIN_ROOM, {"roomId": "ABCD", "user": "alice"})
    assert lifecycle.status is RoomStatus.IN_ROOM
    assert session.room is not None
    assert session.room.id == "ABCD"


async def test_close_cancels_pending_rejoin(
    lifecycle: RoomLifecycle, transport: FakeTransport
) -> None:
    never: asyncio.Future[object] = asyncio.get_running_loop().create_future()
    transport.responses[ClientEvent.JOIN_ROOM].extend([ROOM_ACK, never])
    await lifecycle.join_room("ABCD", "alice")

    lifecycle.on_connection_changed(True)
    await settle()
    await lifecycle.close()

    assert lifecycle.status is RoomStatus.NO_ROOM
    assert never.cancelled()


async def test_reconnect_discards_local_changes(
    lifecycle: RoomLifecycle,
    session: SyncSession,
    transport: FakeTransport,
    media: RecordingMedia,
) -> None:
    canonical = {"room": {"id": "ABCD", "currentTrack": {"id": "t1"}}}
    transport.responses[ClientEvent.JOIN_ROOM].extend([canonical, canonical])
    await lifecycle.join_room("ABCD", "alice")

    session.apply(Origin.LOCAL, current_track=Track(id="t2"), playing=True, position=30.0)
    assert session.playback.track_id == "t2"

    lifecycle.on_connection_changed(False)
    lifecycle.on_connection_changed(True)
    await settle()

    assert len(transport.calls) == 2
    assert lifecycle.status is RoomStatus.IN_ROOM
    assert session.playback.track_id == "t1"
    assert session.playback.origin is Origin.REMOTE
    assert not session.playback.playing
    assert session.playback.position == 0.0
    assert media.track is not None
    assert media.track.id == "t1"
