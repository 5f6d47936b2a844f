"""Tests for applying coordinator broadcasts."""

from __future__ import annotations

import pytest
from conftest import RecordingMedia

from aiosyncplayer.client import NextRequestedEvent, RemoteEventReconciler, SyncSession
from aiosyncplayer.client.state import DEFAULT_DURATION
from aiosyncplayer.models import Origin, Participant, ServerEvent, Track


@pytest.fixture
def reconciler(joined: SyncSession) -> RemoteEventReconciler:
    return RemoteEventReconciler(joined)


async def test_pause_sets_position_once(
    reconciler: RemoteEventReconciler, joined: SyncSession, media: RecordingMedia
) -> None:
    joined.apply(Origin.REMOTE, playing=True, position=10.0)
    media.calls.clear()

    reconciler.handle(ServerEvent.PAUSE, {"time": 42.3})

    assert joined.playback.position == 42.3
    assert not joined.playback.playing
    assert joined.playback.origin is Origin.REMOTE
    assert media.count("set_position", 42.3) == 1
    assert media.count("set_playing", False) == 1


async def test_pause_without_track_is_dropped(session: SyncSession) -> None:
    RemoteEventReconciler(session).handle(ServerEvent.PAUSE, {"time": 5.0})
    assert session.playback.current_track is None
    assert session.playback.position == 0.0


async def test_play_of_other_track_resets_duration(
    reconciler: RemoteEventReconciler, joined: SyncSession, media: RecordingMedia
) -> None:
    joined.apply(Origin.LOCAL, duration=200.0, duration_known=True, position=20.0)
    media.calls.clear()

    reconciler.handle(
        ServerEvent.PLAY, {"track": {"id": "t2", "title": "Two"}, "time": 7.0, "user": "bob"}
    )

    state = joined.playback
    assert state.track_id == "t2"
    assert state.position == 7.0
    assert state.playing
    assert state.duration == DEFAULT_DURATION
    assert not state.duration_known
    assert state.last_actor == "bob"
    assert media.calls == [("load", "t2"), ("set_position", 7.0), ("set_playing", True)]


async def test_play_without_track_resumes_current(
    reconciler: RemoteEventReconciler, joined: SyncSession
) -> None:
    reconciler.handle(ServerEvent.PLAY, {"time": 12.0, "user": "bob"})
    assert joined.playback.track_id == "abc"
    assert joined.playback.playing
    assert joined.playback.position == 12.0


async def test_play_without_any_track_is_dropped(session: SyncSession) -> None:
    RemoteEventReconciler(session).handle(ServerEvent.PLAY, {"time": 3.0})
    assert session.playback.current_track is None


async def test_seek_moves_media(
    reconciler: RemoteEventReconciler, joined: SyncSession, media: RecordingMedia
) -> None:
    reconciler.handle(ServerEvent.SEEK, {"time": 99.0})
    assert joined.playback.position == 99.0
    assert media.calls == [("set_position", 99.0)]


async def test_remote_seek_during_drag_leaves_media_alone(
    reconciler: RemoteEventReconciler, joined: SyncSession, media: RecordingMedia
) -> None:
    joined.seeking = True
    reconciler.handle(ServerEvent.SEEK, {"time": 99.0})
    assert joined.playback.position == 99.0
    assert media.named("set_position") == []


async def test_null_time_counts_as_zero(
    reconciler: RemoteEventReconciler, joined: SyncSession
) -> None:
    joined.apply(Origin.REMOTE, position=30.0)
    reconciler.handle(ServerEvent.SEEK, {"time": None})
    assert joined.playback.position == 0.0


async def test_next_is_signalled(reconciler: RemoteEventReconciler, joined: SyncSession) -> None:
    events: list[object] = []
    joined.add_event_listener(events.append)
    before = joined.playback

    reconciler.handle(ServerEvent.NEXT, {"user": "carol", "roomId": "ROOM"})

    assert NextRequestedEvent("carol") in events
    assert joined.playback == before


async def test_participants_replace_roster(
    reconciler: RemoteEventReconciler, joined: SyncSession
) -> None:
    reconciler.handle(ServerEvent.PARTICIPANTS, ["alice", "bob"])
    assert joined.room is not None
    assert joined.room.participants == [Participant("alice"), Participant("bob")]

    reconciler.handle(ServerEvent.PARTICIPANTS, {"s1": {"name": "carol"}, "s2": "dave"})
    assert joined.room.participants == [Participant("carol", "s1"), Participant("dave", "s2")]


async def test_queue_replaces_queue(reconciler: RemoteEventReconciler, joined: SyncSession) -> None:
    reconciler.handle(ServerEvent.QUEUE, [{"id": "q1", "title": "One"}, {"id": "q2"}])
    assert joined.room is not None
    assert [track.id for track in joined.room.queue] == ["q1", "q2"]
    assert joined.room.queue[0] == Track(id="q1", title="One")


async def test_roster_without_room_is_dropped(session: SyncSession) -> None:
    RemoteEventReconciler(session).handle(ServerEvent.PARTICIPANTS, ["alice"])
    assert session.room is None


async def test_malformed_message_is_logged(
    reconciler: RemoteEventReconciler, joined: SyncSession, caplog: pytest.LogCaptureFixture
) -> None:
    before = joined.playback
    reconciler.handle(ServerEvent.PAUSE, {"time": "later"})
    assert joined.playback == before
    assert "Failed to apply pause message" in caplog.text
