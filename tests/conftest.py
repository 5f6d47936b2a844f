"""Shared fixtures: an in-memory transport and a media adapter that records calls."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from mashumaro import DataClassDictMixin

from aiosyncplayer.client import MediaAdapter, PositionSample, SyncConfig, SyncSession
from aiosyncplayer.errors import TransportUnavailableError
from aiosyncplayer.models import ClientEvent, Origin, Room, ServerEvent, Track


class FakeTransport:
    """Stands in for SyncTransport; acknowledgements are scripted per event."""

    def __init__(self) -> None:
        self.connected = True
        self.emitted: list[tuple[ClientEvent, Any]] = []
        self.calls: list[tuple[ClientEvent, Any]] = []
        self.responses: defaultdict[ClientEvent, list[Any]] = defaultdict(list)
        self.message_cbs: list[Callable[..., Any]] = []
        self.connection_cbs: list[Callable[..., Any]] = []

    async def connect(self, url: str) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def emit(self, event: ClientEvent, payload: Any) -> bool:
        if not self.connected:
            return False
        self.emitted.append((event, _serialize(payload)))
        return True

    async def call(self, event: ClientEvent, payload: Any, *, timeout: float | None = None) -> Any:
        if not self.connected:
            raise TransportUnavailableError("not connected")
        self.calls.append((event, _serialize(payload)))
        response = self.responses[event].pop(0)
        if isinstance(response, asyncio.Future):
            return await response
        if isinstance(response, BaseException):
            raise response
        return response

    def add_message_listener(self, callback: Callable[..., Any]) -> Callable[[], None]:
        self.message_cbs.append(callback)
        return lambda: self.message_cbs.remove(callback)

    def add_connection_listener(self, callback: Callable[..., Any]) -> Callable[[], None]:
        self.connection_cbs.append(callback)
        return lambda: self.connection_cbs.remove(callback)

    def deliver(self, event: ServerEvent, data: Any) -> None:
        for callback in list(self.message_cbs):
            callback(event, data)

    def set_connected(self, connected: bool) -> None:
        self.connected = connected
        for callback in list(self.connection_cbs):
            callback(connected)


def _serialize(payload: Any) -> Any:
    return payload.to_dict() if isinstance(payload, DataClassDictMixin) else payload


class RecordingMedia(MediaAdapter):
    """Media adapter whose position samples are pushed by the test."""

    def __init__(self) -> None:
        super().__init__(interval=0.01)
        self.calls: list[tuple[Any, ...]] = []
        self.is_ready = True
        self.reported_duration: float | None = None
        self.position = 0.0
        self._playing = False
        self.samples: asyncio.Queue[PositionSample] = asyncio.Queue()

    @property
    def ready(self) -> bool:
        return self.is_ready

    @property
    def duration(self) -> float | None:
        return self.reported_duration

    @property
    def playing(self) -> bool:
        return self._playing

    def get_position(self) -> float | None:
        return self.position if self.is_ready else None

    def set_position(self, seconds: float) -> None:
        self.calls.append(("set_position", seconds))
        if self.is_ready:
            self.position = seconds

    def set_playing(self, playing: bool) -> None:
        self.calls.append(("set_playing", playing))
        if self.is_ready:
            self._playing = playing

    def _on_load(self, track: Track) -> None:
        self.calls.append(("load", track.id))
        self.samples = asyncio.Queue()

    def _on_unload(self) -> None:
        self.calls.append(("unload",))

    async def positions(self) -> AsyncIterator[PositionSample]:
        generation = self._generation
        samples = self.samples
        while generation == self._generation:
            yield await samples.get()

    def push(self, position: float, duration: float | None = None, playing: bool = False) -> None:
        self.samples.put_nowait(PositionSample(position, duration, playing))

    def count(self, name: str, *args: Any) -> int:
        return sum(1 for call in self.calls if call == (name, *args))

    def named(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def media() -> RecordingMedia:
    return RecordingMedia()


@pytest.fixture
async def session(media: RecordingMedia) -> AsyncIterator[SyncSession]:
    session = SyncSession(media, SyncConfig())
    yield session
    await session.close()


@pytest.fixture
def track() -> Track:
    return Track(id="abc", title="Song", artist="Band", duration=200.0)


@pytest.fixture
async def joined(session: SyncSession, media: RecordingMedia, track: Track) -> SyncSession:
    """Session in room ROOM as alice with ``track`` loaded, paused at 0."""
    session.username = "alice"
    session.set_room(Room(id="ROOM"))
    session.reset_playback(track, Origin.REMOTE)
    media.calls.clear()
    return session
