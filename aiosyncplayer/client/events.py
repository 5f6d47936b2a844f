"""Events signalled by SyncPlayerClient.add_event_listener()."""

from __future__ import annotations

from dataclasses import dataclass

from aiosyncplayer.models import Room, RoomStatus

from .state import Transition


class SyncEvent:
    """Base event type used by SyncPlayerClient.add_event_listener()."""


@dataclass
class PlaybackChangedEvent(SyncEvent):
    """The playback state changed."""

    transition: Transition


@dataclass
class LoadingChangedEvent(SyncEvent):
    """A local play started or finished loading."""

    loading: bool


@dataclass
class RoomUpdatedEvent(SyncEvent):
    """The cached room (roster, queue or identity) changed."""

    room: Room | None
    """The new room, None after leaving."""


@dataclass
class RoomStatusChangedEvent(SyncEvent):
    """Room membership moved to a new state."""

    status: RoomStatus


@dataclass
class RoomErrorEvent(SyncEvent):
    """The coordinator refused a room request."""

    message: str


@dataclass
class NextRequestedEvent(SyncEvent):
    """A participant skipped to the next track."""

    user: str | None


@dataclass
class ConnectionChangedEvent(SyncEvent):
    """The coordinator connection went up or down."""

    connected: bool
