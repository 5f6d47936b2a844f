"""
Payloads exchanged with the coordinator over socket.io.

Socket.io carries the message name as the event name, so unlike a raw
WebSocket protocol the payloads need no type discriminator. Outbound payloads
are serialized with ``to_dict()``, inbound ones parsed with ``from_dict()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin

from .room import Room, Track


def _default_time(d: dict[Any, Any]) -> dict[Any, Any]:
    if d.get("time") is None:
        return {**d, "time": 0.0}
    return d


# Client -> Server: joinRoom
@dataclass
class JoinRoomClientPayload(DataClassORJSONMixin):
    """Request to join (or rejoin) a room."""

    room_id: str = field(metadata=field_options(alias="roomId"))
    user: str

    class Config(BaseConfig):
        """Config for parsing json messages."""

        serialize_by_alias = True


# Client -> Server: play
@dataclass
class PlayClientPayload(DataClassORJSONMixin):
    """Announce a local play or track selection."""

    room_id: str = field(metadata=field_options(alias="roomId"))
    track: Track
    time: float
    """Position in seconds to start from."""
    user: str
    """Display name of the acting participant."""

    class Config(BaseConfig):
        """Config for parsing json messages."""

        serialize_by_alias = True
        omit_none = True


# Client -> Server: pause
@dataclass
class PauseClientPayload(DataClassORJSONMixin):
    """Announce a local pause."""

    room_id: str = field(metadata=field_options(alias="roomId"))
    time: float

    class Config(BaseConfig):
        """Config for parsing json messages."""

        serialize_by_alias = True


# Client -> Server: seek
@dataclass
class SeekClientPayload(DataClassORJSONMixin):
    """Announce a committed seek."""

    room_id: str = field(metadata=field_options(alias="roomId"))
    time: float

    class Config(BaseConfig):
        """Config for parsing json messages."""

        serialize_by_alias = True


# Client -> Server: next
@dataclass
class NextClientPayload(DataClassORJSONMixin):
    """Ask the coordinator to advance to the next queued track."""

    room_id: str = field(metadata=field_options(alias="roomId"))
    user: str

    class Config(BaseConfig):
        """Config for parsing json messages."""

        serialize_by_alias = True


# Server -> Client: play
@dataclass
class PlayServerPayload(DataClassORJSONMixin):
    """Authoritative play, possibly of a different track."""

    track: Track | None = None
    time: float = 0.0
    user: str | None = None

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        return _default_time(d)


# Server -> Client: pause
@dataclass
class PauseServerPayload(DataClassORJSONMixin):
    """Authoritative pause at a position."""

    time: float = 0.0

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        return _default_time(d)


# Server -> Client: seek
@dataclass
class SeekServerPayload(DataClassORJSONMixin):
    """Authoritative seek."""

    time: float = 0.0

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        return _default_time(d)


# Server -> Client: next
@dataclass
class NextServerPayload(DataClassORJSONMixin):
    """Somebody skipped; informational only."""

    user: str | None = None


# Server -> Client: syncTick
@dataclass
class SyncTickServerPayload(DataClassORJSONMixin):
    """Periodic authoritative position of the room."""

    time: float
    """Position in seconds the coordinator believes the room is at."""
    is_playing: bool = field(metadata=field_options(alias="isPlaying"))
    current_track: Track | None = field(
        default=None, metadata=field_options(alias="currentTrack")
    )

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        # Some coordinators only send the track id
        current = d.get("currentTrack")
        if isinstance(current, str):
            return {**d, "currentTrack": {"id": current}}
        return d

    @property
    def track_id(self) -> str | None:
        """Return the id of the track this tick refers to."""
        return self.current_track.id if self.current_track is not None else None


# Server -> Client: joinRoom acknowledgement
@dataclass
class JoinRoomAck(DataClassORJSONMixin):
    """Acknowledgement of a join request: either a room or an error."""

    room: Room | None = None
    error: str | None = None

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        if d.get("error") is not None:
            return {"error": str(d["error"])}
        return d
