"""Models for the aiosyncplayer coordinator protocol."""

from __future__ import annotations

from . import messages, room, types
from .messages import (
    JoinRoomAck,
    JoinRoomClientPayload,
    NextClientPayload,
    NextServerPayload,
    PauseClientPayload,
    PauseServerPayload,
    PlayClientPayload,
    PlayServerPayload,
    SeekClientPayload,
    SeekServerPayload,
    SyncTickServerPayload,
)
from .room import Participant, Room, Track, parse_participants
from .types import ClientEvent, Origin, RoomStatus, ServerEvent

__all__ = [
    "ClientEvent",
    "JoinRoomAck",
    "JoinRoomClientPayload",
    "NextClientPayload",
    "NextServerPayload",
    "Origin",
    "Participant",
    "PauseClientPayload",
    "PauseServerPayload",
    "PlayClientPayload",
    "PlayServerPayload",
    "Room",
    "RoomStatus",
    "SeekClientPayload",
    "SeekServerPayload",
    "ServerEvent",
    "SyncTickServerPayload",
    "Track",
    "messages",
    "parse_participants",
    "room",
    "types",
]
