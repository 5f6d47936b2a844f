"""Models for enum types used by aiosyncplayer."""

from enum import Enum


class Origin(Enum):
    """Where a playback state transition came from."""

    LOCAL = "local"
    """Caused by this client: a user action or the local media element."""
    REMOTE = "remote"
    """Caused by a message received from the coordinator."""


class RoomStatus(Enum):
    """Room membership states of a client."""

    NO_ROOM = "no_room"
    JOINING = "joining"
    IN_ROOM = "in_room"
    LEAVING = "leaving"


class ClientEvent(Enum):
    """Socket.io events sent by the client."""

    CREATE_ROOM = "createRoom"
    """Create a room, the acknowledgement carries the room id."""
    JOIN_ROOM = "joinRoom"
    """Join or rejoin a room, acknowledged with the room or an error."""
    PLAY = "play"
    PAUSE = "pause"
    SEEK = "seek"
    NEXT = "next"


class ServerEvent(Enum):
    """Socket.io events sent by the coordinator."""

    PLAY = "play"
    """Authoritative play or track change."""
    PAUSE = "pause"
    SEEK = "seek"
    NEXT = "next"
    """Somebody asked for the next track; the change itself follows as play."""
    SYNC_TICK = "syncTick"
    """Periodic position report used for drift correction."""
    PARTICIPANTS = "participants"
    QUEUE = "queue"
