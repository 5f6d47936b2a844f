"""aiosyncplayer: listen to the same stream in lock-step with everyone in a room."""

from __future__ import annotations

# Re-export client library for easy import
from aiosyncplayer.catalog import CatalogClient
from aiosyncplayer.client import (
    JoinAccepted,
    JoinRejected,
    MediaAdapter,
    PlaybackState,
    SyncConfig,
    SyncPlayerClient,
    VirtualMediaAdapter,
)
from aiosyncplayer.errors import SyncPlayerError, TransportUnavailableError, ValidationError
from aiosyncplayer.models import Participant, Room, Track

__all__ = [
    "CatalogClient",
    "JoinAccepted",
    "JoinRejected",
    "MediaAdapter",
    "Participant",
    "PlaybackState",
    "Room",
    "SyncConfig",
    "SyncPlayerClient",
    "SyncPlayerError",
    "Track",
    "TransportUnavailableError",
    "ValidationError",
    "VirtualMediaAdapter",
]
