"""Public interface for the aiosyncplayer client package."""

from .client import SyncPlayerClient
from .config import SyncConfig
from .drift import DriftCorrector
from .emitter import TransportEventEmitter
from .events import (
    ConnectionChangedEvent,
    LoadingChangedEvent,
    NextRequestedEvent,
    PlaybackChangedEvent,
    RoomErrorEvent,
    RoomStatusChangedEvent,
    RoomUpdatedEvent,
    SyncEvent,
)
from .lifecycle import JoinAccepted, JoinRejected, JoinResult, RoomLifecycle
from .media import MediaAdapter, PositionSample, VirtualMediaAdapter
from .reconciler import RemoteEventReconciler
from .session import SyncSession
from .state import PlaybackState, Transition
from .transport import SyncTransport

__all__ = [
    "ConnectionChangedEvent",
    "DriftCorrector",
    "JoinAccepted",
    "JoinRejected",
    "JoinResult",
    "LoadingChangedEvent",
    "MediaAdapter",
    "NextRequestedEvent",
    "PlaybackChangedEvent",
    "PlaybackState",
    "PositionSample",
    "RemoteEventReconciler",
    "RoomErrorEvent",
    "RoomLifecycle",
    "RoomStatusChangedEvent",
    "RoomUpdatedEvent",
    "SyncConfig",
    "SyncEvent",
    "SyncPlayerClient",
    "SyncSession",
    "SyncTransport",
    "Transition",
    "TransportEventEmitter",
    "VirtualMediaAdapter",
]
