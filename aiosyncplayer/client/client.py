"""SyncPlayer client: keeps one room's playback in lock-step with the coordinator."""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType
from typing import Any, Self

from aiosyncplayer.models import Room, RoomStatus, ServerEvent, Track

from .config import SyncConfig
from .drift import DriftCorrector
from .emitter import TransportEventEmitter
from .events import ConnectionChangedEvent
from .lifecycle import JoinResult, RoomLifecycle
from .media import MediaAdapter, VirtualMediaAdapter
from .reconciler import RemoteEventReconciler
from .session import EventCallback, SyncSession
from .state import PlaybackState
from .transport import SyncTransport

logger = logging.getLogger(__name__)


class SyncPlayerClient:
    """
    Async client for a synchronized listening room.

    Owns the session, the transport and the media adapter, and wires the
    emitter, reconciler, drift corrector and room lifecycle to them.
    ``disconnect()`` releases everything the client registered in one step.
    """

    def __init__(
        self,
        media: MediaAdapter | None = None,
        *,
        config: SyncConfig | None = None,
        transport: SyncTransport | None = None,
    ) -> None:
        """Create a new client instance."""
        self._config = config or SyncConfig()
        media = media or VirtualMediaAdapter(interval=self._config.position_interval)
        self._session = SyncSession(media, self._config)
        self._transport = transport or SyncTransport(self._config)
        self.controls = TransportEventEmitter(self._session, self._transport)
        """Local transport controls."""
        self.rooms = RoomLifecycle(self._session, self._transport)
        """Room membership."""
        self._reconciler = RemoteEventReconciler(self._session)
        self._drift = DriftCorrector(self._session)
        self._unsubscribers: list[Callable[[], None]] = []
        self._register_listeners()

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    @property
    def connected(self) -> bool:
        """Return True if the client currently has a coordinator connection."""
        return self._transport.connected

    @property
    def playback(self) -> PlaybackState:
        """Return the current playback state."""
        return self._session.playback

    @property
    def room(self) -> Room | None:
        """Return the cached room, if joined."""
        return self._session.room

    @property
    def status(self) -> RoomStatus:
        """Return the room membership state."""
        return self.rooms.status

    @property
    def loading(self) -> bool:
        """Return True while a local play waits for the media."""
        return self._session.loading

    @property
    def seeking(self) -> bool:
        """Return True while a position drag is in progress."""
        return self._session.seeking

    @property
    def username(self) -> str | None:
        """Return the display name used in the current room."""
        return self._session.username

    @property
    def media(self) -> MediaAdapter:
        """Return the media adapter driven by this client."""
        return self._session.media

    async def connect(self, url: str) -> None:
        """Connect to the coordinator; lost connections rejoin the room."""
        if not self._unsubscribers:
            self._register_listeners()
        await self._transport.connect(url)

    async def disconnect(self) -> None:
        """Disconnect and release listeners, timers, tasks and the media."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await self.rooms.close()
        await self._transport.disconnect()
        await self._session.close()

    def add_event_listener(self, callback: EventCallback) -> Callable[[], None]:
        """
        Register a callback for client events (see ``aiosyncplayer.client.events``).

        Returns a function to remove the listener.
        """
        return self._session.add_event_listener(callback)

    async def create_room(self, username: str) -> JoinResult | None:
        """Create a room and join it, see RoomLifecycle.create_room."""
        return await self.rooms.create_room(username)

    async def join_room(self, room_id: str, username: str) -> JoinResult | None:
        """Join a room, see RoomLifecycle.join_room."""
        return await self.rooms.join_room(room_id, username)

    async def leave_room(self) -> None:
        """Leave the current room."""
        await self.rooms.leave_room()

    async def play(self) -> None:
        """Resume the current track."""
        await self.controls.request_play()

    async def pause(self) -> None:
        """Pause playback."""
        await self.controls.request_pause()

    async def seek(self, seconds: float) -> None:
        """Jump to ``seconds``."""
        await self.controls.commit_seek(seconds)

    async def next(self) -> None:
        """Skip to the next queued track."""
        await self.controls.request_next()

    async def play_track(self, track: Track) -> None:
        """Start ``track`` from the beginning."""
        await self.controls.select_track(track)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _register_listeners(self) -> None:
        self._unsubscribers = [
            self._transport.add_message_listener(self._handle_message),
            self._transport.add_connection_listener(self._handle_connection),
        ]

    def _handle_message(self, event: ServerEvent, data: Any) -> None:
        if event is ServerEvent.SYNC_TICK:
            self._drift.handle(data)
        else:
            self._reconciler.handle(event, data)

    def _handle_connection(self, connected: bool) -> None:
        self._session.signal_event(ConnectionChangedEvent(connected))
        self.rooms.on_connection_changed(connected)

    async def __aenter__(self) -> Self:
        """Enter the async context manager returning this instance."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Disconnect when leaving the async context manager."""
        await self.disconnect()
