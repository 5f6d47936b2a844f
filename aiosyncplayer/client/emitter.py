"""Turns local transport actions into outbound messages and optimistic updates."""

from __future__ import annotations

import logging

from aiosyncplayer.models import (
    ClientEvent,
    NextClientPayload,
    Origin,
    PauseClientPayload,
    PlayClientPayload,
    SeekClientPayload,
    Track,
)

from .session import SyncSession
from .transport import SyncTransport

logger = logging.getLogger(__name__)


class TransportEventEmitter:
    """
    Local play/pause/seek/next controls.

    The local state is updated before the message goes out. It is never rolled
    back; the coordinator's next broadcast supersedes it.
    """

    def __init__(self, session: SyncSession, transport: SyncTransport) -> None:
        """Create an emitter acting on ``session``."""
        self._session = session
        self._transport = transport

    @property
    def _actor(self) -> str:
        return self._session.username or ""

    async def request_play(self) -> None:
        """Resume the current track from the current position."""
        session = self._session
        room, track = session.room, session.playback.current_track
        if room is None or track is None:
            logger.debug("Ignoring play without room or track")
            return
        session.apply(Origin.LOCAL, playing=True, last_actor=self._actor)
        session.set_loading(True)
        await self._transport.emit(
            ClientEvent.PLAY,
            PlayClientPayload(
                room_id=room.id,
                track=track,
                time=session.playback.position,
                user=self._actor,
            ),
        )

    async def request_pause(self) -> None:
        """Pause at the media's current position."""
        session = self._session
        room = session.room
        if room is None:
            logger.debug("Ignoring pause without room")
            return
        position = session.media.get_position()
        if position is None:
            position = session.playback.position
        session.apply(Origin.LOCAL, playing=False, position=position)
        await self._transport.emit(
            ClientEvent.PAUSE, PauseClientPayload(room_id=room.id, time=position)
        )

    async def toggle_play(self) -> None:
        """Pause when playing, play otherwise."""
        if self._session.playback.playing:
            await self.request_pause()
        else:
            await self.request_play()

    def begin_seek(self) -> None:
        """Start a position drag; until it is committed only the display moves."""
        self._session.seeking = True

    def update_seek_preview(self, seconds: float) -> None:
        """Show ``seconds`` as the position during a drag."""
        if not self._session.seeking:
            return
        self._session.apply(Origin.LOCAL, position=seconds)

    async def commit_seek(self, seconds: float) -> None:
        """End a drag (or jump directly) to ``seconds`` and tell the room."""
        session = self._session
        session.seeking = False
        transition = session.apply(Origin.LOCAL, reposition=True, position=seconds)
        room = session.room
        if room is None:
            return
        position = transition.current.position if transition is not None else seconds
        await self._transport.emit(
            ClientEvent.SEEK, SeekClientPayload(room_id=room.id, time=position)
        )

    async def request_next(self) -> None:
        """Ask the coordinator to skip; the resulting play arrives as a broadcast."""
        room = self._session.room
        if room is None:
            logger.debug("Ignoring next without room")
            return
        await self._transport.emit(
            ClientEvent.NEXT, NextClientPayload(room_id=room.id, user=self._actor)
        )

    async def select_track(self, track: Track) -> None:
        """Start ``track`` from the beginning, whether queued or not."""
        session = self._session
        room = session.room
        if room is None:
            logger.debug("Ignoring track selection without room")
            return
        session.apply(Origin.LOCAL, current_track=track)
        session.set_loading(True)
        await self._transport.emit(
            ClientEvent.PLAY,
            PlayClientPayload(room_id=room.id, track=track, time=0.0, user=self._actor),
        )
