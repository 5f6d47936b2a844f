"""Applies coordinator broadcasts to the local session."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from aiosyncplayer.models import (
    NextServerPayload,
    Origin,
    PauseServerPayload,
    PlayServerPayload,
    SeekServerPayload,
    ServerEvent,
    Track,
    parse_participants,
)

from .events import NextRequestedEvent
from .session import SyncSession

logger = logging.getLogger(__name__)


class RemoteEventReconciler:
    """
    Applies play/pause/seek/next and roster/queue pushes.

    Every update is tagged Origin.REMOTE. The session decides from that tag
    whether the media has to follow, so a remote position write is never
    mistaken for a user gesture and echoed back.
    """

    def __init__(self, session: SyncSession) -> None:
        """Create a reconciler mutating ``session``."""
        self._session = session

    def handle(self, event: ServerEvent, data: Any) -> None:
        """Dispatch one inbound message; sync ticks are not handled here."""
        try:
            match event:
                case ServerEvent.PLAY:
                    self.on_play(PlayServerPayload.from_dict(data or {}))
                case ServerEvent.PAUSE:
                    self.on_pause(PauseServerPayload.from_dict(data or {}))
                case ServerEvent.SEEK:
                    self.on_seek(SeekServerPayload.from_dict(data or {}))
                case ServerEvent.NEXT:
                    self.on_next(NextServerPayload.from_dict(data if isinstance(data, dict) else {}))
                case ServerEvent.PARTICIPANTS:
                    self.on_participants(data)
                case ServerEvent.QUEUE:
                    self.on_queue(data)
        except Exception:
            logger.exception("Failed to apply %s message: %s", event.value, data)

    def on_play(self, payload: PlayServerPayload) -> None:
        """Someone started playback, possibly of another track."""
        track = payload.track or self._session.playback.current_track
        if track is None:
            logger.debug("Dropping play without a track")
            return
        self._session.apply(
            Origin.REMOTE,
            current_track=track,
            playing=True,
            position=payload.time,
            last_actor=payload.user,
        )

    def on_pause(self, payload: PauseServerPayload) -> None:
        """Someone paused."""
        if self._session.playback.current_track is None:
            logger.debug("Dropping pause without a current track")
            return
        self._session.apply(Origin.REMOTE, playing=False, position=payload.time)

    def on_seek(self, payload: SeekServerPayload) -> None:
        """Someone moved the playhead."""
        if self._session.playback.current_track is None:
            logger.debug("Dropping seek without a current track")
            return
        self._session.apply(Origin.REMOTE, position=payload.time)

    def on_next(self, payload: NextServerPayload) -> None:
        """Someone skipped; the new track follows as a play broadcast."""
        logger.debug("Next requested by %s", payload.user)
        self._session.signal_event(NextRequestedEvent(payload.user))

    def on_participants(self, data: Any) -> None:
        """Replace the cached roster."""
        room = self._session.room
        if room is None:
            logger.debug("Dropping roster update without room")
            return
        self._session.set_room(replace(room, participants=parse_participants(data)))

    def on_queue(self, data: Any) -> None:
        """Replace the cached queue."""
        room = self._session.room
        if room is None:
            logger.debug("Dropping queue update without room")
            return
        queue = [Track.from_dict(item) for item in data or [] if isinstance(item, dict)]
        self._session.set_room(replace(room, queue=queue))
