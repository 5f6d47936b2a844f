"""
Per-client owner of the mutable synchronization state.

A SyncSession holds the PlaybackState, the cached Room and the transient UI
flags (seek drag, loading) of one room membership. The emitter, reconciler,
drift corrector and room lifecycle all receive the same session by reference
and mutate it only through ``apply``/``reset_playback``, which is also the only
place that drives the media adapter.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import suppress
from typing import Any

from aiosyncplayer.models import Origin, Room, Track

from .config import SyncConfig
from .events import LoadingChangedEvent, PlaybackChangedEvent, RoomUpdatedEvent, SyncEvent
from .media import MediaAdapter, PositionSample
from .state import (
    LoadTrack,
    PlaybackState,
    SetPlaying,
    SetPosition,
    Transition,
    UnloadTrack,
    advance,
    plan_media_actions,
)

logger = logging.getLogger(__name__)

READY_SYNC_TOLERANCE = 0.5
"""Seconds the media may be off when it becomes ready before it is moved."""

EventCallback = Callable[[SyncEvent], Awaitable[None] | None]


class SyncSession:
    """Mutable synchronization state of one client."""

    def __init__(self, media: MediaAdapter, config: SyncConfig | None = None) -> None:
        """Create a session driving ``media``."""
        self.media = media
        self.config = config or SyncConfig()
        self.room: Room | None = None
        self.username: str | None = None
        self.seeking = False
        """True while the user drags the position control."""
        self._playback = PlaybackState()
        self._loading = False
        self._loading_handle: asyncio.TimerHandle | None = None
        self._remote_revision = 0
        self._awaiting_ready = False
        self._position_task: asyncio.Task[None] | None = None
        self._event_cbs: list[EventCallback] = []
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def playback(self) -> PlaybackState:
        """Return the current playback state snapshot."""
        return self._playback

    @property
    def loading(self) -> bool:
        """Return True while a local play waits for the media."""
        return self._loading

    @property
    def remote_revision(self) -> int:
        """Return the number of remote transitions applied so far."""
        return self._remote_revision

    def add_event_listener(self, callback: EventCallback) -> Callable[[], None]:
        """
        Register a callback for session events.

        Returns a function to remove the listener.
        """
        self._event_cbs.append(callback)
        return lambda: self._event_cbs.remove(callback)

    def signal_event(self, event: SyncEvent) -> None:
        """Deliver ``event`` to every listener."""
        for callback in list(self._event_cbs):
            try:
                result = callback(event)
            except Exception:
                logger.exception("Error in event listener %s", callback)
                continue
            if asyncio.iscoroutine(result):
                task = asyncio.get_running_loop().create_task(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    def apply(
        self, origin: Origin, *, reposition: bool = False, **changes: Any
    ) -> Transition | None:
        """
        Apply ``changes`` to the playback state and reflect them on the media.

        Returns the transition, or None when nothing changed. An unchanged state
        is not re-tagged, so an echo of our own action leaves no trace.
        """
        previous = self._playback
        current = advance(previous, origin, **changes)
        if current.same_as(previous) and not reposition:
            return None
        return self._commit(Transition(previous, current, origin, reposition))

    def reset_playback(self, track: Track | None, origin: Origin) -> Transition:
        """Start over from a default PlaybackState holding ``track``."""
        current = PlaybackState(current_track=track, origin=origin)
        return self._commit(Transition(self._playback, current, origin))

    def set_room(self, room: Room | None) -> None:
        """Replace the cached room."""
        self.room = room
        self.signal_event(RoomUpdatedEvent(room))

    def clear(self) -> None:
        """Forget the room and playback state."""
        self.seeking = False
        self.set_loading(False)
        self.reset_playback(None, Origin.LOCAL)
        if self.room is not None:
            self.set_room(None)

    def set_loading(self, loading: bool) -> None:
        """Set the loading flag, bounded by the configured timeout."""
        if self._loading_handle is not None:
            self._loading_handle.cancel()
            self._loading_handle = None
        if loading:
            self._loading_handle = asyncio.get_running_loop().call_later(
                self.config.loading_timeout, self._loading_timed_out
            )
        if loading != self._loading:
            self._loading = loading
            self.signal_event(LoadingChangedEvent(loading))

    async def close(self) -> None:
        """Discard all state and release timers, tasks, listeners and the media."""
        self._event_cbs.clear()
        if self._loading_handle is not None:
            self._loading_handle.cancel()
            self._loading_handle = None
        self._loading = False
        await self._stop_position_feed()
        for task in list(self._tasks):
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
        self._playback = PlaybackState()
        self.room = None
        self.seeking = False
        await self.media.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _commit(self, transition: Transition) -> Transition:
        self._playback = transition.current
        if transition.origin is Origin.REMOTE:
            self._remote_revision += 1
        self._drive_media(transition)
        self.signal_event(PlaybackChangedEvent(transition))
        return transition

    def _drive_media(self, transition: Transition) -> None:
        for action in plan_media_actions(transition, seeking=self.seeking):
            match action:
                case LoadTrack(track=track):
                    self.media.load(track)
                    self._start_position_feed()
                case UnloadTrack():
                    self._cancel_position_feed()
                    self.media.unload()
                case SetPosition(position=position):
                    self.media.set_position(position)
                case SetPlaying(playing=playing):
                    self.media.set_playing(playing)

    def _start_position_feed(self) -> None:
        self._cancel_position_feed()
        self._awaiting_ready = True
        loop = asyncio.get_running_loop()
        self._position_task = loop.create_task(self._consume_positions(self.media.positions()))

    def _cancel_position_feed(self) -> None:
        if self._position_task is not None:
            self._position_task.cancel()
            self._position_task = None

    async def _stop_position_feed(self) -> None:
        task = self._position_task
        self._cancel_position_feed()
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    async def _consume_positions(self, samples: AsyncIterator[PositionSample]) -> None:
        try:
            async for sample in samples:
                self._on_position_sample(sample)
        except Exception:
            logger.exception("Media position feed failed")

    def _on_position_sample(self, sample: PositionSample) -> None:
        self.set_loading(False)
        position = sample.position
        if self._awaiting_ready:
            self._awaiting_ready = False
            position = self._sync_media_on_ready(sample)

        state = self._playback
        changes: dict[str, Any] = {}
        if sample.duration is not None and (
            not state.duration_known or sample.duration != state.duration
        ):
            changes["duration"] = sample.duration
            changes["duration_known"] = True
        if not self.seeking:
            changes["position"] = position
        if changes:
            self.apply(Origin.LOCAL, **changes)

    def _sync_media_on_ready(self, sample: PositionSample) -> float:
        """Catch the freshly loaded media up with the state; return its position."""
        state = self._playback
        logger.debug("Media ready for %s", state.track_id)
        if sample.playing != state.playing:
            self.media.set_playing(state.playing)
        if not self.seeking and abs(sample.position - state.position) > READY_SYNC_TOLERANCE:
            self.media.set_position(state.position)
            return state.position
        return sample.position

    def _loading_timed_out(self) -> None:
        self._loading_handle = None
        logger.warning(
            "Media did not report within %.0fs, clearing loading state",
            self.config.loading_timeout,
        )
        if self._loading:
            self._loading = False
            self.signal_event(LoadingChangedEvent(False))
