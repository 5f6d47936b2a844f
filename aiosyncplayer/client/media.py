"""Media adapters bind one playback resource to the synchronization core."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from aiosyncplayer.models import Track

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PositionSample:
    """One observation of the media playhead."""

    position: float
    """Playhead position in seconds."""
    duration: float | None
    """Duration in seconds, None while unknown."""
    playing: bool
    """Whether the media is actually producing output."""


class MediaAdapter(ABC):
    """
    Wraps exactly one playback resource.

    Operations on a resource that is not ready yet are silently ignored; being
    "not ready" is a normal state and never an error. Position reporting is a
    lazy sequence, see ``positions()``.
    """

    def __init__(self, *, interval: float = 0.25) -> None:
        """Initialize the adapter, sampling positions every ``interval`` seconds."""
        self._interval = interval
        self._track: Track | None = None
        self._generation = 0

    @property
    def track(self) -> Track | None:
        """Return the track the resource is bound to."""
        return self._track

    @property
    @abstractmethod
    def ready(self) -> bool:
        """Return True once the resource can report and change its position."""

    @property
    @abstractmethod
    def duration(self) -> float | None:
        """Return the duration in seconds, or None while unknown."""

    @property
    @abstractmethod
    def playing(self) -> bool:
        """Return True while the resource is actually playing."""

    def load(self, track: Track) -> None:
        """Bind the resource to ``track``, ending any running position sequence."""
        logger.debug("Loading track %s", track.id)
        self._track = track
        self._generation += 1
        self._on_load(track)

    def unload(self) -> None:
        """Release the current track, if any."""
        if self._track is None:
            return
        logger.debug("Unloading track %s", self._track.id)
        self._track = None
        self._generation += 1
        self._on_unload()

    async def close(self) -> None:
        """Release the resource and anything held for it."""
        self.unload()

    @abstractmethod
    def get_position(self) -> float | None:
        """Return the playhead position in seconds, or None if not ready."""

    @abstractmethod
    def set_position(self, seconds: float) -> None:
        """Move the playhead."""

    @abstractmethod
    def set_playing(self, playing: bool) -> None:
        """Start or pause playback."""

    @abstractmethod
    def _on_load(self, track: Track) -> None:
        """Start acquiring ``track``."""

    @abstractmethod
    def _on_unload(self) -> None:
        """Release the resource."""

    async def positions(self) -> AsyncIterator[PositionSample]:
        """
        Yield position samples for the currently loaded track.

        The first sample marks the resource as ready. After that a sample is
        produced on every interval while playing and whenever the duration or
        the playing flag changes. The sequence ends when the track is unloaded
        or replaced; call again after the next load to restart it.
        """
        generation = self._generation
        last: PositionSample | None = None
        while generation == self._generation and self._track is not None:
            if self.ready:
                position = self.get_position()
                sample = PositionSample(
                    position=position if position is not None else 0.0,
                    duration=self.duration,
                    playing=self.playing,
                )
                if (
                    last is None
                    or sample.playing
                    or sample.playing != last.playing
                    or sample.duration != last.duration
                ):
                    yield sample
                last = sample
            await asyncio.sleep(self._interval)


class VirtualMediaAdapter(MediaAdapter):
    """
    Media adapter without output that keeps a playhead on a monotonic clock.

    Used headless and in tests. The duration is taken from the catalog track.
    """

    def __init__(
        self,
        *,
        interval: float = 0.25,
        load_delay: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            interval: Seconds between position samples.
            load_delay: Seconds a load takes before the resource is ready.
            clock: Monotonic time source in seconds.
        """
        super().__init__(interval=interval)
        self._load_delay = load_delay
        self._clock = clock
        self._ready = False
        self._ready_handle: asyncio.TimerHandle | None = None
        self._playing = False
        self._anchor_position = 0.0
        self._anchor_time = 0.0

    @property
    def ready(self) -> bool:
        """Return True once the simulated load has finished."""
        return self._ready

    @property
    def duration(self) -> float | None:
        """Return the catalog duration once ready."""
        if not self._ready or self._track is None:
            return None
        duration = self._track.duration
        return duration if duration is not None and duration > 0 else None

    @property
    def playing(self) -> bool:
        """Return True while the playhead advances."""
        self._check_end()
        return self._ready and self._playing

    def get_position(self) -> float | None:
        """Return the playhead position in seconds."""
        if not self._ready:
            return None
        self._check_end()
        return self._position_now()

    def set_position(self, seconds: float) -> None:
        """Move the playhead, clamped to the track."""
        if not self._ready:
            return
        self._anchor_position = self._clamp(seconds)
        self._anchor_time = self._clock()

    def set_playing(self, playing: bool) -> None:
        """Start or freeze the playhead."""
        if not self._ready or playing == self._playing:
            return
        self._anchor_position = self._position_now()
        self._anchor_time = self._clock()
        self._playing = playing

    def _on_load(self, track: Track) -> None:
        self._cancel_ready()
        self._ready = False
        self._playing = False
        self._anchor_position = 0.0
        self._anchor_time = self._clock()
        if self._load_delay <= 0:
            self._ready = True
            return
        loop = asyncio.get_running_loop()
        self._ready_handle = loop.call_later(self._load_delay, self._mark_ready, self._generation)

    def _on_unload(self) -> None:
        self._cancel_ready()
        self._ready = False
        self._playing = False

    def _mark_ready(self, generation: int) -> None:
        self._ready_handle = None
        if generation != self._generation:
            return
        self._ready = True
        self._anchor_time = self._clock()

    def _cancel_ready(self) -> None:
        if self._ready_handle is not None:
            self._ready_handle.cancel()
            self._ready_handle = None

    def _position_now(self) -> float:
        position = self._anchor_position
        if self._playing:
            position += self._clock() - self._anchor_time
        return self._clamp(position)

    def _clamp(self, seconds: float) -> float:
        seconds = max(0.0, seconds)
        duration = self.duration
        if duration is not None:
            seconds = min(seconds, duration)
        return seconds

    def _check_end(self) -> None:
        duration = self.duration
        if self._playing and duration is not None and self._position_now() >= duration:
            self._anchor_position = duration
            self._anchor_time = self._clock()
            self._playing = False
