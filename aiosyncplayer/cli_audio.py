"""Audio playback for the SyncPlayer CLI."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Iterator
from typing import Final

import av
import sounddevice
from sounddevice import CallbackFlags

from aiosyncplayer.client import MediaAdapter
from aiosyncplayer.models import Track

logger = logging.getLogger(__name__)


class StreamAudioPlayer(MediaAdapter):
    """
    Media adapter that decodes a track's network stream and plays it locally.

    Decoding runs on a worker thread (PyAV), output on the sounddevice callback
    thread; both only share the PCM buffer and the playhead counters, guarded by
    one lock. Readiness is reported back to the event loop thread.

    Attributes:
        _loop: Event loop the adapter is driven from.
        _resolve_url: Maps a track to the URL of its media stream.
    """

    _SAMPLE_RATE: Final[int] = 44_100
    _CHANNELS: Final[int] = 2
    _FRAME_SIZE: Final[int] = 4
    """Bytes per frame of signed 16 bit stereo PCM."""
    _MAX_BUFFERED_SECONDS: Final[float] = 3.0
    """Decoded audio kept ahead of the playhead."""
    _DECODER_JOIN_TIMEOUT: Final[float] = 2.0

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        resolve_url: Callable[[Track], str | None],
        *,
        interval: float = 0.25,
    ) -> None:
        """
        Initialize the audio player.

        Args:
            loop: The asyncio event loop that drives this adapter.
            resolve_url: Returns the stream URL of a track, or None if it has none.
            interval: Seconds between position samples.
        """
        super().__init__(interval=interval)
        self._loop = loop
        self._resolve_url = resolve_url
        self._lock = threading.Lock()
        self._buffer = bytearray()
        self._frames_played = 0
        self._base_position = 0.0
        self._seek_request: float | None = None
        self._eof = False
        self._ready = False
        self._playing = False
        self._duration: float | None = None
        self._stop_event: threading.Event | None = None
        self._decoder: threading.Thread | None = None
        self._stream: sounddevice.RawOutputStream | None = None

    @property
    def ready(self) -> bool:
        """Return True once the stream was opened."""
        return self._ready

    @property
    def duration(self) -> float | None:
        """Return the container duration, if it declares one."""
        return self._duration

    @property
    def playing(self) -> bool:
        """Return True while audio is being output."""
        with self._lock:
            drained = self._eof and not self._buffer
        return self._ready and self._playing and not drained

    def get_position(self) -> float | None:
        """Return the position of the audio currently being output."""
        if not self._ready:
            return None
        with self._lock:
            return self._base_position + self._frames_played / self._SAMPLE_RATE

    def set_position(self, seconds: float) -> None:
        """Ask the decoder to continue from ``seconds``."""
        if not self._ready:
            return
        seconds = max(0.0, seconds)
        if self._duration is not None:
            seconds = min(seconds, self._duration)
        with self._lock:
            self._seek_request = seconds
            self._buffer.clear()
            self._base_position = seconds
            self._frames_played = 0
            self._eof = False

    def set_playing(self, playing: bool) -> None:
        """Start or pause output; decoding continues while paused."""
        if not self._ready:
            return
        self._playing = playing

    async def close(self) -> None:
        """Stop playback, wait for the decoder and release the sound device."""
        decoder = self._decoder
        self.unload()
        self._stop_decoder()
        self._close_stream()
        if decoder is not None and decoder.is_alive():
            await self._loop.run_in_executor(None, decoder.join, self._DECODER_JOIN_TIMEOUT)
            if decoder.is_alive():
                logger.warning("Decoder thread did not stop in time")

    def _on_load(self, track: Track) -> None:
        self._stop_decoder()
        self._reset()
        url = self._resolve_url(track)
        if url is None:
            logger.warning("No stream URL for track %s", track.id)
            return
        self._open_stream()
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._decoder = threading.Thread(
            target=self._decode,
            args=(url, stop_event, self._generation),
            name="syncplayer-decoder",
            daemon=True,
        )
        self._decoder.start()

    def _on_unload(self) -> None:
        self._stop_decoder()
        self._reset()

    def _reset(self) -> None:
        with self._lock:
            self._buffer.clear()
            self._frames_played = 0
            self._base_position = 0.0
            self._seek_request = None
            self._eof = False
        self._ready = False
        self._playing = False
        self._duration = None

    def _mark_ready(self, generation: int, duration: float | None) -> None:
        if generation != self._generation:
            return
        self._duration = duration
        self._ready = True
        logger.debug("Stream ready (duration %s)", duration)

    def _stop_decoder(self) -> threading.Thread | None:
        if self._stop_event is not None:
            self._stop_event.set()
            self._stop_event = None
        decoder, self._decoder = self._decoder, None
        return decoder

    def _open_stream(self) -> None:
        if self._stream is not None:
            return
        self._stream = sounddevice.RawOutputStream(
            samplerate=self._SAMPLE_RATE,
            channels=self._CHANNELS,
            dtype="int16",
            blocksize=2048,
            callback=self._audio_callback,
            latency="high",
        )
        self._stream.start()

    def _close_stream(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        except sounddevice.PortAudioError:  # pragma: no cover - device gone
            logger.debug("Error closing audio stream", exc_info=True)
        self._stream = None

    def _decode(self, url: str, stop_event: threading.Event, generation: int) -> None:
        """Worker thread: decode ``url`` into the PCM buffer until stopped."""
        try:
            container = av.open(url, timeout=10.0)
        except (av.FFmpegError, OSError) as err:
            logger.warning("Cannot open stream %s: %s", url, err)
            return
        with container:
            if not container.streams.audio:
                logger.warning("Stream %s has no audio", url)
                return
            stream = container.streams.audio[0]
            duration = container.duration / av.time_base if container.duration else None
            self._loop.call_soon_threadsafe(self._mark_ready, generation, duration)
            try:
                self._decode_loop(container, stream, stop_event)
            except av.FFmpegError:
                logger.exception("Decoding %s failed", url)

    def _decode_loop(
        self,
        container: av.container.InputContainer,
        stream: av.AudioStream,
        stop_event: threading.Event,
    ) -> None:
        max_bytes = int(self._MAX_BUFFERED_SECONDS * self._SAMPLE_RATE) * self._FRAME_SIZE
        resampler = self._new_resampler()
        frames: Iterator[av.AudioFrame] = container.decode(stream)
        skip_until: float | None = None

        while not stop_event.is_set():
            with self._lock:
                # A superseded decoder must not take the next track's seek
                if stop_event.is_set():
                    return
                seek, self._seek_request = self._seek_request, None
                buffered = len(self._buffer)
            if seek is not None:
                container.seek(int(seek / stream.time_base), stream=stream)
                frames = container.decode(stream)
                resampler = self._new_resampler()
                skip_until = seek
                continue
            if buffered >= max_bytes:
                stop_event.wait(0.05)
                continue

            frame = next(frames, None)
            if frame is None:
                with self._lock:
                    if stop_event.is_set():
                        return
                    self._eof = True
                stop_event.wait(0.1)
                continue
            if skip_until is not None and frame.time is not None:
                # Seeks land on the previous keyframe, drop what lies before the target
                if frame.time + frame.samples / frame.sample_rate < skip_until:
                    continue
                skip_until = None

            for out in resampler.resample(frame):
                data = bytes(out.planes[0])[: out.samples * self._FRAME_SIZE]
                with self._lock:
                    if self._seek_request is None and not stop_event.is_set():
                        self._buffer.extend(data)

    def _new_resampler(self) -> av.AudioResampler:
        return av.AudioResampler(format="s16", layout="stereo", rate=self._SAMPLE_RATE)

    def _audio_callback(
        self,
        outdata: memoryview,
        frames: int,
        time: sounddevice.CallbackTimeInfo,  # noqa: ARG002
        status: CallbackFlags,
    ) -> None:
        """Fill the output buffer from the PCM buffer, or with silence when paused."""
        if status:
            logger.debug("Audio callback status: %s", status)

        bytes_needed = frames * self._FRAME_SIZE
        output_buffer = memoryview(outdata).cast("B")
        with self._lock:
            if self._ready and self._playing:
                chunk = bytes(self._buffer[:bytes_needed])
                del self._buffer[:bytes_needed]
                self._frames_played += len(chunk) // self._FRAME_SIZE
            else:
                chunk = b""
        output_buffer[: len(chunk)] = chunk
        if len(chunk) < bytes_needed:
            output_buffer[len(chunk) : bytes_needed] = b"\x00" * (bytes_needed - len(chunk))
