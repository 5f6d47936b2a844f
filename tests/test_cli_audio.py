"""Tests for the decoder thread handling of the CLI audio player."""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import pytest

try:
    from aiosyncplayer.cli_audio import StreamAudioPlayer
except OSError:  # sounddevice raises when the PortAudio library is missing
    pytest.skip("PortAudio library not available", allow_module_level=True)


class LateStopEvent(threading.Event):
    """Reports unset once, as if stopped right after the loop condition passed."""

    def __init__(self) -> None:
        super().__init__()
        self.checks = 0

    def is_set(self) -> bool:
        self.checks += 1
        return self.checks > 1


class FakeContainer:
    def __init__(self) -> None:
        self.seeks: list[int] = []

    def decode(self, stream: Any) -> Any:
        return iter(())

    def seek(self, offset: int, stream: Any = None) -> None:
        self.seeks.append(offset)


class FakeStream:
    time_base = 0.001


@pytest.fixture
async def player() -> StreamAudioPlayer:
    return StreamAudioPlayer(asyncio.get_running_loop(), lambda track: None)


async def test_stopped_decoder_leaves_seek_for_next_track(player: StreamAudioPlayer) -> None:
    container = FakeContainer()
    player._seek_request = 42.0

    player._decode_loop(container, FakeStream(), LateStopEvent())  # type: ignore[arg-type]

    assert player._seek_request == 42.0
    assert container.seeks == []


async def test_stopped_decoder_does_not_flag_end_of_stream(player: StreamAudioPlayer) -> None:
    stop_event = threading.Event()

    class StopAtEnd(FakeContainer):
        def decode(self, stream: Any) -> Any:
            yield from ()
            stop_event.set()

    player._decode_loop(StopAtEnd(), FakeStream(), stop_event)  # type: ignore[arg-type]

    assert not player._eof


async def test_close_waits_for_decoder(player: StreamAudioPlayer) -> None:
    stop_event = threading.Event()
    decoder = threading.Thread(target=stop_event.wait, daemon=True)
    decoder.start()
    player._stop_event = stop_event
    player._decoder = decoder

    await player.close()

    assert not decoder.is_alive()
    assert player._decoder is None
    assert player._stop_event is None
