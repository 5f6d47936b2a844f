"""Command-line interface for listening along in a SyncPlayer room."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, cast

if TYPE_CHECKING:
    from zeroconf import ServiceListener

import aioconsole
from aiohttp import ClientError
from zeroconf.asyncio import AsyncServiceBrowser, AsyncZeroconf

from aiosyncplayer.catalog import CatalogClient
from aiosyncplayer.client import (
    ConnectionChangedEvent,
    JoinAccepted,
    JoinRejected,
    JoinResult,
    LoadingChangedEvent,
    MediaAdapter,
    NextRequestedEvent,
    PlaybackChangedEvent,
    RoomErrorEvent,
    RoomStatusChangedEvent,
    RoomUpdatedEvent,
    SyncConfig,
    SyncEvent,
    SyncPlayerClient,
    VirtualMediaAdapter,
)
from aiosyncplayer.client.config import DEFAULT_DRIFT_THRESHOLD
from aiosyncplayer.errors import TransportUnavailableError, ValidationError
from aiosyncplayer.models import Origin, Track

logger = logging.getLogger(__name__)


SERVICE_TYPE = "_syncplayer._tcp.local."
DEFAULT_STREAM_URL_TEMPLATE = "{api_url}/stream/{id}"


@dataclass
class CLIState:
    """Holds what the CLI needs between commands."""

    username: str | None = None
    search_results: list[Track] = field(default_factory=list)

    def describe(self, client: SyncPlayerClient) -> str:
        """Return a human-friendly description of the client state."""
        lines: list[str] = [f"Connection: {'up' if client.connected else 'down'}"]
        lines.append(f"Room: {client.room.id if client.room else '-'} ({client.status.value})")
        if client.username:
            lines.append(f"Name: {client.username}")
        playback = client.playback
        if playback.current_track is not None:
            lines.append(f"Now playing: {playback.current_track.describe()}")
            duration = format_time(playback.duration) if playback.duration_known else "--:--"
            lines.append(f"Progress: {format_time(playback.position)} / {duration}")
            lines.append(f"State: {'playing' if playback.playing else 'paused'}")
            if playback.last_actor:
                lines.append(f"Last action by: {playback.last_actor}")
        else:
            lines.append("Nothing playing")
        if client.loading:
            lines.append("Loading...")
        return "\n".join(lines)


def format_time(seconds: float) -> str:
    """Format seconds as ``m:ss``."""
    total = max(0, int(seconds))
    return f"{total // 60}:{total % 60:02d}"


def parse_time(value: str) -> float:
    """Parse ``ss``, ``m:ss`` or ``h:mm:ss`` into seconds."""
    seconds = 0.0
    for part in value.split(":"):
        seconds = seconds * 60 + float(part)
    if seconds < 0:
        raise ValueError(value)
    return seconds


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the syncplayer client."""
    parser = argparse.ArgumentParser(description="Listen along in a SyncPlayer room")
    parser.add_argument(
        "--url",
        default=None,
        help="Socket.IO URL of the coordinator. If omitted, discover via mDNS.",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Base URL of the catalog API (default: <url>/api)",
    )
    parser.add_argument("--name", default=None, help="Display name used in rooms")
    room_group = parser.add_mutually_exclusive_group()
    room_group.add_argument("--room", default=None, help="Room code to join on startup")
    room_group.add_argument(
        "--create", action="store_true", help="Create a new room on startup"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level to use",
    )
    parser.add_argument(
        "--drift-threshold",
        type=float,
        default=DEFAULT_DRIFT_THRESHOLD,
        help="Seconds of drift tolerated before jumping to the room position",
    )
    parser.add_argument(
        "--no-audio",
        action="store_true",
        help="Do not output audio, only follow the room position",
    )
    parser.add_argument(
        "--stream-url-template",
        default=DEFAULT_STREAM_URL_TEMPLATE,
        help=(
            "Media URL for tracks without a stream URL; "
            "{id} and {api_url} are substituted"
        ),
    )
    return parser.parse_args(argv)


def _build_service_url(host: str, port: int, properties: dict[bytes, bytes | None]) -> str:
    """Construct the coordinator URL from mDNS service info."""
    path_raw = properties.get(b"path")
    path = path_raw.decode("utf-8", "ignore") if isinstance(path_raw, bytes) else ""
    if path and not path.startswith("/"):
        path = "/" + path
    host_fmt = f"[{host}]" if ":" in host else host
    return f"http://{host_fmt}:{port}{path.rstrip('/')}"


def make_stream_url_resolver(api_url: str, template: str) -> Callable[[Track], str | None]:
    """Return a function mapping a track to the URL its audio is streamed from."""

    def resolve(track: Track) -> str | None:
        if track.stream_url:
            return track.stream_url
        if not template:
            return None
        return template.format(id=track.id, api_url=api_url)

    return resolve


class _ServiceDiscoveryListener:
    """
    Tracks coordinators advertised via mDNS.

    The current URL is the most recently resolved coordinator. When that one
    withdraws its advertisement, another still advertised coordinator takes
    its place.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._services: dict[str, str] = {}
        self._current_name: str | None = None
        self._first_result: asyncio.Future[str] = loop.create_future()
        self.tasks: set[asyncio.Task[None]] = set()

    @property
    def current_url(self) -> str | None:
        """Get the current discovered coordinator URL, or None if there is none."""
        if self._current_name is None:
            return None
        return self._services.get(self._current_name)

    async def wait_for_first(self) -> str:
        """Wait for the first coordinator to be discovered."""
        return await self._first_result

    async def _process_service_info(
        self, zeroconf: AsyncZeroconf, service_type: str, name: str
    ) -> None:
        info = await zeroconf.async_get_service_info(service_type, name)
        if info is None or info.port is None:
            logger.debug("Could not resolve coordinator %s", name)
            return
        addresses = info.parsed_addresses()
        if not addresses:
            return
        url = _build_service_url(addresses[0], info.port, info.properties)
        logger.debug("Discovered coordinator %s at %s", name, url)
        self._services[name] = url
        self._current_name = name
        if not self._first_result.done():
            self._first_result.set_result(url)

    def _schedule(self, zeroconf: AsyncZeroconf, service_type: str, name: str) -> None:
        task = self._loop.create_task(self._process_service_info(zeroconf, service_type, name))
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    def add_service(self, zeroconf: AsyncZeroconf, service_type: str, name: str) -> None:
        self._schedule(zeroconf, service_type, name)

    def update_service(self, zeroconf: AsyncZeroconf, service_type: str, name: str) -> None:
        self._schedule(zeroconf, service_type, name)

    def remove_service(self, _zeroconf: AsyncZeroconf, _service_type: str, name: str) -> None:
        self._services.pop(name, None)
        if name == self._current_name:
            self._current_name = next(reversed(self._services), None)


class ServiceDiscovery:
    """Browses the local network for SyncPlayer coordinators."""

    def __init__(self) -> None:
        """Initialize the service discovery manager."""
        self._listener: _ServiceDiscoveryListener | None = None
        self._browser: AsyncServiceBrowser | None = None
        self._zeroconf: AsyncZeroconf | None = None

    async def start(self) -> None:
        """Start browsing; keeps running until stop() is called."""
        loop = asyncio.get_running_loop()
        self._listener = _ServiceDiscoveryListener(loop)
        self._zeroconf = AsyncZeroconf()
        await self._zeroconf.__aenter__()

        try:
            self._browser = AsyncServiceBrowser(
                self._zeroconf.zeroconf, SERVICE_TYPE, cast("ServiceListener", self._listener)
            )
        except Exception:
            await self.stop()
            raise

    async def wait_for_first_server(self) -> str:
        """Wait indefinitely for the first coordinator to be discovered."""
        if self._listener is None:
            raise RuntimeError("Discovery not started. Call start() first.")
        return await self._listener.wait_for_first()

    def current_url(self) -> str | None:
        """Get the current discovered coordinator URL, or None."""
        return self._listener.current_url if self._listener else None

    async def stop(self) -> None:
        """Stop discovery and clean up resources."""
        if self._browser:
            await self._browser.async_cancel()
            self._browser = None
        if self._zeroconf:
            await self._zeroconf.__aexit__(None, None, None)
            self._zeroconf = None
        self._listener = None


async def _sleep_interruptible(duration: float, keyboard_task: asyncio.Task[None]) -> bool:
    """Sleep with keyboard interrupt support. Return True if interrupted."""
    remaining = duration
    while remaining > 0 and not keyboard_task.done():
        await asyncio.sleep(min(0.5, remaining))
        remaining -= 0.5
    return keyboard_task.done()


async def _connect_with_backoff(
    client: SyncPlayerClient,
    discovery: ServiceDiscovery | None,
    url: str,
    keyboard_task: asyncio.Task[None],
) -> str | None:
    """
    Connect to the coordinator, retrying with exponential backoff.

    Once connected, Socket.IO reconnects on its own and the client rejoins its
    room, so this only covers the initial connection. A coordinator that
    reappears under a new mDNS address is retried immediately.

    Returns the URL connected to, or None if the user quit first.
    """
    error_backoff = 1.0
    max_backoff = 300.0

    while not keyboard_task.done():
        try:
            await client.connect(url)
        except (TimeoutError, OSError, ClientError, TransportUnavailableError) as err:
            logger.debug(
                "Connection error (%s), retrying in %.0fs", type(err).__name__, error_backoff
            )
            _print_event(f"Connection error, retrying in {error_backoff:.0f}s...")
            if await _sleep_interruptible(error_backoff, keyboard_task):
                return None
            current_url = discovery.current_url() if discovery else None
            if current_url and current_url != url:
                logger.info("Coordinator URL changed to %s, reconnecting immediately", current_url)
                url = current_url
                error_backoff = 1.0
            else:
                error_backoff = min(error_backoff * 2, max_backoff)
        else:
            logger.info("Connected to %s", url)
            _print_event(f"Connected to {url}")
            return url
    return None


def _handle_event(event: SyncEvent) -> None:
    match event:
        case PlaybackChangedEvent(transition=transition):
            if transition.origin is not Origin.REMOTE:
                return
            previous, current = transition.previous, transition.current
            actor = f" ({current.last_actor})" if current.last_actor else ""
            if transition.track_changed and current.current_track is not None:
                _print_event(f"Now playing: {current.current_track.describe()}{actor}")
            elif current.playing != previous.playing:
                verb = "Playing" if current.playing else "Paused"
                _print_event(f"{verb} at {format_time(current.position)}{actor}")
            elif current.position != previous.position:
                _print_event(f"Jumped to {format_time(current.position)}")
        case LoadingChangedEvent(loading=loading):
            if loading:
                _print_event("Loading...")
        case RoomUpdatedEvent(room=room):
            if room is not None:
                names = ", ".join(p.name for p in room.participants) or "nobody"
                _print_event(f"Room {room.id}: {names}; {len(room.queue)} queued")
        case RoomStatusChangedEvent(status=status):
            logger.debug("Room status: %s", status.value)
        case RoomErrorEvent(message=message):
            _print_event(f"Room error: {message}")
        case NextRequestedEvent(user=user):
            _print_event(f"{user or 'Someone'} skipped to the next track")
        case ConnectionChangedEvent(connected=connected):
            _print_event("Connected" if connected else "Connection lost, reconnecting...")


def _report_join(result: JoinResult | None) -> None:
    match result:
        case JoinAccepted(room=room):
            _print_event(f"Joined room {room.id}")
        case JoinRejected(reason=reason):
            _print_event(f"Could not join: {reason}")
        case None:
            _print_event("Not connected")


async def _keyboard_loop(
    client: SyncPlayerClient, catalog: CatalogClient, state: CLIState
) -> None:
    try:
        while True:
            try:
                line = await aioconsole.ainput()
            except EOFError:
                break
            raw_line = line.strip()
            if not raw_line:
                continue
            keyword, _, rest = raw_line.partition(" ")
            keyword = keyword.lower()
            rest = rest.strip()
            if keyword in {"quit", "exit", "q"}:
                break
            try:
                await _run_command(client, catalog, state, keyword, rest)
            except ValidationError as err:
                _print_event(str(err))
    except asyncio.CancelledError:
        logger.debug("Keyboard loop cancelled, exiting gracefully")
        raise


async def _run_command(  # noqa: PLR0912
    client: SyncPlayerClient,
    catalog: CatalogClient,
    state: CLIState,
    keyword: str,
    rest: str,
) -> None:
    if keyword in {"play", "p"}:
        await client.play()
    elif keyword == "pause":
        await client.pause()
    elif keyword in {"toggle", "space"}:
        await client.controls.toggle_play()
    elif keyword == "seek":
        await _seek(client, rest)
    elif keyword in {"next", "n"}:
        await client.next()
    elif keyword == "search":
        state.search_results = await catalog.search(rest)
        if not state.search_results:
            _print_event("No results")
        for index, track in enumerate(state.search_results, start=1):
            _print_event(f"{index:>2}. {track.describe()}")
    elif keyword == "pick":
        track = _pick(state.search_results, rest)
        if track is not None:
            await client.play_track(track)
    elif keyword == "queue":
        _print_queue(client, rest)
        if rest and client.room is not None:
            track = _pick(client.room.queue, rest)
            if track is not None:
                await client.play_track(track)
    elif keyword == "who":
        if client.room is None:
            _print_event("Not in a room")
        else:
            for participant in client.room.participants:
                _print_event(f"- {participant.name}")
    elif keyword == "name":
        state.username = rest or None
        _print_event(f"Name: {state.username or '-'}")
    elif keyword == "create":
        _report_join(await client.create_room(rest or state.username or ""))
    elif keyword == "join":
        code, _, name = rest.partition(" ")
        _report_join(await client.join_room(code, name.strip() or state.username or ""))
    elif keyword == "leave":
        await client.leave_room()
        _print_event("Left the room")
    elif keyword in {"status", "s"}:
        _print_event(state.describe(client))
    else:
        _print_event("Unknown command")


async def _seek(client: SyncPlayerClient, value: str) -> None:
    if not value:
        _print_event("Usage: seek <seconds|m:ss|+s|-s>")
        return
    try:
        if value[0] in "+-":
            target = client.playback.position + (1 if value[0] == "+" else -1) * parse_time(
                value[1:]
            )
        else:
            target = parse_time(value)
    except ValueError:
        _print_event("Invalid position")
        return
    await client.seek(target)


def _pick(tracks: list[Track], value: str) -> Track | None:
    try:
        index = int(value)
    except ValueError:
        _print_event("Usage: pick <number>")
        return None
    if not 1 <= index <= len(tracks):
        _print_event("No such entry")
        return None
    return tracks[index - 1]


def _print_queue(client: SyncPlayerClient, rest: str) -> None:
    if rest:
        return
    if client.room is None or not client.room.queue:
        _print_event("Queue is empty")
        return
    for index, track in enumerate(client.room.queue, start=1):
        _print_event(f"{index:>2}. {track.describe()}")


def _build_media(args: argparse.Namespace, api_url: str, config: SyncConfig) -> MediaAdapter:
    if args.no_audio:
        return VirtualMediaAdapter(interval=config.position_interval)
    # Imported lazily so headless use does not need PortAudio
    from aiosyncplayer.cli_audio import StreamAudioPlayer  # noqa: PLC0415

    return StreamAudioPlayer(
        asyncio.get_running_loop(),
        make_stream_url_resolver(api_url, args.stream_url_template),
        interval=config.position_interval,
    )


async def _enter_startup_room(
    client: SyncPlayerClient, args: argparse.Namespace, state: CLIState
) -> None:
    if not (args.create or args.room):
        return
    try:
        if args.create:
            _report_join(await client.create_room(state.username or ""))
        else:
            _report_join(await client.join_room(args.room, state.username or ""))
    except ValidationError as err:
        _print_event(str(err))


async def main_async(argv: Sequence[str] | None = None) -> int:
    """Entry point executing the asynchronous CLI workflow."""
    args = parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        config = SyncConfig(drift_threshold=args.drift_threshold)
    except ValueError as err:
        _print_event(str(err))
        return 2

    state = CLIState(username=args.name)
    discovery: ServiceDiscovery | None = None
    url = args.url
    if url is None:
        discovery = ServiceDiscovery()
        await discovery.start()

    try:
        if url is None:
            assert discovery is not None
            logger.info("Waiting for mDNS discovery of a coordinator...")
            _print_event("Searching for a SyncPlayer coordinator...")
            try:
                url = await discovery.wait_for_first_server()
            except Exception:
                logger.exception("Failed to discover coordinator")
                return 1
            _print_event(f"Found coordinator at {url}")

        api_url = args.api_url or f"{url.rstrip('/')}/api"
        media = _build_media(args, api_url, config)
        client = SyncPlayerClient(media, config=config)
        client.add_event_listener(_handle_event)
        catalog = CatalogClient(api_url)

        _print_instructions()
        keyboard_task = asyncio.create_task(_keyboard_loop(client, catalog, state))

        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            logger.debug("Received interrupt signal, shutting down...")
            keyboard_task.cancel()

        loop.add_signal_handler(signal.SIGINT, signal_handler)

        try:
            if await _connect_with_backoff(client, discovery, url, keyboard_task):
                await _enter_startup_room(client, args, state)
            await keyboard_task
        except asyncio.CancelledError:  # pragma: no cover - cancellation path
            logger.debug("CLI cancelled")
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            await client.disconnect()
            await catalog.close()
    finally:
        if discovery is not None:
            await discovery.stop()

    return 0


def _print_event(message: str) -> None:
    print(message, flush=True)  # noqa: T201


def _print_instructions() -> None:
    print(  # noqa: T201
        (
            "Commands: play(p), pause, toggle, seek <pos|+s|-s>, next(n), search <text>, "
            "pick <n>, queue [n], who, name <name>, create [name], join <code> [name], "
            "leave, status(s), quit(q)"
        ),
        flush=True,
    )


def main() -> int:
    """Run the CLI client."""
    return asyncio.run(main_async(sys.argv[1:]))


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
