"""Socket.io connection to the coordinator."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any

import socketio
from mashumaro import DataClassDictMixin
from socketio import exceptions as socketio_exceptions

from aiosyncplayer.errors import TransportUnavailableError
from aiosyncplayer.models import ClientEvent, ServerEvent

from .config import SyncConfig

logger = logging.getLogger(__name__)

MessageCallback = Callable[[ServerEvent, Any], Awaitable[None] | None]
ConnectionCallback = Callable[[bool], Awaitable[None] | None]

_CONNECTED = "connected"
_DISCONNECTED = "disconnected"


class SyncTransport:
    """
    Bidirectional message transport to the coordinator.

    Inbound messages and connection changes go through a single queue and are
    handed to listeners by one dispatch task, so they are applied strictly in
    arrival order. Emits while disconnected are dropped instead of raising.
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        *,
        sio: socketio.AsyncClient | None = None,
    ) -> None:
        """Create a transport; ``sio`` overrides the socket.io client used."""
        self._config = config or SyncConfig()
        self._sio = sio or socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=0,
            reconnection_delay=self._config.reconnection_delay,
            reconnection_delay_max=self._config.reconnection_delay_max,
            logger=False,
        )
        self._inbox: asyncio.Queue[tuple[ServerEvent | str, Any]] = asyncio.Queue()
        self._dispatch_task: asyncio.Task[None] | None = None
        self._message_cbs: list[MessageCallback] = []
        self._connection_cbs: list[ConnectionCallback] = []
        self._request_id = 0

        for event in ServerEvent:
            self._sio.on(event.value, self._make_handler(event))
        self._sio.on("connect", self._on_connect)
        self._sio.on("disconnect", self._on_disconnect)

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    @property
    def connected(self) -> bool:
        """Return True if the coordinator connection is established."""
        return bool(self._sio.connected)

    async def connect(self, url: str) -> None:
        """Connect to the coordinator at ``url``; lost connections are retried."""
        if self.connected:
            logger.debug("Already connected")
            return
        if self._dispatch_task is None:
            self._dispatch_task = asyncio.get_running_loop().create_task(self._dispatch_loop())
        logger.info("Connecting to coordinator at %s", url)
        try:
            await self._sio.connect(
                url,
                transports=["websocket", "polling"],
                wait_timeout=self._config.request_timeout,
            )
        except socketio_exceptions.ConnectionError as err:
            raise TransportUnavailableError(f"Could not connect to {url}: {err}") from err

    async def disconnect(self) -> None:
        """Close the connection and stop dispatching."""
        if self._dispatch_task is not None:
            self._dispatch_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._dispatch_task
            self._dispatch_task = None
        await self._sio.disconnect()
        while not self._inbox.empty():
            self._inbox.get_nowait()

    async def emit(self, event: ClientEvent, payload: DataClassDictMixin | str) -> bool:
        """
        Send a fire-and-forget message.

        Returns False, without raising, when there is no connection.
        """
        if not self.connected:
            logger.debug("Not connected, dropping %s message", event.value)
            return False
        data = payload.to_dict() if isinstance(payload, DataClassDictMixin) else payload
        await self._sio.emit(event.value, data)
        return True

    async def call(
        self,
        event: ClientEvent,
        payload: DataClassDictMixin | str,
        *,
        timeout: float | None = None,
    ) -> Any:
        """
        Send a request and wait for its acknowledgement.

        Raises:
            TransportUnavailableError: There is no connection.
            TimeoutError: The coordinator did not acknowledge in time.
        """
        if not self.connected:
            raise TransportUnavailableError(f"Cannot send {event.value}: not connected")
        self._request_id += 1
        request_id = self._request_id
        data = payload.to_dict() if isinstance(payload, DataClassDictMixin) else payload
        timeout = timeout if timeout is not None else self._config.request_timeout
        logger.debug("Request #%d: %s", request_id, event.value)
        try:
            response = await self._sio.call(event.value, data, timeout=timeout)
        except socketio_exceptions.TimeoutError as err:
            raise TimeoutError(
                f"Request #{request_id} ({event.value}) not acknowledged within {timeout:.0f}s"
            ) from err
        except (
            socketio_exceptions.BadNamespaceError,
            socketio_exceptions.DisconnectedError,
        ) as err:
            raise TransportUnavailableError(f"Connection lost during {event.value}") from err
        logger.debug("Request #%d acknowledged", request_id)
        return response

    def add_message_listener(self, callback: MessageCallback) -> Callable[[], None]:
        """
        Register a callback invoked for every inbound message.

        Returns a function to remove the listener.
        """
        self._message_cbs.append(callback)
        return lambda: self._message_cbs.remove(callback)

    def add_connection_listener(self, callback: ConnectionCallback) -> Callable[[], None]:
        """
        Register a callback invoked with True on (re)connect and False on loss.

        Returns a function to remove the listener.
        """
        self._connection_cbs.append(callback)
        return lambda: self._connection_cbs.remove(callback)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _make_handler(self, event: ServerEvent) -> Callable[..., None]:
        def handler(*args: Any) -> None:
            self._inbox.put_nowait((event, args[0] if args else None))

        return handler

    def _on_connect(self) -> None:
        logger.info("Connected to coordinator")
        self._inbox.put_nowait((_CONNECTED, None))

    def _on_disconnect(self, *_args: Any) -> None:
        logger.info("Disconnected from coordinator")
        self._inbox.put_nowait((_DISCONNECTED, None))

    async def _dispatch_loop(self) -> None:
        while True:
            name, data = await self._inbox.get()
            if isinstance(name, ServerEvent):
                for callback in list(self._message_cbs):
                    await self._run_callback(callback, name, data)
            else:
                for callback in list(self._connection_cbs):
                    await self._run_callback(callback, name == _CONNECTED)

    async def _run_callback(self, callback: Callable[..., Any], *args: Any) -> None:
        try:
            result = callback(*args)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.exception("Error in transport callback %s", callback)
