"""Room membership: create, join, leave and rejoin after reconnects."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, replace

from mashumaro.exceptions import InvalidFieldValue, MissingField

from aiosyncplayer.errors import TransportUnavailableError, ValidationError
from aiosyncplayer.models import (
    ClientEvent,
    JoinRoomAck,
    JoinRoomClientPayload,
    Origin,
    Room,
    RoomStatus,
)

from .events import RoomErrorEvent, RoomStatusChangedEvent
from .session import SyncSession
from .transport import SyncTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class JoinAccepted:
    """The coordinator admitted us to a room."""

    room: Room


@dataclass(frozen=True, slots=True)
class JoinRejected:
    """The coordinator refused the join, or never answered."""

    reason: str


JoinResult = JoinAccepted | JoinRejected


class RoomLifecycle:
    """
    Drives room membership through NO_ROOM, JOINING, IN_ROOM and LEAVING.

    Initial joins, joins after create and rejoins after a reconnect all go
    through ``join_room``. Each join request gets a correlation id; an
    acknowledgement for a request that is no longer the latest one is dropped.
    """

    def __init__(self, session: SyncSession, transport: SyncTransport) -> None:
        """Create the lifecycle for ``session``."""
        self._session = session
        self._transport = transport
        self._status = RoomStatus.NO_ROOM
        self._join_request = 0
        self._credentials: tuple[str, str] | None = None
        self._rejoin_task: asyncio.Task[JoinResult | None] | None = None
        self.last_error: str | None = None
        """Reason of the last refused room request."""

    @property
    def status(self) -> RoomStatus:
        """Return the membership state."""
        return self._status

    @property
    def room_id(self) -> str | None:
        """Return the id of the joined room."""
        return self._session.room.id if self._session.room is not None else None

    async def create_room(self, username: str) -> JoinResult | None:
        """
        Create a room and join it.

        The coordinator does not enroll the creator, so creating always
        continues with a regular join. Returns None if not connected.

        Raises:
            ValidationError: The username is blank.
        """
        username = username.strip()
        if not username:
            raise ValidationError("Please enter a username.")
        self.last_error = None
        try:
            room_id = await self._transport.call(ClientEvent.CREATE_ROOM, username)
        except TransportUnavailableError:
            logger.warning("Cannot create a room while disconnected")
            return None
        except TimeoutError as err:
            return self._reject(str(err))
        if not room_id:
            return self._reject("Coordinator did not return a room id")
        room_id = str(room_id)
        logger.info("Created room %s", room_id)
        self._session.set_room(Room(id=room_id))
        return await self.join_room(room_id, username)

    async def join_room(self, room_id: str, username: str) -> JoinResult | None:
        """
        Join ``room_id`` as ``username``.

        Returns None if not connected or if the request was superseded while it
        was outstanding.

        Raises:
            ValidationError: The room code or the username is blank.
        """
        room_id, username = room_id.strip(), username.strip()
        if not room_id or not username:
            raise ValidationError("Please enter a room code and username.")
        if not self._transport.connected:
            logger.warning("Cannot join room %s while disconnected", room_id)
            return None

        self.last_error = None
        self._join_request += 1
        request = self._join_request
        revision = self._session.remote_revision
        previous_room_id = self.room_id
        self._set_status(RoomStatus.JOINING)
        logger.info("Joining room %s as %s (request #%d)", room_id, username, request)

        try:
            response = await self._transport.call(
                ClientEvent.JOIN_ROOM, JoinRoomClientPayload(room_id=room_id, user=username)
            )
        except TransportUnavailableError:
            if request == self._join_request:
                logger.warning("Connection lost while joining room %s", room_id)
                self._set_status(RoomStatus.NO_ROOM)
            return None
        except TimeoutError as err:
            response = {"error": str(err)}

        if request != self._join_request:
            logger.debug("Dropping stale acknowledgement of join request #%d", request)
            return None
        try:
            ack = JoinRoomAck.from_dict(response if isinstance(response, dict) else {})
        except (MissingField, InvalidFieldValue, TypeError, ValueError):
            logger.debug("Malformed join acknowledgement: %s", response)
            ack = JoinRoomAck()
        if ack.error is not None or ack.room is None:
            return self._reject(ack.error or "Invalid response from coordinator")

        room = replace(ack.room, id=room_id)
        self._credentials = (room_id, username)
        self._session.username = username
        self._session.set_room(room)
        if self._session.remote_revision != revision and previous_room_id in (None, room_id):
            # A broadcast newer than this acknowledgement was applied already
            logger.debug("Keeping playback state updated while joining")
        else:
            self._session.reset_playback(room.current_track, Origin.REMOTE)
        self._set_status(RoomStatus.IN_ROOM)
        logger.info("Joined room %s", room_id)
        return JoinAccepted(room)

    async def leave_room(self) -> None:
        """Leave the room locally; the coordinator is not told."""
        if self._status is RoomStatus.NO_ROOM and self._session.room is None:
            return
        self._set_status(RoomStatus.LEAVING)
        self._join_request += 1
        self._credentials = None
        self._cancel_rejoin()
        self._session.clear()
        logger.info("Left room")
        self._set_status(RoomStatus.NO_ROOM)

    def on_connection_changed(self, connected: bool) -> None:
        """Rejoin the previous room when the transport comes back."""
        if not connected:
            return
        if self._credentials is None:
            return
        room_id, username = self._credentials
        logger.info("Reconnected, rejoining room %s", room_id)
        self._cancel_rejoin()
        # Not awaited here, other messages must keep flowing while the ack is pending
        self._rejoin_task = asyncio.get_running_loop().create_task(
            self.join_room(room_id, username)
        )

    async def close(self) -> None:
        """Forget the membership and cancel a pending rejoin."""
        task = self._rejoin_task
        self._cancel_rejoin()
        self._join_request += 1
        self._credentials = None
        self._status = RoomStatus.NO_ROOM
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _reject(self, reason: str) -> JoinRejected:
        logger.warning("Room request rejected: %s", reason)
        self.last_error = reason
        self._credentials = None
        self._session.clear()
        self._set_status(RoomStatus.NO_ROOM)
        self._session.signal_event(RoomErrorEvent(reason))
        return JoinRejected(reason)

    def _set_status(self, status: RoomStatus) -> None:
        if status is self._status:
            return
        self._status = status
        self._session.signal_event(RoomStatusChangedEvent(status))

    def _cancel_rejoin(self) -> None:
        if self._rejoin_task is not None and not self._rejoin_task.done():
            self._rejoin_task.cancel()
        self._rejoin_task = None
