"""
Room and track models shared by the catalog and the coordinator protocol.

Tracks come from the catalog and are immutable once fetched. Rooms are owned by
the coordinator; the client keeps a cached copy that roster and queue pushes
refresh.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin


@dataclass(frozen=True)
class Track(DataClassORJSONMixin):
    """A playable track as returned by the catalog."""

    id: str
    """Catalog identifier of the track."""
    title: str = ""
    """Display title."""
    artist: str = ""
    """Artist display name."""
    thumbnail: str | None = None
    """Thumbnail image reference."""
    duration: float | None = None
    """Duration in seconds, None until known."""
    stream_url: str | None = field(default=None, metadata=field_options(alias="streamUrl"))
    """Direct media URL, if the catalog resolved one."""

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        # Catalogs are sloppy with durations, tolerate "213" and nulls
        duration = d.get("duration")
        if isinstance(duration, str):
            try:
                d = {**d, "duration": float(duration)}
            except ValueError:
                d = {**d, "duration": None}
        return d

    def describe(self) -> str:
        """Return a one line human-friendly description."""
        if self.artist:
            return f"{self.title or self.id} - {self.artist}"
        return self.title or self.id

    class Config(BaseConfig):
        """Config for parsing json messages."""

        omit_none = True
        serialize_by_alias = True


@dataclass(frozen=True)
class Participant(DataClassORJSONMixin):
    """A member of a room. Names are display-only and not unique."""

    name: str
    id: str | None = None

    class Config(BaseConfig):
        """Config for parsing json messages."""

        omit_none = True


def normalize_participants(raw: Any) -> list[dict[str, Any]]:
    """
    Normalize a roster into a list of participant dicts.

    The coordinator sends either a list of names, a list of objects or an
    object keyed by participant id.
    """
    if raw is None:
        return []
    if isinstance(raw, dict):
        items: list[Any] = []
        for key, value in raw.items():
            if isinstance(value, dict):
                items.append({"id": str(key), **value})
            else:
                items.append({"id": str(key), "name": str(value)})
        raw = items
    result: list[dict[str, Any]] = []
    for item in raw:
        if isinstance(item, str):
            result.append({"name": item})
        elif isinstance(item, dict) and "name" in item:
            result.append(item)
    return result


def parse_participants(raw: Any) -> list[Participant]:
    """Parse a roster push into participants."""
    return [Participant.from_dict(item) for item in normalize_participants(raw)]


@dataclass
class Room(DataClassORJSONMixin):
    """Client side copy of a room."""

    id: str
    """Room code."""
    queue: list[Track] = field(default_factory=list)
    """Upcoming tracks, in play order."""
    participants: list[Participant] = field(default_factory=list)
    """Current members."""
    current_track: Track | None = field(
        default=None, metadata=field_options(alias="currentTrack")
    )
    """Track the room is playing, if any."""

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        return {
            **d,
            "id": str(d.get("id") or ""),
            "queue": d.get("queue") or [],
            "participants": normalize_participants(d.get("participants")),
        }

    class Config(BaseConfig):
        """Config for parsing json messages."""

        serialize_by_alias = True
