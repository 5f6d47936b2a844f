"""
Playback state of a room as seen by one client.

PlaybackState snapshots are immutable. Every change produces a Transition that
records where it came from (local user/media or the coordinator). What the media
element has to do about a transition is decided by ``plan_media_actions``, a pure
function of the transition and the seek-drag flag.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from aiosyncplayer.models import Origin, Track

DEFAULT_DURATION = 1.0
"""Duration reported while the real one is unknown."""


@dataclass(frozen=True, slots=True)
class PlaybackState:
    """Shared transport state of the room."""

    current_track: Track | None = None
    playing: bool = False
    position: float = 0.0
    """Playback position in seconds."""
    duration: float = DEFAULT_DURATION
    """Duration in seconds, DEFAULT_DURATION until the media reports it."""
    duration_known: bool = False
    last_actor: str | None = None
    """Display name of whoever caused the last play."""
    origin: Origin = Origin.LOCAL
    """Origin of the last update."""

    @property
    def track_id(self) -> str | None:
        """Return the id of the current track, if any."""
        return self.current_track.id if self.current_track is not None else None

    def same_as(self, other: PlaybackState) -> bool:
        """Return True if both states are equal apart from their origin."""
        return replace(other, origin=self.origin) == self


def same_track(first: Track | None, second: Track | None) -> bool:
    """Return True if both refer to the same catalog track (or both are None)."""
    if first is None or second is None:
        return first is second
    return first.id == second.id


def advance(state: PlaybackState, origin: Origin, **changes: Any) -> PlaybackState:
    """
    Return the state that results from applying changes.

    Switching to a different track starts from a fresh state before the
    changes are applied, so anything not given explicitly (position, duration,
    last actor) falls back to its default.
    """
    base = state
    if "current_track" in changes and not same_track(changes["current_track"], state.current_track):
        base = PlaybackState()
    new = replace(base, origin=origin, **changes)

    if new.duration <= 0:
        new = replace(new, duration=DEFAULT_DURATION, duration_known=False)
    position = max(0.0, new.position)
    if new.duration_known:
        position = min(position, new.duration)
    if position != new.position:
        new = replace(new, position=position)
    if new.current_track is None and new.playing:
        new = replace(new, playing=False)
    return new


@dataclass(frozen=True, slots=True)
class Transition:
    """A single origin-tagged change of the playback state."""

    previous: PlaybackState
    current: PlaybackState
    origin: Origin
    reposition: bool = False
    """An explicit local position write, like a committed seek."""

    @property
    def track_changed(self) -> bool:
        """Return True if the transition switched tracks."""
        return not same_track(self.previous.current_track, self.current.current_track)


@dataclass(frozen=True, slots=True)
class LoadTrack:
    """Bind the media resource to a track."""

    track: Track


@dataclass(frozen=True, slots=True)
class UnloadTrack:
    """Release the media resource."""


@dataclass(frozen=True, slots=True)
class SetPosition:
    """Move the media playhead."""

    position: float


@dataclass(frozen=True, slots=True)
class SetPlaying:
    """Start or pause the media."""

    playing: bool


MediaAction = LoadTrack | UnloadTrack | SetPosition | SetPlaying


def plan_media_actions(transition: Transition, *, seeking: bool = False) -> list[MediaAction]:
    """
    Return what the media element must do to reflect a transition.

    Remote transitions move the playhead whenever they move the position. Local
    ones only do so when they carry an explicit reposition, so the media's own
    position reports and drag previews never feed back into it. No playhead
    moves happen while the user drags the position control.
    """
    previous, current = transition.previous, transition.current
    if current.current_track is None:
        return [UnloadTrack()] if previous.current_track is not None else []

    actions: list[MediaAction] = []
    track_changed = transition.track_changed
    if track_changed:
        actions.append(LoadTrack(current.current_track))

    moved = track_changed or current.position != previous.position
    if not seeking and (
        transition.reposition or (transition.origin is Origin.REMOTE and moved)
    ):
        actions.append(SetPosition(current.position))

    if track_changed or current.playing != previous.playing:
        actions.append(SetPlaying(current.playing))
    return actions
