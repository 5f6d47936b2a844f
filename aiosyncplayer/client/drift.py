"""Reconciles accumulated drift from the coordinator's sync ticks."""

from __future__ import annotations

import logging
from typing import Any

from aiosyncplayer.models import Origin, SyncTickServerPayload

from .session import SyncSession
from .state import Transition

logger = logging.getLogger(__name__)


class DriftCorrector:
    """
    Applies ``syncTick`` messages.

    The playing flag always follows the tick. The position only does when it
    is off by more than the drift threshold, so normal tick jitter does not make
    the playhead stutter.
    """

    def __init__(self, session: SyncSession) -> None:
        """Create a corrector for ``session``."""
        self._session = session

    @property
    def threshold(self) -> float:
        """Return the tolerated divergence in seconds."""
        return self._session.config.drift_threshold

    def handle(self, data: Any) -> None:
        """Parse and apply a raw sync tick."""
        try:
            tick = SyncTickServerPayload.from_dict(data or {})
        except Exception:
            logger.exception("Failed to parse sync tick: %s", data)
            return
        self.on_sync_tick(tick)

    def on_sync_tick(self, tick: SyncTickServerPayload) -> Transition | None:
        """Apply one tick; returns the transition it caused, if any."""
        state = self._session.playback
        if state.track_id is None or tick.track_id != state.track_id:
            # Track change in flight, the tick describes the other track
            logger.debug("Ignoring sync tick for %s, playing %s", tick.track_id, state.track_id)
            return None

        drift = state.position - tick.time
        if abs(drift) > self.threshold:
            logger.debug("Correcting drift of %.2fs on %s", drift, state.track_id)
            return self._session.apply(Origin.REMOTE, playing=tick.is_playing, position=tick.time)
        return self._session.apply(Origin.REMOTE, playing=tick.is_playing)
