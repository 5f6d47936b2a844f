"""Tunables of the synchronization core."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_DRIFT_THRESHOLD = 1.5
"""Seconds of divergence tolerated before a sync tick moves the playhead."""


@dataclass(slots=True)
class SyncConfig:
    """Configuration for a SyncPlayerClient."""

    drift_threshold: float = DEFAULT_DRIFT_THRESHOLD
    """Position divergence in seconds that triggers a correction."""
    loading_timeout: float = 15.0
    """Seconds after which a pending local play stops showing as loading."""
    request_timeout: float = 10.0
    """Seconds to wait for create/join acknowledgements."""
    position_interval: float = 0.25
    """Cadence of media position samples while playing."""
    reconnection_delay: float = 1.0
    """Initial delay before the transport retries a lost connection."""
    reconnection_delay_max: float = 5.0
    """Upper bound for the reconnection delay."""

    def __post_init__(self) -> None:
        """Validate the configured values."""
        if self.drift_threshold < 0:
            raise ValueError("drift_threshold must not be negative")
        for name in ("loading_timeout", "request_timeout", "position_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.reconnection_delay_max < self.reconnection_delay:
            raise ValueError("reconnection_delay_max must be >= reconnection_delay")
