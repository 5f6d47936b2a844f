"""Exceptions raised by aiosyncplayer."""

from __future__ import annotations


class SyncPlayerError(Exception):
    """Base class for aiosyncplayer errors."""


class ValidationError(SyncPlayerError, ValueError):
    """User supplied input is missing or blank; nothing was sent."""


class TransportUnavailableError(SyncPlayerError):
    """The coordinator connection is not established."""
