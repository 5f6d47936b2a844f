"""Catalog search over HTTP."""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import Any, Self

from aiohttp import ClientError, ClientSession, ClientTimeout

from aiosyncplayer.models import Track

logger = logging.getLogger(__name__)


class CatalogClient:
    """
    Looks up tracks with ``GET <api_url>/search?q=<text>``.

    Search failures of any kind yield no results instead of raising, so a
    broken catalog never takes the rest of the client down with it.
    """

    def __init__(
        self,
        api_url: str,
        *,
        session: ClientSession | None = None,
        timeout: float = 10.0,
    ) -> None:
        """Create a catalog client for the API rooted at ``api_url``."""
        self._api_url = api_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._timeout = ClientTimeout(total=timeout)

    @property
    def api_url(self) -> str:
        """Return the API root used for lookups."""
        return self._api_url

    async def search(self, query: str) -> list[Track]:
        """Return the tracks matching ``query``, or an empty list."""
        query = query.strip()
        if not query:
            return []
        if self._session is None:
            self._session = ClientSession()
        url = f"{self._api_url}/search"
        try:
            async with self._session.get(
                url, params={"q": query}, timeout=self._timeout
            ) as response:
                if response.status >= 400:
                    logger.warning("Catalog search failed with HTTP %d", response.status)
                    return []
                body = await response.json(content_type=None)
        except (ClientError, TimeoutError, asyncio.TimeoutError, ValueError) as err:
            logger.warning("Catalog search for %r failed: %s", query, err)
            return []
        return self._parse_results(body)

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    @staticmethod
    def _parse_results(body: Any) -> list[Track]:
        if not isinstance(body, dict):
            return []
        tracks: list[Track] = []
        for item in body.get("results") or []:
            if not isinstance(item, dict):
                continue
            try:
                tracks.append(Track.from_dict(item))
            except Exception:
                logger.debug("Skipping malformed catalog entry: %s", item)
        return tracks

    async def __aenter__(self) -> Self:
        """Enter the async context manager returning this instance."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Close the session when leaving the async context manager."""
        await self.close()
