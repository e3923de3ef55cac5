"""Download and decompression of the remote METAR feed."""

from __future__ import annotations

import gzip
import logging
import zlib
from functools import lru_cache
from typing import Optional

import httpx

from settings import get_settings

logger = logging.getLogger(__name__)


class FeedFetcher:
    """Retrieves the gzip-compressed feed and unpacks it.

    Transport and decompression failures are expected from time to time; both
    are logged and turned into empty payloads so a bad cycle yields zero
    observations instead of an exception.
    """

    def __init__(
        self,
        url: str,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ) -> None:
        self.url = url
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def fetch(self) -> bytes:
        """Download the raw (still compressed) feed; ``b""`` on any HTTP failure."""
        try:
            response = self._client.get(self.url)
            response.raise_for_status()
            payload = response.content
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Feed request returned an error status",
                extra={"url": self.url, "status_code": exc.response.status_code},
            )
            return b""
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error(
                "Error downloading feed: %s",
                exc,
                extra={"url": self.url, "reason": type(exc).__name__},
            )
            return b""

        logger.debug(
            "Downloaded feed", extra={"url": self.url, "fetched_bytes": len(payload)}
        )
        return payload

    def decompress(self, data: Optional[bytes]) -> bytes:
        """Gunzip ``data``; ``b""`` for missing input or a corrupt archive."""
        if data is None:
            logger.warning("Compressed feed payload is missing")
            return b""
        if not data:
            return b""

        try:
            return gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as exc:
            logger.error(
                "Error decompressing feed: %s",
                exc,
                extra={"url": self.url, "fetched_bytes": len(data)},
            )
            return b""

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


@lru_cache
def build_default_fetcher(url: Optional[str] = None) -> FeedFetcher:
    settings = get_settings()
    feed_url = settings.feed_url if url is None else url
    return FeedFetcher(url=feed_url, timeout=settings.fetch_timeout_seconds)
