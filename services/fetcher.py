"""HTTP client for downloading product pages."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional
from urllib.parse import urlparse

import aiohttp

from config import settings
from services.errors import FetchError

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


class PageFetcher:
    """Fetches HTML with a total timeout, per-domain pacing and retries."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.headers = settings.HEADERS
        self.session = session
        self._owns_session = session is None
        self._last_request_time: dict[str, float] = {}
        self._domain_locks: dict[str, asyncio.Lock] = {}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=settings.REQUEST_TIMEOUT)
            connector = aiohttp.TCPConnector(limit_per_host=5, limit=20)
            self.session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=timeout,
                connector=connector,
            )
        return self.session

    async def close(self) -> None:
        """Close the session if we own it."""
        if self._owns_session and self.session is not None:
            await self.session.close()
            self.session = None

    async def _apply_rate_limit(self, url: str) -> None:
        """Keep at least REQUEST_DELAY_SECONDS between requests to one domain."""
        domain = urlparse(url).netloc
        lock = self._domain_locks.setdefault(domain, asyncio.Lock())
        async with lock:
            delay = settings.REQUEST_DELAY_SECONDS
            last = self._last_request_time.get(domain)
            if last is not None:
                elapsed = time.monotonic() - last
                if elapsed < delay:
                    sleep_time = delay - elapsed
                    logger.debug("Rate limiting: sleeping %.2fs for %s", sleep_time, domain)
                    await asyncio.sleep(sleep_time)
            self._last_request_time[domain] = time.monotonic()

    async def get_page_content(self, url: str) -> str:
        """Fetch HTML content from an URL, raising :class:`FetchError` on failure."""
        attempts = settings.REQUEST_MAX_RETRIES + 1
        attempt = 1

        while True:
            try:
                return await self._fetch_once(url)
            except FetchError as exc:
                if not self._is_retryable(exc) or attempt >= attempts:
                    raise
                backoff = settings.REQUEST_BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.info(
                    "Retrying %s in %.1fs (attempt %d/%d): %s",
                    url, backoff, attempt + 1, attempts, exc,
                )
                await asyncio.sleep(backoff)
                attempt += 1

    @staticmethod
    def _is_retryable(exc: FetchError) -> bool:
        return exc.status is None or exc.status in RETRYABLE_STATUSES

    async def _fetch_once(self, url: str) -> str:
        await self._apply_rate_limit(url)
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=settings.REQUEST_TIMEOUT)

        try:
            async with session.get(url, headers=self.headers, timeout=timeout) as response:
                response.raise_for_status()
                # invalid bytes decode to U+FFFD
                return await response.text(errors="replace")
        except asyncio.TimeoutError as exc:
            logger.warning("Timeout fetching page %s", url)
            raise FetchError(url, f"timed out after {settings.REQUEST_TIMEOUT:g}s") from exc
        except aiohttp.ClientResponseError as exc:
            logger.warning("HTTP error fetching page %s (status %s)", url, exc.status)
            raise FetchError(url, f"bad status: {exc.status} {exc.message}", status=exc.status) from exc
        except aiohttp.ClientConnectionError as exc:
            logger.warning("Connection error fetching page %s: %s", url, exc)
            logger.debug("Connection error details", exc_info=True)
            raise FetchError(url, f"connection error: {exc}") from exc
        except aiohttp.ClientError as exc:
            logger.error("Error fetching page %s: %s", url, exc)
            logger.debug("Unhandled request exception", exc_info=True)
            raise FetchError(url, f"request failed: {exc}") from exc


__all__ = ["PageFetcher", "RETRYABLE_STATUSES"]
