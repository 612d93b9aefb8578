"""
HTTP access to the remote RSS feed.

The service only depends on the abstract ``FeedClient``; production wiring uses
``HttpxFeedClient`` and tests hand in a client that returns canned bodies.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import httpx

from app.core.logging import get_logger

logger = get_logger().bind(module="rss_client")

_DEFAULT_TIMEOUT_S = 2.0
_ACCEPT = "application/rss+xml, application/xml, text/xml"


class FeedFetchError(Exception):
    """Raised when the remote feed cannot be retrieved."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FeedTimeoutError(FeedFetchError):
    """Raised when the remote feed does not answer within the request deadline."""


class FeedClient(ABC):
    """Capability to GET a feed URL and return the body as text."""

    @abstractmethod
    async def fetch(self, url: str) -> str:
        """
        Fetch ``url`` and return the response body.

        Raises:
            FeedTimeoutError: deadline exceeded
            FeedFetchError: any other transport failure or non-200 status
        """


class HttpxFeedClient(FeedClient):
    """
    Production client backed by httpx with a hard request timeout.

    ``transport`` is only meant for tests (e.g. ``httpx.MockTransport``).
    """

    def __init__(
        self,
        *,
        timeout: float = _DEFAULT_TIMEOUT_S,
        user_agent: str = "Mozilla/5.0 (compatible; spiegel-rss-api/1.0)",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    async def fetch(self, url: str) -> str:
        headers = {"Accept": _ACCEPT, "User-Agent": self.user_agent}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("rss_fetch_timeout", url=url, timeout_s=self.timeout)
            raise FeedTimeoutError(f"request timeout after {self.timeout}s", url=url) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("rss_fetch_failed", url=url, error=str(exc), error_type=type(exc).__name__)
            raise FeedFetchError(f"failed to fetch RSS feed: {exc}", url=url) from exc

        if response.status_code != httpx.codes.OK:
            logger.warning("rss_fetch_bad_status", url=url, status_code=response.status_code)
            raise FeedFetchError(
                f"RSS fetch failed with status code {response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        return response.text
