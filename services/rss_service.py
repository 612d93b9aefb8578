"""
SPIEGEL headline service: fetch, parse, cache, filter and limit.

Two synchronization primitives are involved:

* ``HeadlineCache`` guards visibility of the cached entries (reader/writer lock).
* ``_fetch_lock`` (``asyncio.Lock``) allows a single outbound fetch at a time;
  callers re-check the cache after acquiring it, so concurrent misses share
  one upstream request.

A reset while a fetch is in flight does not cancel the fetch; it completes
and repopulates the cache.
"""

from __future__ import annotations

import asyncio
import re
from typing import Iterable, List, Optional, Tuple

from app.core.config import settings
from app.core.logging import get_logger
from app.models.rss import Headline
from services.rss_cache import HeadlineCache
from services.rss_client import FeedClient, FeedFetchError, HttpxFeedClient
from services.rss_parser import find_first_headline, parse_headlines

logger = get_logger().bind(module="rss_service")

MAX_FETCH_ITEMS = 250
MAX_RETURN_ITEMS = 200
DEFAULT_RETURN_ITEMS = 5
MAX_FILTER_LENGTH = 100
MAX_EXPORT_ITEMS = 1000

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN, _INT64_MAX = -(2 ** 63), 2 ** 63 - 1


class RssValidationError(ValueError):
    """Client supplied an unusable query parameter."""


class FeedUnavailableError(Exception):
    """The feed could not be fetched, or yielded nothing usable."""


# -------- Parameter handling --------------------------------------------------

def validate_filter(keyword: Optional[str]) -> str:
    keyword = keyword or ""
    if len(keyword) > MAX_FILTER_LENGTH:
        raise RssValidationError(
            f"filter parameter too long (max {MAX_FILTER_LENGTH} characters)"
        )
    return keyword


def _parse_int(raw: Optional[str]) -> Optional[int]:
    """Plain ASCII decimal with optional sign, nothing else (no spaces, no underscores)."""
    if raw is None or not _INTEGER_RE.fullmatch(raw):
        return None
    try:
        value = int(raw)
    except ValueError:
        # Beyond the interpreter's integer string length limit.
        return None
    # Out of 64-bit range counts as invalid.
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def parse_limit(raw: Optional[str]) -> int:
    """Bulk endpoint limit: invalid or < 1 → default, above max → max."""
    limit = _parse_int(raw)
    if limit is None or limit < 1:
        return DEFAULT_RETURN_ITEMS
    return min(limit, MAX_RETURN_ITEMS)


def parse_export_limit(raw: Optional[str]) -> int:
    """
    Export limit: absent, unparseable or < 1 → export ceiling;
    above the ceiling is a client error.
    """
    limit = _parse_int(raw)
    if limit is None or limit < 1:
        return MAX_EXPORT_ITEMS
    if limit > MAX_EXPORT_ITEMS:
        raise RssValidationError(
            f"limit exceeds maximum allowed value of {MAX_EXPORT_ITEMS}"
        )
    return limit


# -------- Filtering -----------------------------------------------------------

def matches_filter(headline: Headline, keyword: str) -> bool:
    if not keyword:
        return True
    return keyword.casefold() in headline.title.casefold()


def filter_headlines(headlines: Iterable[Headline], keyword: str) -> List[Headline]:
    if not keyword:
        return list(headlines)
    needle = keyword.casefold()
    return [h for h in headlines if needle in h.title.casefold()]


def apply_filter_and_limit(headlines: List[Headline], keyword: str, limit: int) -> List[Headline]:
    """Filter over the whole pool first, then truncate."""
    if keyword:
        headlines = filter_headlines(headlines, keyword)
    if limit > 0 and len(headlines) > limit:
        headlines = headlines[:limit]
    return headlines


# -------- Service -------------------------------------------------------------

class RssHeadlineService:
    def __init__(
        self,
        client: FeedClient,
        *,
        feed_url: str,
        cache: Optional[HeadlineCache] = None,
    ):
        self.client = client
        self.feed_url = feed_url
        self.cache = cache or HeadlineCache()
        self._fetch_lock = asyncio.Lock()

    async def _fetch_feed(self) -> str:
        logger.info("rss_fetch_started", url=self.feed_url)
        try:
            return await self.client.fetch(self.feed_url)
        except FeedFetchError as exc:
            logger.warning(
                "rss_fetch_failed",
                url=self.feed_url,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise FeedUnavailableError(str(exc)) from exc

    async def get_latest(self, keyword: str = "") -> Headline:
        """
        Most recent headline, optionally the first whose title contains
        ``keyword``. Only unfiltered lookups read or write the cache.
        """
        if not keyword:
            cached = self.cache.get_latest()
            if cached is not None:
                logger.debug("rss_cache_hit", entry="latest")
                return cached
            async with self._fetch_lock:
                cached = self.cache.get_latest()
                if cached is not None:
                    return cached
                feed_text = await self._fetch_feed()
                headline = await asyncio.to_thread(find_first_headline, feed_text)
                if headline is None:
                    raise FeedUnavailableError("no RSS items found")
                self.cache.set_latest(headline)
                return headline

        feed_text = await self._fetch_feed()
        headline = await asyncio.to_thread(
            find_first_headline, feed_text, lambda h: matches_filter(h, keyword)
        )
        if headline is None:
            logger.info("rss_latest_no_match", filter=keyword)
            raise FeedUnavailableError("no matching RSS item found")
        return headline

    async def get_pool(self, *, populate_cache: bool = True) -> Tuple[List[Headline], int]:
        """
        The fetch pool (up to MAX_FETCH_ITEMS, feed order) and its size.
        """
        headlines = self.cache.get_pool()
        if headlines is not None:
            logger.debug("rss_cache_hit", entry="pool", size=len(headlines))
            return headlines, len(headlines)

        async with self._fetch_lock:
            headlines = self.cache.get_pool()
            if headlines is not None:
                return headlines, len(headlines)

            feed_text = await self._fetch_feed()
            # Parsing runs in a worker thread, never on the event loop.
            headlines = await asyncio.to_thread(parse_headlines, feed_text, MAX_FETCH_ITEMS)
            logger.info("rss_items_parsed", count=len(headlines))
            if not headlines:
                raise FeedUnavailableError("no RSS items found")
            if populate_cache:
                self.cache.set_pool(headlines)
        return list(headlines), len(headlines)

    async def get_top(self, *, limit: int = DEFAULT_RETURN_ITEMS, keyword: str = "") -> Tuple[List[Headline], int]:
        """Filtered, limited headlines plus the pre-filter pool size."""
        pool, total = await self.get_pool(populate_cache=not keyword)
        return apply_filter_and_limit(pool, keyword, limit), total

    async def get_export_headlines(self, *, limit: int = MAX_EXPORT_ITEMS, keyword: str = "") -> List[Headline]:
        pool, _ = await self.get_pool(populate_cache=not keyword)
        return apply_filter_and_limit(pool, keyword, limit)

    def reset_cache(self) -> None:
        self.cache.reset()


_rss_service: RssHeadlineService | None = None


def build_rss_service() -> RssHeadlineService:
    client = HttpxFeedClient(
        timeout=settings.RSS_FETCH_TIMEOUT_SECONDS,
        user_agent=settings.RSS_USER_AGENT,
    )
    return RssHeadlineService(
        client,
        feed_url=settings.SPIEGEL_RSS_URL,
        cache=HeadlineCache(ttl_seconds=settings.RSS_CACHE_TTL_SECONDS),
    )


def get_rss_service() -> RssHeadlineService:
    """Get or create the process-wide RssHeadlineService."""
    global _rss_service
    if _rss_service is None:
        _rss_service = build_rss_service()
    return _rss_service
