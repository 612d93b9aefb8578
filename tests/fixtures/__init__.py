# tests/fixtures/__init__.py
"""
Test fixtures for the RSS headline tests.

Factory functions and fake feed clients:
- make_item()
- make_feed()
- make_numbered_feed()
- make_headline()
- StaticFeedClient / FailingFeedClient
- FakeClock
"""

import asyncio
from typing import Iterable, List, Optional

from app.models.rss import Headline
from services.rss_cache import HeadlineCache
from services.rss_client import FeedClient, FeedFetchError
from services.rss_service import RssHeadlineService

TEST_FEED_URL = "https://feeds.test.local/spiegel.rss"


def make_item(
    title: Optional[str] = "Headline 1",
    link: Optional[str] = "https://www.spiegel.de/1",
    pub_date: Optional[str] = "Mon, 24 Sep 2023 10:00:00 +0000",
) -> str:
    """One <item> block; pass None to leave a field out."""
    parts = ["    <item>"]
    if title is not None:
        parts.append(f"      <title><![CDATA[{title}]]></title>")
    if link is not None:
        parts.append(f"      <link><![CDATA[{link}]]></link>")
    if pub_date is not None:
        parts.append(f"      <pubDate>{pub_date}</pubDate>")
    parts.append("    </item>")
    return "\n".join(parts)


def make_feed(items: Iterable[str]) -> str:
    body = "\n".join(items)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<rss version="2.0">\n'
        "  <channel>\n"
        "    <title>SPIEGEL ONLINE</title>\n"
        f"{body}\n"
        "  </channel>\n"
        "</rss>"
    )


def make_numbered_feed(
    count: int,
    *,
    keyword: str = "",
    keyword_from: int = 0,
    keyword_to: int = 0,
    prefix: str = "Headline",
) -> str:
    """
    Feed with ``count`` items titled "<prefix> N"; items in
    [keyword_from, keyword_to] are titled "Article with <keyword> N".
    """
    items: List[str] = []
    for i in range(1, count + 1):
        if keyword and keyword_from <= i <= keyword_to:
            title = f"Article with {keyword} {i}"
        else:
            title = f"{prefix} {i}"
        items.append(make_item(
            title=title,
            link=f"https://www.spiegel.de/{i}",
            pub_date=f"Mon, 24 Sep 2023 {23 - (i % 24):02d}:00:00 +0000",
        ))
    return make_feed(items)


def make_headline(
    title: str = "Headline 1",
    link: str = "https://www.spiegel.de/1",
    published_at: str = "2023-09-24T10:00:00Z",
) -> Headline:
    return Headline(title=title, link=link, published_at=published_at, source="SPIEGEL")


class FakeClock:
    """Manually advanced monotonic clock for HeadlineCache."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StaticFeedClient(FeedClient):
    """Returns a canned body and counts calls. Set ``error`` to fail instead."""

    def __init__(self, body: str, *, delay: float = 0.0):
        self.body = body
        self.delay = delay
        self.error: Optional[Exception] = None
        self.calls = 0

    async def fetch(self, url: str) -> str:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.body


class FailingFeedClient(FeedClient):
    def __init__(self, error: Optional[Exception] = None):
        self.error = error or FeedFetchError("connection refused", url=TEST_FEED_URL)
        self.calls = 0

    async def fetch(self, url: str) -> str:
        self.calls += 1
        raise self.error


def make_service(client: FeedClient, *, cache: Optional[HeadlineCache] = None) -> RssHeadlineService:
    return RssHeadlineService(client, feed_url=TEST_FEED_URL, cache=cache or HeadlineCache())
