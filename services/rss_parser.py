from __future__ import annotations

import re
from datetime import datetime, timezone
from html import unescape
from typing import Callable, Iterator, List, Optional, Tuple

from dateutil import parser as date_parser

from app.core.logging import get_logger
from app.models.rss import SPIEGEL_SOURCE, Headline

logger = get_logger().bind(module="rss_parser")


def _open_tag_re(name: str) -> re.Pattern[str]:
    return re.compile(rf"<{name}(?:\s[^<>]*)?>", re.IGNORECASE)


def _close_tag_re(name: str) -> re.Pattern[str]:
    return re.compile(rf"</{name}\s*>", re.IGNORECASE)


# Items are matched with patterns, not an XML parser: a malformed item costs
# only that item. Opening tags stop at the next "<" and every closing tag is
# searched once from the end of its opening tag, so scanning stays linear.
_ITEM_OPEN_RE = _open_tag_re("item")
_ITEM_CLOSE_RE = _close_tag_re("item")
_TITLE_TAGS = (_open_tag_re("title"), _close_tag_re("title"))
_LINK_TAGS = (_open_tag_re("link"), _close_tag_re("link"))
_PUBDATE_RE = re.compile(r"<pubDate(?:\s[^<>]*)?>([^<]+)</pubDate>", re.IGNORECASE)


class RSSItemParseError(Exception):
    """
    Recoverable failure for a single feed item. Callers skip the item,
    never the whole feed.
    """


def format_rfc3339(value: datetime) -> str:
    """Render an aware datetime as RFC3339 with second precision ('Z' for UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def clean_cdata(text: str) -> str:
    text = text.replace("<![CDATA[", "").replace("]]>", "")
    return text.strip()


def parse_pub_date(raw: Optional[str], *, now: Optional[datetime] = None) -> str:
    """
    Parse an RSS pubDate (RFC 1123, numeric or named zone) into RFC3339.
    Missing or unparseable values fall back to ``now``.
    """
    fallback = now or datetime.now(timezone.utc)
    if not raw or not raw.strip():
        return format_rfc3339(fallback)
    try:
        parsed = date_parser.parse(raw.strip())
    except (ValueError, OverflowError):
        logger.debug("rss_pubdate_unparseable", raw=raw)
        return format_rfc3339(fallback)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return format_rfc3339(parsed)


def _inner_text(
    text: str,
    open_re: re.Pattern[str],
    close_re: re.Pattern[str],
    pos: int = 0,
) -> Optional[Tuple[str, int]]:
    """Text between the next opening tag at or after ``pos`` and its closing tag, plus the end offset."""
    opening = open_re.search(text, pos)
    if opening is None:
        return None
    closing = close_re.search(text, opening.end())
    if closing is None:
        return None
    return text[opening.end():closing.start()], closing.end()


def _extract(tags: Tuple[re.Pattern[str], re.Pattern[str]], block: str) -> str:
    found = _inner_text(block, *tags)
    if found is None:
        return ""
    return unescape(clean_cdata(found[0]))


def parse_item(block: str, *, now: Optional[datetime] = None) -> Headline:
    """Turn the inner text of one ``<item>`` into a Headline."""
    title = _extract(_TITLE_TAGS, block)
    link = _extract(_LINK_TAGS, block)
    if not title or not link:
        raise RSSItemParseError("required RSS fields not found")

    date_match = _PUBDATE_RE.search(block)
    published_at = parse_pub_date(date_match.group(1) if date_match else None, now=now)

    return Headline(
        title=title,
        link=link,
        published_at=published_at,
        source=SPIEGEL_SOURCE,
    )


def iter_item_blocks(feed_text: str) -> Iterator[str]:
    text = feed_text or ""
    pos = 0
    while True:
        found = _inner_text(text, _ITEM_OPEN_RE, _ITEM_CLOSE_RE, pos)
        # No closing tag left means no later item can close either.
        if found is None:
            return
        block, pos = found
        yield block


def iter_headlines(feed_text: str) -> Iterator[Headline]:
    """Yield parseable headlines in feed order, skipping broken items."""
    now = datetime.now(timezone.utc)
    for index, block in enumerate(iter_item_blocks(feed_text)):
        try:
            yield parse_item(block, now=now)
        except RSSItemParseError as exc:
            logger.debug("rss_item_skipped", index=index, reason=str(exc))


def parse_headlines(feed_text: str, limit: int) -> List[Headline]:
    """Parse at most ``limit`` headlines from the feed body."""
    if limit <= 0:
        return []
    headlines: List[Headline] = []
    for headline in iter_headlines(feed_text):
        headlines.append(headline)
        if len(headlines) >= limit:
            break
    return headlines


def find_first_headline(
    feed_text: str,
    predicate: Optional[Callable[[Headline], bool]] = None,
) -> Optional[Headline]:
    """First parseable headline accepted by ``predicate`` (any when None)."""
    for headline in iter_headlines(feed_text):
        if predicate is None or predicate(headline):
            return headline
    return None
