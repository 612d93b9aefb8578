"""
In-memory headline cache.

Holds two entries, the latest headline and the multi-item pool, each with a
fetch timestamp. Entries are swapped wholesale under the write side of a
reader/writer lock; lookups share the read side.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from app.core.logging import get_logger
from app.models.rss import Headline

logger = get_logger().bind(module="rss_cache")

DEFAULT_CACHE_TTL_SECONDS = 300.0


class ReadWriteLock:
    """
    Many readers or one writer. A waiting writer blocks new readers.

    Hold it only around in-memory reads/swaps, never across an ``await``.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


@dataclass(frozen=True)
class LatestEntry:
    headline: Headline
    fetched_at: float


@dataclass(frozen=True)
class PoolEntry:
    headlines: Tuple[Headline, ...]
    fetched_at: float


class HeadlineCache:
    """Owned cache object injected into the RSS service."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = ReadWriteLock()
        self._latest: Optional[LatestEntry] = None
        self._pool: Optional[PoolEntry] = None

    def _is_fresh(self, fetched_at: float) -> bool:
        return self._clock() - fetched_at < self.ttl_seconds

    def get_latest(self) -> Optional[Headline]:
        with self._lock.read_locked():
            entry = self._latest
        if entry is not None and self._is_fresh(entry.fetched_at):
            return entry.headline
        return None

    def set_latest(self, headline: Headline) -> None:
        entry = LatestEntry(headline=headline, fetched_at=self._clock())
        with self._lock.write_locked():
            self._latest = entry

    def get_pool(self) -> Optional[List[Headline]]:
        """Fresh pool as a new list (caller may slice freely), else None."""
        with self._lock.read_locked():
            entry = self._pool
        if entry is not None and entry.headlines and self._is_fresh(entry.fetched_at):
            return list(entry.headlines)
        return None

    def set_pool(self, headlines: Sequence[Headline]) -> None:
        if not headlines:
            return
        entry = PoolEntry(headlines=tuple(headlines), fetched_at=self._clock())
        with self._lock.write_locked():
            self._pool = entry

    def reset(self) -> None:
        with self._lock.write_locked():
            self._latest = None
            self._pool = None
        logger.info("rss_cache_reset")
