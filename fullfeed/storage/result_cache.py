"""
Result Cache
============

In-memory TTL cache for serialized feed responses, keyed by request
fingerprint. The map is guarded by a readers-writer lock so concurrent
lookups never block each other; a background ``CacheCleaner`` sweeps
expired entries on a fixed interval.
"""

import asyncio
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

from ..utils.logging import get_logger_for_component

V = TypeVar("V")


class ReadWriteLock:
    """Many concurrent readers or one writer. Writers are not starved."""

    def __init__(self):
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self):
        with self._condition:
            while self._writer or self._writers_waiting:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if self._readers == 0:
                    self._condition.notify_all()

    @contextmanager
    def write_locked(self):
        with self._condition:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._condition.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    key: str
    value: V
    stored_at: float


class ResultCache(Generic[V]):
    """TTL cache. Entries older than ``ttl_seconds`` are treated as absent."""

    def __init__(self, ttl_seconds: float = 7200, clock: Callable[[], float] = time.monotonic, logger=None):
        """Initialize cache.

        Args:
            ttl_seconds: Age after which an entry is stale
            clock: Monotonic time source (injectable for tests)
            logger: Logger adapter (defaults to the component logger)
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry[V]] = {}
        self._lock = ReadWriteLock()
        self.logger = logger or get_logger_for_component("result_cache")

    def get(self, key: str) -> Tuple[Optional[V], bool]:
        """Return ``(value, True)`` for a fresh entry, ``(None, False)`` otherwise.

        Stale entries are evicted on read.
        """
        with self._lock.read_locked():
            entry = self._entries.get(key)
        if entry is None:
            return None, False

        if not self._is_expired(entry, self._clock()):
            return entry.value, True

        with self._lock.write_locked():
            # another writer may have refreshed the entry meanwhile
            current = self._entries.get(key)
            if current is not None and self._is_expired(current, self._clock()):
                del self._entries[key]
            elif current is not None:
                return current.value, True
        return None, False

    def set(self, key: str, value: V) -> None:
        """Insert or replace the entry for ``key``."""
        with self._lock.write_locked():
            self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock())

    def delete(self, key: str) -> bool:
        with self._lock.write_locked():
            return self._entries.pop(key, None) is not None

    def cleanup(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock.write_locked():
            now = self._clock()
            expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock.write_locked():
            self._entries.clear()

    def size(self) -> int:
        with self._lock.read_locked():
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def _is_expired(self, entry: CacheEntry[V], now: float) -> bool:
        return now - entry.stored_at > self.ttl_seconds


class CacheCleaner:
    """Background asyncio task sweeping a ResultCache on a fixed interval."""

    def __init__(self, cache: ResultCache, interval_seconds: float = 3600, logger=None):
        self.cache = cache
        self.interval_seconds = interval_seconds
        self.logger = logger or get_logger_for_component("cache_cleaner")
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start sweeping. Must be called from a running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        self.logger.info(f"Cache cleaner started (interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Cache cleaner stopped")

    def sweep(self) -> int:
        removed = self.cache.cleanup()
        self.logger.info(
            f"Cache cleanup removed {removed} entries, {self.cache.size()} remaining"
        )
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.sweep()
