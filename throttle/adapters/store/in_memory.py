"""Bounded in-memory bucket store with LRU eviction.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Never suspends: ``load``/``save`` contain no ``await``, so a decision cycle
  against this store cannot interleave with another one on the same event loop.
- Thread-safe: uses a lock around the entry table.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict

from throttle.adapters.store.base import AbstractBucketStore
from throttle.core.logging import hash_key
from throttle.schemas.bucket import Bucket

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10_000


class InMemoryBucketStore(AbstractBucketStore):
    """Bucket store holding at most ``max_entries`` keys.

    Both ``load`` and ``save`` mark a key as recently used. When a ``save``
    pushes the table over capacity, the least recently used keys are dropped;
    a dropped key starts over with a full bucket on its next request.

    Attributes:
        max_entries: Maximum number of buckets kept.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._max_entries = max_entries
        self._entries: OrderedDict[str, Bucket] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryBucketStore(max_entries={self._max_entries}, size={len(self._entries)}, "
            f"hits={self._hits}, misses={self._misses}, evictions={self._evictions})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    @property
    def max_entries(self) -> int:
        return self._max_entries

    async def load(self, key: str) -> Bucket | None:
        with self._lock:
            bucket = self._entries.get(key)
            if bucket is None:
                self._misses += 1
                logger.debug("store.miss", extra={"key_hash": hash_key(key)})
                return None

            self._hits += 1
            self._entries.move_to_end(key)
            # Hand out a copy; the table only changes through save().
            return Bucket(tokens=bucket.tokens, mtime=bucket.mtime, rtime=bucket.rtime)

    async def save(self, key: str, bucket: Bucket) -> None:
        with self._lock:
            self._entries[key] = Bucket(tokens=bucket.tokens, mtime=bucket.mtime, rtime=bucket.rtime)
            self._entries.move_to_end(key)
            self._evict_if_over_capacity_locked()

    def clear(self) -> None:
        """Remove all buckets and reset counters."""

        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int]:
        """Return lightweight store metrics without exposing keys."""

        with self._lock:
            return {
                "max_entries": self._max_entries,
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_if_over_capacity_locked(self) -> None:
        while len(self._entries) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            key, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug(
                "store.evicted",
                extra={"key_hash": hash_key(key), "size": len(self._entries)},
            )
