"""Unit tests for the bounded in-memory bucket store and bucket records."""

import asyncio
import threading

import pytest

from throttle.adapters.store.in_memory import DEFAULT_MAX_ENTRIES, InMemoryBucketStore
from throttle.schemas.bucket import Bucket, RateLimitStatus


def _save(store: InMemoryBucketStore, key: str, tokens: float = 1.0) -> None:
    asyncio.run(store.save(key, Bucket(tokens=tokens, mtime=0, rtime=0)))


def _load(store: InMemoryBucketStore, key: str) -> Bucket | None:
    return asyncio.run(store.load(key))


def test_default_capacity() -> None:
    assert InMemoryBucketStore().max_entries == DEFAULT_MAX_ENTRIES == 10_000


def test_invalid_capacity() -> None:
    with pytest.raises(ValueError):
        InMemoryBucketStore(max_entries=0)


def test_load_unknown_key_returns_none() -> None:
    store = InMemoryBucketStore()

    assert _load(store, "missing") is None
    assert store.stats()["misses"] == 1


def test_saved_bucket_is_retrievable() -> None:
    store = InMemoryBucketStore()
    _save(store, "k", tokens=3.5)

    assert _load(store, "k") == Bucket(tokens=3.5, mtime=0, rtime=0)
    assert store.stats()["hits"] == 1


def test_store_keeps_its_own_copy() -> None:
    store = InMemoryBucketStore()
    bucket = Bucket(tokens=2.0, mtime=0, rtime=0)
    asyncio.run(store.save("k", bucket))

    bucket.tokens = 0.0
    loaded = _load(store, "k")
    assert loaded is not None
    loaded.tokens = -1.0

    assert _load(store, "k") == Bucket(tokens=2.0, mtime=0, rtime=0)


def test_lru_eviction_removes_least_recently_saved() -> None:
    store = InMemoryBucketStore(max_entries=3)
    for key in ("a", "b", "c", "d"):
        _save(store, key)

    assert "a" not in store
    assert len(store) == 3
    assert store.stats()["evictions"] == 1


def test_load_refreshes_recency() -> None:
    store = InMemoryBucketStore(max_entries=2)
    _save(store, "a")
    _save(store, "b")

    # Access "a" so that "b" becomes least recently used
    assert _load(store, "a") is not None

    _save(store, "c")

    assert "a" in store
    assert "c" in store
    assert "b" not in store


def test_updating_existing_key_does_not_evict() -> None:
    store = InMemoryBucketStore(max_entries=2)
    _save(store, "a")
    _save(store, "b")
    _save(store, "a", tokens=0.5)

    assert len(store) == 2
    assert store.stats()["evictions"] == 0


def test_clear_resets_state() -> None:
    store = InMemoryBucketStore()
    _save(store, "a")
    _load(store, "a")
    _load(store, "b")

    store.clear()

    assert store.stats() == {
        "max_entries": DEFAULT_MAX_ENTRIES,
        "entries": 0,
        "hits": 0,
        "misses": 0,
        "evictions": 0,
    }


def test_thread_safety_under_concurrent_saves() -> None:
    store = InMemoryBucketStore(max_entries=100)
    total_keys = 50

    def _writer(idx: int) -> None:
        _save(store, f"k-{idx}", tokens=float(idx))

    threads = [threading.Thread(target=_writer, args=(i,)) for i in range(total_keys)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == total_keys
    loaded = _load(store, "k-25")
    assert loaded is not None
    assert loaded.tokens == 25.0


class TestBucketRecord:
    def test_initial_bucket_is_full(self) -> None:
        assert Bucket.initial(10, now=1_700) == Bucket(tokens=10.0, mtime=1_700, rtime=1_700)

    def test_record_shape(self) -> None:
        record = Bucket(tokens=4, mtime=10, rtime=20).to_record()

        assert record == {"tokens": 4.0, "mtime": 10, "rtime": 20}
        assert isinstance(record["tokens"], float)
        assert isinstance(record["mtime"], int)

    def test_from_record_accepts_serialized_numbers(self) -> None:
        bucket = Bucket.from_record({"tokens": "0.5", "mtime": 10.0, "rtime": "20"})

        assert bucket == Bucket(tokens=0.5, mtime=10, rtime=20)

    def test_status_schema_from_bucket(self) -> None:
        status = RateLimitStatus.from_bucket(Bucket(tokens=1.25, mtime=5, rtime=9))

        assert status.model_dump() == {"tokens": 1.25, "mtime": 5, "rtime": 9}
