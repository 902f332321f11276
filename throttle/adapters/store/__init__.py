"""Bucket store adapters.

The decision engine only talks to ``AbstractBucketStore``; the bounded
in-memory store is the default and suits single-process deployments.
"""

from throttle.adapters.store.base import AbstractBucketStore
from throttle.adapters.store.in_memory import DEFAULT_MAX_ENTRIES, InMemoryBucketStore

__all__ = ["AbstractBucketStore", "DEFAULT_MAX_ENTRIES", "InMemoryBucketStore"]
