"""Bucket store interface.

The decision engine depends on this abstraction (not a concrete backend) so a
single-process deployment can use the bounded in-memory store while a
multi-process deployment plugs in a shared service.

Both operations are coroutines, which makes every point where a decision cycle
may suspend explicit. A store that awaits I/O inside ``load``/``save`` lets two
cycles for the same key interleave; the interface has no compare-and-swap, so
the later ``save`` wins and the earlier cycle's consumption is lost.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from throttle.schemas.bucket import Bucket


class AbstractBucketStore(ABC):
    """Interface for bucket persistence keyed by client identifier."""

    @abstractmethod
    async def load(self, key: str) -> Bucket | None:
        """Fetch the bucket stored for ``key``.

        Args:
            key: Client identifier (e.g., IP address).

        Returns:
            The stored bucket, or None when the key is unknown.

        Raises:
            StoreError: If the backend cannot be reached or read.
        """
        raise NotImplementedError

    @abstractmethod
    async def save(self, key: str, bucket: Bucket) -> None:
        """Persist ``bucket`` under ``key``.

        A successful return guarantees a later ``load`` of the same key sees
        this bucket (or a newer one).

        Raises:
            StoreError: If the backend rejects or loses the write.
        """
        raise NotImplementedError
