"""Admission decisions.

One call to :func:`decide` is one decision cycle for one key:

    load -> refill -> compare with cost -> consume -> save

The cycle holds no lock. With the in-memory store nothing in it suspends, so
cycles on one event loop never interleave. With a store that awaits I/O, two
cycles for the same key can both load the same bucket, both admit, and the
second save overwrites the first; that hazard belongs to the store contract
and is deliberately left in place here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, TypeVar

from throttle.adapters.store.base import AbstractBucketStore
from throttle.core.errors import StoreError, ValidationAppError
from throttle.core.rate_spec import RateSpec
from throttle.schemas.bucket import Bucket
from throttle.services.refill import refill, reset_time

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Verdict:
    """Outcome of a decision cycle.

    Attributes:
        allowed: Whether the unit of work is admitted.
        bucket: Bucket as persisted at the end of the cycle.
    """

    allowed: bool
    bucket: Bucket

    @property
    def remaining(self) -> float:
        return max(0.0, self.bucket.tokens)


async def _bounded(operation: str, call: Awaitable[T], timeout: float | None) -> T:
    if timeout is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError as exc:
        raise StoreError(
            code="store_timeout",
            message=f"Bucket store {operation} timed out after {timeout}s",
            details={"operation": operation, "timeout_seconds": timeout},
        ) from exc


async def decide(
    key: str,
    cost: float,
    rate_spec: RateSpec,
    burst: float,
    store: AbstractBucketStore,
    *,
    now: int,
    timeout: float | None = None,
) -> Verdict:
    """Admit or throttle one unit of work for ``key``.

    Args:
        key: Client identifier.
        cost: Tokens the unit of work consumes (0 is always admitted).
        rate_spec: Parsed refill model.
        burst: Bucket capacity.
        store: Bucket persistence.
        now: Decision time in epoch milliseconds.
        timeout: Optional bound in seconds for each store call.

    Returns:
        Verdict with the persisted bucket snapshot.

    Raises:
        ValidationAppError: If cost is negative.
        StoreError: If the store fails or a bounded call times out.
    """

    if cost < 0:
        raise ValidationAppError(
            code="invalid_cost",
            message="cost must be >= 0",
            details={"field": "cost", "value": str(cost)},
        )

    stored = await _bounded("load", store.load(key), timeout)
    bucket = stored if stored is not None else Bucket.initial(burst, now)
    bucket = refill(bucket, rate_spec, burst, now)

    allowed = bucket.tokens >= cost
    if allowed and cost > 0:
        bucket.tokens -= cost
        bucket.mtime = max(bucket.mtime, now)
        if not rate_spec.is_fixed:
            bucket.rtime = reset_time(bucket.tokens, rate_spec, burst, bucket.mtime)

    await _bounded("save", store.save(key, bucket), timeout)

    logger.debug(
        "decision.made",
        extra={
            "allowed": allowed,
            "cost": cost,
            "tokens": bucket.tokens,
            "rtime": bucket.rtime,
            "first_seen": stored is None,
        },
    )
    return Verdict(allowed=allowed, bucket=bucket)
