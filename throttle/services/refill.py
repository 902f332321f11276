"""Token refill for sliding and fixed windows.

Both functions are pure: they never mutate the bucket they receive and never
round token counts, so fractional refill accumulates exactly across calls.
"""

from __future__ import annotations

import math

from throttle.core.rate_spec import RateSpec
from throttle.schemas.bucket import Bucket


def reset_time(tokens: float, rate_spec: RateSpec, burst: float, now: int) -> int:
    """Earliest instant (ms) at which a sliding bucket holding ``tokens`` is full."""

    missing = max(0.0, burst - tokens)
    return now + math.ceil(rate_spec.time_for(missing))


def refill(bucket: Bucket, rate_spec: RateSpec, burst: float, now: int) -> Bucket:
    """Bring ``bucket`` up to ``now``.

    Args:
        bucket: Bucket as last persisted.
        rate_spec: Parsed refill model.
        burst: Bucket capacity.
        now: Decision time in epoch milliseconds.

    Returns:
        Bucket: A new bucket reflecting tokens available at ``now``.
    """

    if rate_spec.is_fixed:
        if now >= bucket.rtime:
            return Bucket(tokens=float(burst), mtime=now, rtime=now + math.ceil(rate_spec.window_ms))
        return Bucket(tokens=bucket.tokens, mtime=bucket.mtime, rtime=bucket.rtime)

    # mtime never moves backwards, so time is only ever counted once.
    mtime = max(bucket.mtime, now)
    tokens = min(float(burst), bucket.tokens + rate_spec.tokens_for(mtime - bucket.mtime))
    return Bucket(tokens=tokens, mtime=mtime, rtime=reset_time(tokens, rate_spec, burst, mtime))
