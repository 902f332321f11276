"""Bucket state and its snapshot schema."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import BaseModel, Field


@dataclass
class Bucket:
    """Persisted state of one rate-limited key.

    Attributes:
        tokens: Available tokens, ``0 <= tokens <= burst``.
        mtime: Last modification, milliseconds since epoch.
        rtime: Instant (ms since epoch) at which the bucket is full again; in
            fixed mode this is also the window boundary.
    """

    tokens: float
    mtime: int
    rtime: int

    @classmethod
    def initial(cls, burst: float, now: int) -> Bucket:
        """Full bucket for a key that has never been seen (or was evicted)."""
        return cls(tokens=float(burst), mtime=now, rtime=now)

    def to_record(self) -> dict[str, Any]:
        """Return the storage shape shared by every store implementation."""
        return {"tokens": float(self.tokens), "mtime": int(self.mtime), "rtime": int(self.rtime)}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Bucket:
        return cls(
            tokens=float(record["tokens"]),
            mtime=int(record["mtime"]),
            rtime=int(record["rtime"]),
        )


class RateLimitStatus(BaseModel):
    """Client-facing snapshot of a bucket after an admission decision."""

    tokens: float = Field(..., description="Tokens left in the bucket", ge=0)
    mtime: int = Field(..., description="Last update, epoch milliseconds")
    rtime: int = Field(..., description="Epoch milliseconds at which the bucket is full again")

    @classmethod
    def from_bucket(cls, bucket: Bucket) -> RateLimitStatus:
        return cls(**bucket.to_record())
