"""Token-bucket request throttling.

The core is framework-free: parse a rate once, then call :func:`decide` per
unit of work against a bucket store. :class:`Throttle` binds it to
FastAPI/Starlette as HTTP middleware.
"""

from throttle.adapters.store import AbstractBucketStore, InMemoryBucketStore
from throttle.core.errors import AppError, FormatError, StoreError, ValidationAppError
from throttle.core.rate_limit import DynamicCost, FixedCost, Throttle
from throttle.core.rate_spec import RateSpec, RefillMode, parse_rate
from throttle.schemas.bucket import Bucket
from throttle.services.decision import Verdict, decide
from throttle.services.refill import refill

__all__ = [
    "AbstractBucketStore",
    "AppError",
    "Bucket",
    "DynamicCost",
    "FixedCost",
    "FormatError",
    "InMemoryBucketStore",
    "RateSpec",
    "RefillMode",
    "StoreError",
    "Throttle",
    "ValidationAppError",
    "Verdict",
    "decide",
    "parse_rate",
    "refill",
]
