"""Token-bucket throttling middleware for FastAPI/Starlette.

This module wires the decision engine into the HTTP layer. Per request it
resolves a client key and a cost, runs one decision cycle, and hands the
request to ``on_allowed`` or ``on_throttled`` together with the bucket
snapshot.

Usage:
    limiter = Throttle(rate="5/s", burst=10)
    app.middleware("http")(limiter)

Design goals:
- Fail at construction: every option is validated up front.
- One store per limiter: independently configured limits never share keys.
- Explicit store-error policy: ``on_store_error`` picks fail-open or
  fail-closed; the decision engine itself never guesses.
"""

from __future__ import annotations

import inspect
import logging
import math
import time
from dataclasses import dataclass
from numbers import Real
from typing import Any, Awaitable, Callable, Literal, Union

from fastapi import Request, Response

from throttle.adapters.store.base import AbstractBucketStore
from throttle.adapters.store.in_memory import DEFAULT_MAX_ENTRIES, InMemoryBucketStore
from throttle.core.config import ThrottleSettings
from throttle.core.errors import StoreError, ValidationAppError
from throttle.core.logging import hash_key
from throttle.core.rate_spec import RateSpec, parse_rate
from throttle.schemas.bucket import Bucket
from throttle.services.decision import Verdict, decide

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]
Hook = Callable[[Request, CallNext, Union[Bucket, None]], Union[Response, Awaitable[Response]]]
KeyResolver = Callable[[Request], Union[str, Awaitable[str]]]
CostResolver = Callable[[Request], Union[float, Awaitable[float]]]

STORE_ERROR_POLICIES = ("open", "closed")


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass(frozen=True)
class FixedCost:
    """The same cost for every request."""

    value: float

    async def resolve(self, request: Request) -> float:
        return self.value


@dataclass(frozen=True)
class DynamicCost:
    """Cost computed from the request (e.g. 0 for whitelisted callers)."""

    resolver: CostResolver

    async def resolve(self, request: Request) -> float:
        cost = await _maybe_await(self.resolver(request))
        if not _is_number(cost) or cost < 0:
            raise ValidationAppError(
                code="invalid_cost",
                message="cost resolver must return a non-negative number",
                details={"field": "cost", "value": repr(cost)},
            )
        return float(cost)


Cost = Union[FixedCost, DynamicCost]


def client_address(request: Request) -> str:
    """Default key: first X-Forwarded-For hop, else the peer address."""

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    return request.client.host if request.client else "unknown"


async def proceed(request: Request, call_next: CallNext, bucket: Bucket | None) -> Response:
    """Default ``on_allowed``: continue down the middleware chain."""

    return await call_next(request)


async def reject(request: Request, call_next: CallNext, bucket: Bucket | None) -> Response:
    """Default ``on_throttled``: empty 429 response."""

    return Response(status_code=429)


def _config_error(field: str, message: str, value: Any = None) -> ValidationAppError:
    return ValidationAppError(
        code="invalid_throttle_config",
        message=message,
        details={"field": field, "value": repr(value)},
    )


def _coerce_cost(cost: Any) -> Cost:
    if isinstance(cost, (FixedCost, DynamicCost)):
        return cost
    if callable(cost):
        return DynamicCost(cost)
    if _is_number(cost) and cost >= 0:
        return FixedCost(float(cost))
    raise _config_error("cost", "cost must be a non-negative number or a function", cost)


def _require_callable(field: str, value: Any, default: Any) -> Any:
    if value is None:
        return default
    if not callable(value):
        raise _config_error(field, f"{field} must be a function", value)
    return value


class Throttle:
    """Per-key token-bucket limiter bound to Starlette requests.

    ``burst`` and ``rate`` may also be given positionally, in that order:
    ``Throttle(10, "5/s")``. Everything else is keyword-only.

    Args:
        burst: Bucket capacity (positive number).
        rate: Refill rate, e.g. ``"5/s"`` or ``"100/15min:fixed"``.
        store: Bucket store; defaults to a fresh ``InMemoryBucketStore``.
        key: ``request -> str`` (sync or async); defaults to the client address.
        cost: Number, or ``request -> number`` (sync or async); defaults to 1.
        on_allowed: ``(request, call_next, bucket) -> Response`` for admitted requests.
        on_throttled: ``(request, call_next, bucket) -> Response`` for rejected requests.
        on_store_error: ``"closed"`` throttles and ``"open"`` admits when the
            store fails; hooks then receive ``bucket=None``.
        store_timeout: Optional bound in seconds for each store call.
        clock: Time source returning UNIX time in seconds.

    Raises:
        ValidationAppError: If any option is missing or has the wrong type.
        FormatError: If ``rate`` is malformed.
    """

    def __init__(
        self,
        burst: float | None = None,
        rate: str | None = None,
        *,
        store: AbstractBucketStore | None = None,
        key: KeyResolver | None = None,
        cost: float | CostResolver | Cost = 1,
        on_allowed: Hook | None = None,
        on_throttled: Hook | None = None,
        on_store_error: Literal["open", "closed"] = "closed",
        store_timeout: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if rate is None:
            raise _config_error("rate", "rate is required")
        if not isinstance(rate, str):
            raise _config_error("rate", "rate must be a string such as '5/s'", rate)
        if burst is None:
            raise _config_error("burst", "burst is required")
        if not _is_number(burst) or burst <= 0:
            raise _config_error("burst", "burst must be a positive number", burst)
        if store is not None and not isinstance(store, AbstractBucketStore):
            raise _config_error("store", "store must implement AbstractBucketStore", store)
        if on_store_error not in STORE_ERROR_POLICIES:
            raise _config_error("on_store_error", "on_store_error must be 'open' or 'closed'", on_store_error)
        if store_timeout is not None and (not _is_number(store_timeout) or store_timeout <= 0):
            raise _config_error("store_timeout", "store_timeout must be a positive number", store_timeout)

        self.rate_spec: RateSpec = parse_rate(rate)
        self.burst = float(burst)
        self.store = store if store is not None else InMemoryBucketStore(DEFAULT_MAX_ENTRIES)
        self.cost = _coerce_cost(cost)
        self._key = _require_callable("key", key, client_address)
        self._on_allowed = _require_callable("on_allowed", on_allowed, proceed)
        self._on_throttled = _require_callable("on_throttled", on_throttled, reject)
        self.on_store_error = on_store_error
        self.store_timeout = store_timeout
        self._clock = clock

    @classmethod
    def from_settings(cls, throttle_settings: ThrottleSettings, **overrides: Any) -> Throttle:
        """Build a limiter from configuration; keyword overrides win."""

        options: dict[str, Any] = {
            "rate": throttle_settings.rate,
            "burst": throttle_settings.burst,
            "cost": throttle_settings.default_cost,
            "on_store_error": throttle_settings.on_store_error,
            "store_timeout": throttle_settings.store_timeout_seconds,
        }
        if "store" not in overrides:
            options["store"] = InMemoryBucketStore(throttle_settings.store_max_entries)
        options.update(overrides)
        return cls(**options)

    def _now_ms(self) -> int:
        return round(self._clock() * 1000)

    async def resolve_key(self, request: Request) -> str:
        key = await _maybe_await(self._key(request))
        if not isinstance(key, str):
            raise ValidationAppError(
                code="invalid_key",
                message="key function must return a string",
                details={"field": "key", "value": repr(key)},
            )
        return key

    async def check(self, request: Request) -> Verdict:
        """Run one decision cycle for ``request``.

        Raises:
            StoreError: If the store fails; the policy is applied by ``__call__``.
        """

        key = await self.resolve_key(request)
        cost = await self.cost.resolve(request)
        verdict = await decide(
            key,
            cost,
            self.rate_spec,
            self.burst,
            self.store,
            now=self._now_ms(),
            timeout=self.store_timeout,
        )

        extra = {
            "key_hash": hash_key(key),
            "cost": cost,
            "burst": self.burst,
            "remaining": verdict.remaining,
            "reset_ms": verdict.bucket.rtime,
        }
        if verdict.allowed:
            logger.debug("throttle.allowed", extra=extra)
        else:
            logger.warning("throttle.throttled", extra=extra)
        return verdict

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        try:
            verdict = await self.check(request)
        except StoreError as exc:
            logger.error(
                "throttle.store_error",
                extra={
                    "error_code": exc.code,
                    "error_message": exc.message,
                    "policy": self.on_store_error,
                },
            )
            hook = self._on_allowed if self.on_store_error == "open" else self._on_throttled
            return await _maybe_await(hook(request, call_next, None))

        request.state.throttle_bucket = verdict.bucket
        hook = self._on_allowed if verdict.allowed else self._on_throttled
        return await _maybe_await(hook(request, call_next, verdict.bucket))
