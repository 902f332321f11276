from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from throttle.adapters.store.in_memory import InMemoryBucketStore

router = APIRouter(tags=["Health"])

HEALTH_PATH = "/health"


@router.get(HEALTH_PATH)
def health_check(request: Request) -> dict[str, Any]:
    """Health check endpoint.

    Reports liveness plus the in-memory store's occupancy when the service
    runs with the default store. Health checks are never charged tokens.
    """

    body: dict[str, Any] = {"status": "ok"}
    limiter = getattr(request.app.state, "throttle", None)
    if limiter is not None and isinstance(limiter.store, InMemoryBucketStore):
        body["store"] = limiter.store.stats()
    return body
