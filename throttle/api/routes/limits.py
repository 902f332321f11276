from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, status

from throttle.schemas.bucket import RateLimitStatus

router = APIRouter(tags=["Limits"])


@router.get("/ping", response_model=RateLimitStatus)
async def ping(request: Request) -> RateLimitStatus:
    """Admitted-request probe.

    Returns the caller's bucket as persisted by the throttle middleware for
    this very request, i.e. after its cost was taken.

    Raises:
        HTTPException: 404 when the service runs without a throttle.
    """

    bucket = getattr(request.state, "throttle_bucket", None)
    if bucket is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Throttling is disabled on this service.",
        )
    return RateLimitStatus.from_bucket(bucket)
