"""Application factory for the throttled FastAPI service.

Centralizes app construction (logging, throttle middleware, routers) so tests
can build isolated apps with their own settings and limiter.
"""

from __future__ import annotations

from fastapi import FastAPI, Request

from throttle.api.routes import health_router, limits_router
from throttle.api.routes.health import HEALTH_PATH
from throttle.core.config import Settings, settings
from throttle.core.logging import configure_logging
from throttle.core.rate_limit import Throttle


def create_app(app_settings: Settings | None = None, *, limiter: Throttle | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.
        limiter: Pre-built limiter; when omitted one is built from settings
            (health checks cost 0, other requests ``default_cost``).

    Returns:
        Configured FastAPI app.
    """
    cfg = app_settings or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="Throttle",
        description="Token-bucket request admission for FastAPI services.",
        version="0.1.0",
    )

    if limiter is None and cfg.throttle.enabled:
        default_cost = cfg.throttle.default_cost

        def cost(request: Request) -> float:
            return 0 if request.url.path == HEALTH_PATH else default_cost

        limiter = Throttle.from_settings(cfg.throttle, cost=cost)

    if limiter is not None:
        app.state.throttle = limiter
        app.middleware("http")(limiter)

    app.include_router(limits_router, prefix="/v1")
    app.include_router(health_router)

    return app
