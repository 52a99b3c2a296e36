"""
FastAPI application factory.

* Registers routes for rides, users, wallet and admin.
* Maps the dispatch error taxonomy onto JSON error responses.
* Starts / stops the optional stale-ride sweeper via lifespan events.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from naijamove.api.middleware import limiter
from naijamove.api.routes import admin, rides, users, wallet
from naijamove.config import settings
from naijamove.domain.errors import DispatchError
from naijamove.workers import sweeper as _sweeper

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the stale-ride sweeper on startup when enabled; stop on shutdown."""
    if settings.stale_ride_sweep_enabled:
        await _sweeper.start_sweep_loop()
    yield
    await _sweeper.stop_sweep_loop()


async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    app = FastAPI(
        title="NaijaMove Dispatch API",
        description=(
            "Ride-hailing and logistics dispatch for Okada, Keke, mini-bus "
            "and truck fleets: booking, driver matching, wallet settlement "
            "and automated fraud suspension."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(DispatchError, dispatch_error_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(users.router, prefix="/api/v1")
    app.include_router(wallet.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
