"""LogVault FastAPI application entry point.

Configures the FastAPI app with:
- Lifespan events wiring Redis, the notification dispatcher, the syslog
  listener and its consumer, and the session sweeper
- Security middleware, CORS and slowapi rate limiting
- Route registration (pages/auth, alarms, health)
- OpenAPI documentation at /docs (debug mode only)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from logvault.api.middleware.security import RequestIDMiddleware, SecurityHeadersMiddleware
from logvault.api.routes import alarms, health
from logvault.api.routes import auth as auth_routes
from logvault.api.routes.auth import limiter
from logvault.api.version import API_VERSION
from logvault.core.config import Settings, get_settings
from logvault.core.context import AppContext
from logvault.core.sessions import run_sweeper
from logvault.core.store import open_redis, redis_reachable
from logvault.ingest.classifier import MessageClassifier
from logvault.ingest.listener import SyslogListener

logger = logging.getLogger(__name__)

# Upper bound on how long shutdown waits for queued notifications
NOTIFY_DRAIN_TIMEOUT_SECONDS = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown.

    On startup: connect Redis, start the notification workers, bind the
    syslog listener and start its consumer and the session sweeper.
    On shutdown: stop in reverse order, draining notifications briefly.
    """
    settings: Settings = app.state.settings

    # -- Redis ---
    redis_client = open_redis(settings)
    if await redis_reachable(redis_client):
        logger.info("Successfully connected to Redis at %s", settings.redis_address)
    else:
        logger.warning("Redis is not reachable; starting in degraded mode")

    context = AppContext.build(settings, redis_client)
    app.state.context = context

    # -- Notifications ---
    await context.dispatcher.start()

    # -- Syslog ---
    classifier = MessageClassifier(
        context.store,
        context.dispatcher,
        context.triggers,
        insights_tag=settings.insights_tag,
    )
    listener = SyslogListener(settings, classifier)
    try:
        await listener.start()
    except OSError:
        logger.exception("Failed to start syslog listener on %s:%d", settings.syslog_host, settings.syslog_port)
        await listener.stop()
        await context.dispatcher.stop(drain_timeout=1.0)
        await redis_client.aclose()
        raise
    app.state.listener = listener

    shutdown_event = asyncio.Event()
    tasks = [
        asyncio.create_task(listener.run(shutdown_event)),
        asyncio.create_task(
            run_sweeper(context.sessions, settings.session_sweep_interval_seconds, shutdown_event)
        ),
    ]
    logger.info("Syslog server started. Listening on %s:%d (%s)", settings.syslog_host, settings.syslog_port, settings.syslog_protocol)

    yield

    # -- Shutdown ---
    logger.info("Shutting down LogVault...")
    shutdown_event.set()
    await listener.stop()
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    await context.dispatcher.stop(drain_timeout=NOTIFY_DRAIN_TIMEOUT_SECONDS)
    await redis_client.aclose()
    logger.info("All connections closed")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Syslog alarm vault backed by Redis",
        version=API_VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # -- Rate Limiter (slowapi) ---
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # -- Middleware ---
    # Applied in reverse order (last added = first executed).
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", "X-Request-ID", "Accept"],
        )
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.cookie_secure)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(SlowAPIMiddleware)

    # -- Routes ---
    app.include_router(health.router)
    app.include_router(auth_routes.router)
    app.include_router(alarms.router)

    # -- Error Handlers ---
    @app.exception_handler(Exception)  # Intentionally broad: top-level global error handler
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception("Unhandled error [%s]: %s", request_id, exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "request_id": request_id},
        )

    return app
