"""Health check endpoint.

Returns overall system health and the Redis connection status along with
pipeline counters.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Request

from logvault.api.version import API_VERSION
from logvault.core.context import AppContext, get_context

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/api/v1/health")
async def health_check(request: Request, context: AppContext = Depends(get_context)) -> dict[str, Any]:
    """Check the health of the backing services.

    Returns:
        JSON object with overall status and per-service health:
        {
            "status": "healthy" | "unhealthy",
            "services": {"redis": "up" | "down"},
            "version": "0.3.0",
            "timestamp": "..."
        }
    """
    services: dict[str, str] = {}

    try:
        await context.store.ping()
        services["redis"] = "up"
    except (aioredis.RedisError, ConnectionError, OSError):
        logger.warning("Redis health check failed")
        services["redis"] = "down"

    result: dict[str, Any] = {
        "status": "healthy" if all(s == "up" for s in services.values()) else "unhealthy",
        "services": services,
        "version": API_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
    }

    listener = getattr(request.app.state, "listener", None)
    if listener is not None:
        result["syslog"] = {
            "received": listener.received,
            "processed": listener.processed,
            "dropped": listener.dropped,
            "pending": listener.pending,
        }
    dispatcher = context.dispatcher
    result["notifications"] = {
        "enabled": dispatcher.enabled,
        "sent": dispatcher.sent,
        "failed": dispatcher.failed,
        "dropped": dispatcher.dropped,
        "pending": dispatcher.pending,
    }
    return result
