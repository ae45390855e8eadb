"""Alarm API routes.

Provides:
- GET    /api/alarms         (all alarm records keyed without the prefix)
- DELETE /api/alarms         (delete every alarm record)
- DELETE /api/alarms/{key}   (delete one alarm record)
- GET    /api/data           (raw dump of every Redis key, bearer only)

Deletions notify the external endpoint when notifications are enabled,
regardless of the trigger set.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, HTTPException, Response, status

from logvault.core.auth import require_api_auth, require_bearer
from logvault.core.context import AppContext, get_context
from logvault.core.store import ALARM_PREFIX, KeyNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["alarms"])

ALL_ALARMS_KEY = "ALL_ALARMS"
CLEAR_STATUS = "CLEAR"

_STORE_ERRORS = (aioredis.RedisError, ConnectionError, OSError)


def _decode_value(raw: str) -> Any:
    """Return parsed JSON when the value is JSON, else the raw string."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return raw


@router.get("/alarms")
async def list_alarms(
    context: AppContext = Depends(get_context),
    _auth: str = Depends(require_api_auth),
) -> dict[str, Any]:
    """Return every alarm record, keyed without the ``alarm:`` prefix."""
    try:
        keys = await context.store.list_by_prefix(ALARM_PREFIX)
    except _STORE_ERRORS as exc:
        logger.error("Failed to list alarm keys: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get keys from Redis",
        ) from exc

    alarms: dict[str, Any] = {}
    for key in sorted(keys):
        try:
            raw = await context.store.get(key)
        except KeyNotFoundError:
            # Cleared between listing and reading
            continue
        except _STORE_ERRORS as exc:
            logger.warning("Failed to get value for key %s: %s", key, exc)
            continue
        alarms[key.removeprefix(ALARM_PREFIX)] = _decode_value(raw)
    return alarms


@router.delete("/alarms", status_code=status.HTTP_204_NO_CONTENT)
@router.delete("/alarms/", status_code=status.HTTP_204_NO_CONTENT, include_in_schema=False)
async def delete_all_alarms(
    context: AppContext = Depends(get_context),
    _auth: str = Depends(require_api_auth),
) -> Response:
    """Delete every alarm record."""
    try:
        keys = await context.store.list_by_prefix(ALARM_PREFIX)
        removed = await context.store.delete(*keys) if keys else 0
    except _STORE_ERRORS as exc:
        logger.error("Failed to DEL all alarm keys via API: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete keys from Redis",
        ) from exc

    if keys:
        logger.info("API: Deleted %d alarm keys", removed)
        context.dispatcher.notify(
            {
                "key": ALL_ALARMS_KEY,
                "message": f"Deleted {removed} alarms via web UI",
                "status": CLEAR_STATUS,
            }
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/alarms/{key:path}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_alarm(
    key: str,
    context: AppContext = Depends(get_context),
    _auth: str = Depends(require_api_auth),
) -> Response:
    """Delete one alarm record by its key without the prefix."""
    if not key.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Key is missing")

    full_key = f"{ALARM_PREFIX}{key}"
    try:
        await context.store.delete(full_key)
    except _STORE_ERRORS as exc:
        logger.error("Failed to DEL key %s via API: %s", full_key, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete key from Redis",
        ) from exc

    logger.info("API: Deleted key %s", full_key)
    context.dispatcher.notify(
        {
            "key": full_key,
            "message": f"Alarm cleared for {key} via web UI",
            "status": CLEAR_STATUS,
        }
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/data")
async def dump_data(
    context: AppContext = Depends(get_context),
    _auth: str = Depends(require_bearer),
) -> dict[str, str]:
    """Return every key in Redis with its string value."""
    try:
        keys = await context.store.list_all()
    except _STORE_ERRORS as exc:
        logger.error("Failed to list Redis keys: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get Redis keys: {exc}",
        ) from exc

    data: dict[str, str] = {}
    for key in sorted(keys):
        try:
            data[key] = await context.store.get(key)
        except KeyNotFoundError:
            continue
        except _STORE_ERRORS as exc:
            # Non-string types (hashes, lists) land here too
            logger.warning("Failed to get value for key %s: %s", key, exc)
            continue
    return data
