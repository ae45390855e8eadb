"""Authentication dependencies for the web API.

Supports:
- Shared-secret browser login backed by ``SessionStore`` (HttpOnly cookie)
- Static bearer token for machine clients (``api_bearer_token``)
- FastAPI dependencies guarding the ``/api`` routes
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from fastapi import Depends, HTTPException, Request, Response, status

from logvault.core.config import Settings
from logvault.core.context import AppContext, get_context
from logvault.core.sessions import SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    """Attach the session cookie. SameSite=Lax, HttpOnly."""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=int(timedelta(hours=settings.session_expiry_hours).total_seconds()),
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def has_valid_session(request: Request, context: AppContext) -> bool:
    return context.sessions.validate(request.cookies.get(SESSION_COOKIE_NAME))


# ---------------------------------------------------------------------------
# Bearer token
# ---------------------------------------------------------------------------


def verify_bearer_header(authorization: str | None, settings: Settings) -> None:
    """Validate an ``Authorization: Bearer <token>`` header.

    Raises:
        HTTPException: 401 on a missing, malformed or wrong token; 500 when
            the server has no bearer token configured.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Missing Authorization header",
        )

    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid Authorization header format",
        )

    if not settings.api_bearer_token:
        logger.warning("Bearer token is not configured; bearer authentication will always fail")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Bearer token not configured on server",
        )

    if not secrets.compare_digest(token.encode("utf-8"), settings.api_bearer_token.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid Bearer token",
        )


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


async def require_api_auth(request: Request, context: AppContext = Depends(get_context)) -> str:
    """Accept either a valid session cookie or a valid bearer token.

    Returns:
        ``"session"`` or ``"bearer"``, naming the credential used.
    """
    if has_valid_session(request, context):
        return "session"
    verify_bearer_header(request.headers.get("Authorization"), context.settings)
    return "bearer"


async def require_bearer(request: Request, context: AppContext = Depends(get_context)) -> str:
    """Accept only a valid bearer token."""
    verify_bearer_header(request.headers.get("Authorization"), context.settings)
    return "bearer"
