"""Browser login and page routes.

Provides:
- GET  /            (dashboard page, session required)
- GET  /login.html  (login page, public)
- POST /login       (shared-secret login, sets the session cookie)
- GET  /logout      (revoke session, clear cookie)
"""

import logging
import secrets
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

from logvault.core.auth import clear_session_cookie, has_valid_session, set_session_cookie
from logvault.core.config import Settings
from logvault.core.context import AppContext, get_context
from logvault.core.sessions import SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])
limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])

LOGIN_PAGE = "/login.html"


class LoginRequest(BaseModel):
    """Shared-secret login body."""

    secret: str


class MessageResponse(BaseModel):
    message: str


def _static_file(settings: Settings, name: str) -> FileResponse:
    path = Path(settings.web_static_dir).resolve() / name
    if not path.is_file():
        logger.error("Could not stat file at path %s", path)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal Server Error",
        )
    return FileResponse(path, media_type="text/html")


@router.get("/", include_in_schema=False, response_model=None)
async def serve_home(
    request: Request,
    context: AppContext = Depends(get_context),
) -> FileResponse | RedirectResponse:
    """Serve the dashboard, or send the browser to the login page."""
    if not has_valid_session(request, context):
        response = RedirectResponse(LOGIN_PAGE, status_code=status.HTTP_302_FOUND)
        if request.cookies.get(SESSION_COOKIE_NAME):
            clear_session_cookie(response, context.settings)
        return response
    return _static_file(context.settings, "index.html")


@router.get(LOGIN_PAGE, include_in_schema=False)
async def serve_login_page(context: AppContext = Depends(get_context)) -> FileResponse:
    return _static_file(context.settings, "login.html")


@router.post("/login", response_model=MessageResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    payload: LoginRequest,
    context: AppContext = Depends(get_context),
) -> JSONResponse:
    """Exchange the shared web secret for a session cookie."""
    settings = context.settings
    if not settings.web_secret:
        logger.warning("Web secret is not set; login will always fail")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server secret not configured",
        )

    if not secrets.compare_digest(payload.secret.encode("utf-8"), settings.web_secret.encode("utf-8")):
        return JSONResponse(
            content={"message": "Invalid secret"},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    token = context.sessions.create()
    response = JSONResponse(
        content={"message": "Login successful"},
        status_code=status.HTTP_200_OK,
    )
    set_session_cookie(response, token, settings)
    return response


@router.get("/logout", include_in_schema=False)
async def logout(
    request: Request,
    context: AppContext = Depends(get_context),
) -> RedirectResponse:
    """Invalidate the session and redirect to the login page."""
    context.sessions.revoke(request.cookies.get(SESSION_COOKIE_NAME))
    response = RedirectResponse(LOGIN_PAGE, status_code=status.HTTP_302_FOUND)
    clear_session_cookie(response, context.settings)
    return response
