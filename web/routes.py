"""
web/routes.py -- Jinja2 template routes for the cookie-auth web UI.

These routes serve server-rendered HTML and plain HTML form posts. They share
app.state.auth with the API routes but answer with redirects and pages
instead of JSON.

Routes:
  GET  /               -- landing page; shows the user or the login/register forms
  POST /auth/register  -- handle registration form, 303 to /
  POST /auth/login     -- handle login form, 303 to /
  POST /auth/logout    -- expire the session cookie, 303 to /
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import try_get_current_user
from auth.errors import InternalAuthError, InvalidCredentials, UsernameTaken
from auth.models import MAX_PASSWORD_LENGTH, MAX_USERNAME_LENGTH, MIN_PASSWORD_LENGTH
from auth.service import AuthService

logger = logging.getLogger("cookieauth.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# Whitelist mapping for ?error= query params on / .
# The raw query param is NEVER passed to templates -- only the message from
# this dict is. Prevents reflected XSS via crafted error query strings.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": "Invalid username or password.",
    "username_taken": "That username is already taken.",
    "username_required": "Username is required.",
    "username_too_long": f"Username must be at most {MAX_USERNAME_LENGTH} characters.",
    "password_too_short": f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
    "password_too_long": f"Password must be at most {MAX_PASSWORD_LENGTH} characters.",
    "unavailable": "Something went wrong on our side. Please try again.",
}


def _see_other(url: str = "/") -> RedirectResponse:
    resp = RedirectResponse(url, status_code=303)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/", response_class=HTMLResponse)
async def index(request: Request) -> HTMLResponse:
    """Render the landing page for the current (possibly anonymous) visitor."""
    user = await try_get_current_user(request)
    if user is not None:
        logger.info("User is logged in (id=%d)", user.id)
    else:
        logger.info("User is not logged in")
    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    return templates.TemplateResponse(
        request,
        "index.html",
        {"user": {"id": user.id, "username": user.username} if user else None, "error_msg": error_msg},
    )


@router.post("/auth/register")
async def register_post(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
) -> RedirectResponse:
    """Handle the registration form. Logs the new account in on success."""
    auth: AuthService = request.app.state.auth
    username = username.strip()
    if not username:
        return _see_other("/?error=username_required")
    if len(username) > MAX_USERNAME_LENGTH:
        return _see_other("/?error=username_too_long")
    if len(password) < MIN_PASSWORD_LENGTH:
        return _see_other("/?error=password_too_short")
    if len(password) > MAX_PASSWORD_LENGTH:
        return _see_other("/?error=password_too_long")

    logger.info("Registering a new account")
    try:
        user, token = await auth.register(username, password)
    except UsernameTaken:
        return _see_other("/?error=username_taken")
    except InternalAuthError:
        logger.exception("Registration failed")
        return _see_other("/?error=unavailable")

    logger.info("Logged in after registration (id=%d)", user.id)
    resp = _see_other("/")
    auth.login_cookie(token).apply(resp)
    return resp


@router.post("/auth/login")
async def login_post(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
) -> RedirectResponse:
    """Handle the login form."""
    auth: AuthService = request.app.state.auth
    username = username.strip()
    # Nothing this long can have been registered.
    if len(username) > MAX_USERNAME_LENGTH or len(password) > MAX_PASSWORD_LENGTH:
        return _see_other("/?error=bad_credentials")

    logger.info("Logging in")
    try:
        _user, token = await auth.login(username, password)
    except InvalidCredentials:
        return _see_other("/?error=bad_credentials")
    except InternalAuthError:
        logger.exception("Login failed")
        return _see_other("/?error=unavailable")

    resp = _see_other("/")
    auth.login_cookie(token).apply(resp)
    return resp


@router.post("/auth/logout")
async def logout_post(request: Request) -> RedirectResponse:
    """Expire the session cookie and go back to the landing page."""
    auth: AuthService = request.app.state.auth
    logger.info("Logging out")
    resp = _see_other("/")
    auth.logout_cookie().apply(resp)
    return resp
