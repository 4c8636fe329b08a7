"""
api/routes/v1/auth.py -- Registration, login and session REST endpoints.

Routes:
  POST /api/v1/auth/register  -- create account; sets session cookie; 201
  POST /api/v1/auth/login     -- password login; sets session cookie; 200
  POST /api/v1/auth/logout    -- expires the session cookie; 200
  GET  /api/v1/auth/me        -- current user info (requires auth)

Security:
  Login returns the same "bad_credentials" error for an unknown username and
  a wrong password. AuthService.login() already equalizes timing.
  Cache-Control: no-store on responses that set a session cookie.
  The token is only ever delivered in the HttpOnly cookie, never in a body.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, LoginRequest, MeResponse, MessageResponse, RegisterRequest
from auth.dependencies import get_current_user
from auth.errors import InvalidCredentials, UsernameTaken
from auth.models import User
from auth.service import AuthService

logger = logging.getLogger("cookieauth.api")

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:   public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:       requires auth (get_current_user)
router = APIRouter()


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/register", response_model=MeResponse, status_code=201)
async def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and log it in. 409 if the username is taken."""
    auth: AuthService = request.app.state.auth
    username = body.normalized_username()
    if not username:
        return _error(422, "validation_error", "Username is required.")
    logger.info("Registering a new account")
    try:
        user, token = await auth.register(username, body.password)
    except UsernameTaken:
        return _error(409, "username_taken", "That username is already taken.")

    resp = JSONResponse(status_code=201, content=MeResponse.from_user(user).model_dump())
    auth.login_cookie(token).apply(resp)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/login", response_model=MeResponse)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; set the session cookie."""
    auth: AuthService = request.app.state.auth
    try:
        user, token = await auth.login(body.normalized_username(), body.password)
    except InvalidCredentials:
        return _error(401, "bad_credentials", "Invalid username or password.")

    resp = JSONResponse(status_code=200, content=MeResponse.from_user(user).model_dump())
    auth.login_cookie(token).apply(resp)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(request: Request) -> JSONResponse:
    """Tell the client to drop the session cookie."""
    auth: AuthService = request.app.state.auth
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    auth.logout_cookie().apply(resp)
    return resp


@router.get("/auth/me", response_model=MeResponse)
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse.from_user(current_user)
