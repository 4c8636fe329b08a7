"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session cookie is the only credential. Both helpers hand the raw Cookie
header to AuthService.authenticate(), which does all parsing and verification.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from web/ or core/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import User
from auth.service import AuthService


async def try_get_current_user(request: Request) -> User | None:
    """Return the authenticated User, or None for any session failure. Never raises."""
    auth: AuthService = request.app.state.auth
    return await auth.try_authenticate(request.headers.get("cookie"))


async def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = await try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
