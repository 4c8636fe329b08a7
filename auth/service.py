"""
auth/service.py -- The authentication interface the HTTP layer calls.

AuthService wires the four core pieces together:

    register / login   UserStore -> User -> SessionToken.create
    login_cookie       SessionToken.serialize(SigningKey) -> CookieSpec
    authenticate       Cookie header -> SessionToken.parse_and_verify -> User
    logout_cookie      expired, empty CookieSpec

One instance is built in the application lifespan and shared through
app.state. It holds no per-request mutable state.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from starlette.requests import cookie_parser

from auth.errors import Malformed, SessionError, UnknownUser
from auth.keys import SigningKey
from auth.models import User
from auth.session import CookieSpec, SessionToken, cookie_login, cookie_logout
from auth.store import UserStore

logger = logging.getLogger("cookieauth.auth")


class AuthService:
    def __init__(
        self,
        store: UserStore,
        key: SigningKey,
        *,
        ttl: int | None = 3600,
        cookie_name: str = "session",
        secure_cookies: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self._key = key
        self.ttl = ttl
        self.cookie_name = cookie_name
        self.secure_cookies = secure_cookies
        self._clock = clock

    @classmethod
    def from_settings(cls, store: UserStore, key: SigningKey, settings) -> AuthService:
        return cls(
            store,
            key,
            ttl=settings.session_ttl,
            cookie_name=settings.session_cookie_name,
            secure_cookies=settings.secure_cookies,
        )

    async def register(self, username: str, password: str) -> tuple[User, SessionToken]:
        """Create the account and log it in.

        Raises UsernameTaken or InternalAuthError.
        """
        user = await self.store.insert(username, password)
        return user, self._mint(user)

    async def login(self, username: str, password: str) -> tuple[User, SessionToken]:
        """Raises InvalidCredentials for an unknown user or a wrong password alike."""
        user = await self.store.get_and_verify(username, password)
        logger.info("Logged in user id=%d", user.id)
        return user, self._mint(user)

    async def authenticate(self, cookie_header: str | None) -> User:
        """Resolve the raw Cookie request header to the logged-in user.

        Raises a SessionError subclass on any failure. Callers should treat
        every subclass the same way: the request is anonymous.
        """
        value = cookie_parser(cookie_header or "").get(self.cookie_name)
        if value is None:
            raise Malformed("no session cookie")
        token = SessionToken.parse_and_verify(value, self._key, now=self._clock())
        user = await self.store.get_by_id(token.user_id)
        if user is None:
            raise UnknownUser(f"session names unknown user id={token.user_id}")
        return user

    async def try_authenticate(self, cookie_header: str | None) -> User | None:
        """Soft variant of authenticate(): None instead of SessionError."""
        try:
            user = await self.authenticate(cookie_header)
        except SessionError as exc:
            logger.info("Session rejected (%s)", type(exc).__name__)
            return None
        logger.info("Session accepted for user id=%d", user.id)
        return user

    def login_cookie(self, token: SessionToken) -> CookieSpec:
        return cookie_login(token, self._key, name=self.cookie_name, secure=self.secure_cookies)

    def logout_cookie(self) -> CookieSpec:
        return cookie_logout(name=self.cookie_name, secure=self.secure_cookies)

    def _mint(self, user: User) -> SessionToken:
        return SessionToken.create(user, ttl=self.ttl, now=self._clock())
