"""
auth/session.py -- Stateless signed session tokens carried in a cookie.

Wire format:
    <b64url(payload)>.<b64url(tag)>

    payload  compact JSON {"uid": int, "iat": int, "exp": int | null}, fields
             always in that order (pydantic model_dump_json follows field
             declaration order).
    tag      HMAC-SHA256 (auth.keys.SigningKey, an itsdangerous Signer) over
             the ASCII bytes of the first segment -- exactly the bytes that
             travel in the cookie, so nothing is re-encoded between signing
             and verification.

    Both segments use itsdangerous' URL-safe base64 without padding.

Verification is one linear pipeline and must stay in this order:
    1. structure  -- two non-empty segments, canonical 32-byte tag    -> Malformed
    2. signature  -- Signer.unsign, constant-time comparison           -> BadSignature
    3. semantics  -- decode claims, check expiry                      -> Malformed / Expired
No claim is read before step 2 passes, so a forged expiry can never be
trusted.

There is no server-side session table. Logging out only tells the browser to
drop the cookie (cookie_logout); a copied token stays valid until it expires.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone

from itsdangerous import BadData
from itsdangerous.encoding import base64_decode, base64_encode
from pydantic import BaseModel, ConfigDict, ValidationError

from auth.errors import Expired, Malformed
from auth.keys import SEPARATOR, TAG_BYTES, SigningKey
from auth.models import User

# Real tokens are ~120 chars. Anything far larger is rejected before decoding.
_MAX_COOKIE_CHARS = 4096
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class _Claims(BaseModel):
    """Canonical payload layout. strict=True refuses "1" or true for an int."""

    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    uid: int
    iat: int
    exp: int | None = None


def _check_structure(value: str | None) -> None:
    if not value or len(value) > _MAX_COOKIE_CHARS:
        raise Malformed("session cookie is empty or oversized")
    segments = value.split(SEPARATOR)
    if len(segments) != 2 or not all(segments):
        raise Malformed("session cookie is not payload.tag")
    tag_segment = segments[1]
    try:
        tag = base64_decode(tag_segment)
    except BadData as exc:
        raise Malformed("session tag is not base64url") from exc
    # base64_decode skips foreign characters and ignores the unused low bits
    # of the last one, so only the canonical spelling may pass.
    if len(tag) != TAG_BYTES or base64_encode(tag).decode("ascii") != tag_segment:
        raise Malformed("session tag has the wrong shape")


@dataclass(frozen=True)
class SessionToken:
    """Verified (or freshly minted) session identity.

    Usage:
        token = SessionToken.create(user, ttl=3600)
        value = token.serialize(key)
        same = SessionToken.parse_and_verify(value, key)
    """

    user_id: int
    issued_at: int
    expires_at: int | None = None

    @classmethod
    def create(cls, user: User, ttl: int | None = None, now: float | None = None) -> SessionToken:
        """Mint a token for user. No storage or network access."""
        issued_at = int(time.time() if now is None else now)
        expires_at = issued_at + ttl if ttl else None
        return cls(user_id=user.id, issued_at=issued_at, expires_at=expires_at)

    @property
    def ttl(self) -> int | None:
        if self.expires_at is None:
            return None
        return self.expires_at - self.issued_at

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (time.time() if now is None else now)

    def serialize(self, key: SigningKey) -> str:
        """Encode the claims canonically, sign them, return the cookie value."""
        claims = _Claims(uid=self.user_id, iat=self.issued_at, exp=self.expires_at)
        payload = base64_encode(claims.model_dump_json()).decode("ascii")
        return key.sign_value(payload)

    @classmethod
    def parse_and_verify(cls, value: str | None, key: SigningKey, now: float | None = None) -> SessionToken:
        """Return the token encoded in value or raise a SessionError subclass.

        Raises:
            Malformed:    structure is wrong, or the authentic payload does not decode.
            BadSignature: the tag does not match the payload under key.
            Expired:      authentic token whose expiry has elapsed.
        """
        _check_structure(value)
        payload = key.unsign_value(value)
        try:
            claims = _Claims.model_validate_json(base64_decode(payload))
        except (BadData, ValidationError) as exc:
            raise Malformed("session payload does not decode") from exc
        token = cls(user_id=claims.uid, issued_at=claims.iat, expires_at=claims.exp)
        if token.is_expired(now):
            raise Expired("session expired")
        return token


# ---------------------------------------------------------------------------
# Cookies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CookieSpec:
    """A Set-Cookie instruction. apply() hands it to the response's set_cookie."""

    name: str
    value: str
    max_age: int | None = None
    expires: datetime | None = None
    path: str = "/"
    secure: bool = True
    httponly: bool = True
    samesite: str = "strict"

    def apply(self, response) -> None:
        """Write this cookie onto a Starlette/FastAPI response."""
        response.set_cookie(
            self.name,
            value=self.value,
            max_age=self.max_age,
            expires=self.expires,
            path=self.path,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )


def cookie_login(token: SessionToken, key: SigningKey, *, name: str = "session", secure: bool = True) -> CookieSpec:
    """Cookie carrying the signed token. Max-Age tracks the token expiry when it has one."""
    return CookieSpec(name=name, value=token.serialize(key), max_age=token.ttl, secure=secure)


def cookie_logout(*, name: str = "session", secure: bool = True) -> CookieSpec:
    """Empty, already-expired cookie with the login cookie's name, path and flags."""
    return CookieSpec(name=name, value="", max_age=0, expires=_EPOCH, secure=secure)
