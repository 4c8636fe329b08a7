"""
auth/errors.py -- Exception taxonomy for the authentication core.

Every failure the core can report is a subclass of AuthError so route code
can map them to HTTP responses in one place. Session failures share the
SessionError base: callers treat all of them as "not logged in", while logs
keep the concrete class name for diagnostics.

SigningKeyError is deliberately NOT an AuthError. It is a startup failure,
never a request-level outcome, and must abort the process.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base authentication error."""


class UsernameTaken(AuthError):
    """Registration conflict: the username is already claimed."""

    def __init__(self, username: str) -> None:
        super().__init__(f"Username {username!r} is already taken")
        self.username = username


class InvalidCredentials(AuthError):
    """Unknown username or wrong password.

    The message is fixed and never carries the username, so the two causes
    are indistinguishable to the caller.
    """

    def __init__(self) -> None:
        super().__init__("Invalid username or password")


class InternalAuthError(AuthError):
    """Hashing or storage failure. Never a statement about the credentials."""


class SessionError(AuthError):
    """Base for every session cookie verification failure."""


class Malformed(SessionError):
    """Cookie value is absent or does not have the payload.tag structure."""


class BadSignature(SessionError):
    """Tag does not match the payload under the process signing key."""


class Expired(SessionError):
    """Authentic token whose expiry has elapsed."""


class UnknownUser(SessionError):
    """Authentic token naming a user the store no longer resolves."""


class SigningKeyError(ValueError):
    """Missing or too-short signing secret. Fatal at startup."""
