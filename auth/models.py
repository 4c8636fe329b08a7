"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these only own the shape.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class User:
    """A registered account.

    Created by registration and immutable thereafter. password_hash is the
    Argon2 PHC string produced by CredentialHasher; it is excluded from repr so
    a logged User never carries it.
    """

    id: int
    username: str
    password_hash: str = field(repr=False)
    created_at: str | None = None


# Credential limits shared by every front door (JSON API and HTML forms).
MAX_USERNAME_LENGTH = 255
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 1024
