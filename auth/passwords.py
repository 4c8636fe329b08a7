"""
auth/passwords.py -- Salted, memory-hard password hashing.

Security design decisions:
  Argon2id via argon2-cffi's PasswordHasher. Each hash() call draws a fresh
  random salt; salt, cost parameters and digest are embedded in the PHC string
  ("$argon2id$v=19$m=...,t=...,p=...$salt$digest"), so no separate salt column
  is needed and verify() always recomputes with the parameters the record was
  created with.

  verify() returns False for a mismatch AND for a malformed record. Callers
  cannot tell the two apart, which keeps the login path free of an oracle.

  _dummy_hash is computed once per hasher so the "no such user" branch of a
  login can run a full verification and cost the same as "wrong password".

Hashing is CPU and memory bound by design. The hasher itself is synchronous;
async callers (auth.store.UserStore) push it onto a worker thread.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError

from auth.errors import InternalAuthError


class CredentialHasher:
    """Turn plaintext passwords into storable records and check them.

    Usage:
        hasher = CredentialHasher()
        record = hasher.hash("correct-horse")
        hasher.verify("correct-horse", record)   # True
        hasher.verify("wrong", record)           # False
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4) -> None:
        self._hasher = PasswordHasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)
        self._dummy_hash = self.hash("cookieauth-timing-dummy")

    @classmethod
    def from_settings(cls, settings) -> CredentialHasher:
        return cls(
            time_cost=settings.password_time_cost,
            memory_cost=settings.password_memory_cost,
            parallelism=settings.password_parallelism,
        )

    def hash(self, password: str) -> str:
        """Return an Argon2id PHC string for password.

        Raises InternalAuthError only when the underlying library fails (e.g.
        the memory cost cannot be allocated).
        """
        try:
            return self._hasher.hash(password)
        except HashingError as exc:
            raise InternalAuthError("password hashing failed") from exc

    def verify(self, password: str, record: str) -> bool:
        """Return True if password matches record, False on mismatch or malformed record."""
        try:
            return self._hasher.verify(record, password)
        except (VerificationError, InvalidHashError, UnicodeError):
            # argon2 encodes the record as ASCII and the password as UTF-8 first
            return False

    def verify_dummy(self, password: str) -> bool:
        """Spend one full verification against a throwaway hash. Always False."""
        self.verify(password, self._dummy_hash)
        return False
