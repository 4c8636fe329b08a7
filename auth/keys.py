"""
auth/keys.py -- The process-wide session signing key.

Security design decisions:
  Signing is delegated to an itsdangerous Signer configured for HMAC-SHA256
  with key_derivation="none": the tag is the plain HMAC of the exact bytes
  that travel in the cookie, keyed by the configured secret. Deterministic:
  the same payload under the same key always yields the same 32-byte tag.

  Verification goes through itsdangerous, which compares with
  hmac.compare_digest, whose running time does not depend on how many leading
  bytes match.

  The secret must be at least 32 bytes. Shorter secrets are refused at
  construction; a process without a valid key never serves requests.

  The key is built once in the application lifespan (from_settings) and shared
  read-only through app.state. repr() never reveals the secret.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import hashlib
import secrets

import itsdangerous

from auth.errors import BadSignature, SigningKeyError

MIN_KEY_BYTES = 32
TAG_BYTES = hashlib.sha256().digest_size
SEPARATOR = "."


class SigningKey:
    """Symmetric MAC key used to sign and verify session tokens."""

    __slots__ = ("_signer",)

    def __init__(self, secret: bytes) -> None:
        if not secret:
            raise SigningKeyError("Signing secret is missing.")
        if len(secret) < MIN_KEY_BYTES:
            raise SigningKeyError(f"Signing secret must be at least {MIN_KEY_BYTES} bytes.")
        self._signer = itsdangerous.Signer(
            bytes(secret),
            sep=SEPARATOR,
            key_derivation="none",
            digest_method=hashlib.sha256,
        )

    @classmethod
    def from_secret(cls, secret: str | bytes | None) -> SigningKey:
        """Build a key from configuration text or raw bytes.

        Text secrets are used as their UTF-8 bytes, so a 64-hex-char value from
        `main.py --generate-secret` gives a 64-byte key.
        """
        if secret is None:
            raise SigningKeyError("Signing secret is missing.")
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        return cls(secret)

    @classmethod
    def from_settings(cls, settings) -> SigningKey:
        return cls.from_secret(settings.secret_key.get_secret_value())

    @classmethod
    def generate(cls) -> SigningKey:
        """Random key for tests and throwaway dev processes."""
        return cls(secrets.token_bytes(MIN_KEY_BYTES))

    def sign(self, payload: bytes) -> bytes:
        """Return the 32-byte HMAC-SHA256 tag of payload."""
        return self._signer.algorithm.get_signature(self._signer.derive_key(), payload)

    def verify(self, payload: bytes, tag: bytes) -> bool:
        """Constant-time check that tag is the MAC of payload under this key."""
        return self._signer.algorithm.verify_signature(self._signer.derive_key(), payload, tag)

    def sign_value(self, payload: str) -> str:
        """Return "payload.tag" with the tag in unpadded base64url."""
        return self._signer.sign(payload).decode("ascii")

    def unsign_value(self, value: str) -> str:
        """Return the payload of a "payload.tag" value.

        Raises BadSignature when the tag does not match the payload.
        """
        try:
            return self._signer.unsign(value).decode("ascii")
        except itsdangerous.BadSignature as exc:
            raise BadSignature("session tag does not match") from exc

    def __repr__(self) -> str:
        return "SigningKey(<redacted>)"
