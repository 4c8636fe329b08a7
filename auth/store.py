"""
auth/store.py -- Credential storage: SQLAlchemy Core repository + async UserStore.

Pattern: Repository + Data Mapper.
  UserRepository is the persistence collaborator. It speaks SQL through
  SQLAlchemy Core and maps rows to User via _row_to_user. Any object with the
  same three methods (the UserBackend protocol) can stand in for it.

  UserStore is what the rest of the application talks to. It owns the
  password rules: hash on insert, lookup-then-verify on login. Its methods are
  async; the blocking work (Argon2, database round-trips) runs through
  asyncio.to_thread so a slow hash never stalls other requests on the loop.

Security:
  Username uniqueness is enforced by the UNIQUE constraint on users.username,
  not by application locks. Two concurrent registrations for the same name
  both reach the INSERT; the database lets exactly one through and the other
  surfaces as IntegrityError -> UsernameTaken.

  get_and_verify() raises the same InvalidCredentials for "no such user" and
  "wrong password", and runs a dummy Argon2 verification in the first case so
  both branches cost the same time.

  All queries use bound parameters.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import InternalAuthError, InvalidCredentials, UsernameTaken
from auth.models import User
from auth.passwords import CredentialHasher

logger = logging.getLogger("cookieauth.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),  # Argon2 PHC string
    Column("created_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Persistence collaborator
# ---------------------------------------------------------------------------


class UserBackend(Protocol):
    def find_user_by_username(self, username: str) -> User | None: ...

    def find_user_by_id(self, user_id: int) -> User | None: ...

    def insert_user(self, username: str, password_hash: str) -> User: ...


class UserRepository:
    """SQLAlchemy Core repository for the users table.

    Usage:
        repo = UserRepository("sqlite:///auth.db")
        user = repo.insert_user("alice", hasher.hash("correct-horse"))
        repo.find_user_by_username("alice")
        repo.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def find_user_by_username(self, username: str) -> User | None:
        """Exact, case-sensitive lookup. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_user_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def insert_user(self, username: str, password_hash: str) -> User:
        """Insert a new user and return it with its assigned ID.

        Raises UsernameTaken when the UNIQUE constraint rejects the row. Any
        other IntegrityError (NOT NULL, CHECK, ...) propagates unchanged.
        """
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(username=username, password_hash=password_hash, created_at=created_at)
                )
                conn.commit()
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            # The name is only "taken" if a committed row now holds it.
            if self.find_user_by_username(username) is not None:
                raise UsernameTaken(username) from exc
            raise
        return User(
            id=user_id,
            username=username,
            password_hash=password_hash,
            created_at=created_at,
        )

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# UserStore
# ---------------------------------------------------------------------------


class UserStore:
    """Registration and login on top of a UserBackend and a CredentialHasher."""

    def __init__(self, backend: UserBackend, hasher: CredentialHasher) -> None:
        self.backend = backend
        self.hasher = hasher

    async def insert(self, username: str, password: str) -> User:
        """Hash password and claim username.

        Raises:
            UsernameTaken:     the backend already holds this username.
            InternalAuthError: hashing or storage failed for any other reason.
        """
        password_hash = await asyncio.to_thread(self.hasher.hash, password)
        try:
            user = await asyncio.to_thread(self.backend.insert_user, username, password_hash)
        except SQLAlchemyError as exc:
            raise InternalAuthError("user insert failed") from exc
        logger.info("Registered user id=%d", user.id)
        return user

    async def get_and_verify(self, username: str, password: str) -> User:
        """Return the user if password matches, else raise InvalidCredentials.

        The same exception is raised whether the username is unknown or the
        password is wrong.
        """
        user = await self._call(self.backend.find_user_by_username, username)
        if user is None:
            # Equalize timing -- do NOT return before running Argon2
            await asyncio.to_thread(self.hasher.verify_dummy, password)
            raise InvalidCredentials()
        if not await asyncio.to_thread(self.hasher.verify, password, user.password_hash):
            raise InvalidCredentials()
        return user

    async def get_by_id(self, user_id: int) -> User | None:
        return await self._call(self.backend.find_user_by_id, user_id)

    async def _call(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as exc:
            raise InternalAuthError("user lookup failed") from exc
