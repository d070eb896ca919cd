"""
projecthub/credentials.py

Credential store: user records, password hashing, registration and login.

The store is the source of truth for a user's role. Tokens carry the role for
convenience only; request dependencies re-read the user row on every call.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import bcrypt
from sqlalchemy import text

from projecthub import config
from projecthub.db import get_db_connection, now_iso
from projecthub.errors import Conflict, InvalidArgument, NotFound, Unauthenticated
from projecthub.models import Identity, Role, User

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes; longer input is rejected up front
MAX_PASSWORD_BYTES = 72
MIN_PASSWORD_LENGTH = 6


# ---------------------------------------------------------
# Password hashing
# ---------------------------------------------------------
def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash or over-long password
        return False


# ---------------------------------------------------------
# Input normalization
# ---------------------------------------------------------
def normalize_email(email: Optional[str]) -> str:
    email_norm = (email or "").strip().lower()
    if not email_norm or "@" not in email_norm or email_norm.startswith("@") or email_norm.endswith("@"):
        raise InvalidArgument("A valid email address is required", fields=["email"])
    return email_norm


def _normalize_name(name: Optional[str]) -> str:
    name_norm = (name or "").strip()
    if not name_norm:
        raise InvalidArgument("Name is required", fields=["name"])
    return name_norm


def _validate_password(password: Optional[str]) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidArgument(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            fields=["password"],
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidArgument(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
            fields=["password"],
        )
    return password


def _row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        role=row["role"] or Role.user,
        created_at=row["created_at"],
    )


def to_identity(user: User) -> Identity:
    return Identity(id=user.id, email=user.email, role=user.role, name=user.name)


# ---------------------------------------------------------
# Store operations
# ---------------------------------------------------------
def _fetch_row(where: str, params: dict) -> Optional[Mapping[str, Any]]:
    with get_db_connection() as conn:
        return conn.execute(
            text(f"SELECT id, name, email, password_hash, role, created_at FROM users WHERE {where}"),
            params,
        ).mappings().first()


def find_by_email(email: str) -> Optional[User]:
    row = _fetch_row("email = :email", {"email": email.strip().lower()})
    return _row_to_user(row) if row else None


def find_by_id(user_id: int) -> Optional[User]:
    row = _fetch_row("id = :id", {"id": user_id})
    return _row_to_user(row) if row else None


def create(name: str, email: str, password: str, role: Role = Role.user) -> User:
    """
    Insert a user row. Email uniqueness is enforced by the store.

    Raises:
        InvalidArgument: empty name, malformed email, weak password
        Conflict: email already registered
    """
    name_norm = _normalize_name(name)
    email_norm = normalize_email(email)
    pw_hash = hash_password(_validate_password(password))
    now = now_iso()

    try:
        with get_db_connection() as conn:
            row = conn.execute(
                text("""
                    INSERT INTO users (name, email, password_hash, role, created_at, updated_at)
                    VALUES (:name, :email, :password_hash, :role, :now, :now)
                    RETURNING id, name, email, role, created_at
                """),
                {
                    "name": name_norm,
                    "email": email_norm,
                    "password_hash": pw_hash,
                    "role": Role(role).value,
                    "now": now,
                },
            ).mappings().one()
    except Conflict:
        logger.info("Registration rejected, email already registered")
        raise Conflict("Email already registered")

    logger.info("Created user id=%s role=%s", row["id"], row["role"])
    return _row_to_user(row)


def register(name: str, email: str, password: str) -> Identity:
    """Self-service registration. Always creates a plain `user`."""
    return to_identity(create(name, email, password, role=Role.user))


def authenticate(email: str, password: str) -> Identity:
    email_norm = (email or "").strip().lower()
    row = _fetch_row("email = :email", {"email": email_norm}) if email_norm else None

    if not row or not verify_password(password or "", row["password_hash"]):
        logger.info("Login failed (user_found=%s)", bool(row))
        raise Unauthenticated("Invalid credentials")

    logger.debug("Login succeeded user_id=%s", row["id"])
    return to_identity(_row_to_user(row))


def update_profile(user_id: int, name: Optional[str] = None, email: Optional[str] = None) -> User:
    """
    Update the caller's own name and/or email. The role column is never touched.

    Raises:
        InvalidArgument: nothing to update, or an empty/malformed value
        Conflict: email taken by another user
        NotFound: user no longer exists
    """
    if name is None and email is None:
        raise InvalidArgument("Nothing to update", fields=["name", "email"])

    params = {
        "id": user_id,
        "name": _normalize_name(name) if name is not None else None,
        "email": normalize_email(email) if email is not None else None,
        "now": now_iso(),
    }
    try:
        with get_db_connection() as conn:
            row = conn.execute(
                text("""
                    UPDATE users
                    SET name = COALESCE(:name, name),
                        email = COALESCE(:email, email),
                        updated_at = :now
                    WHERE id = :id
                    RETURNING id, name, email, role, created_at
                """),
                params,
            ).mappings().first()
    except Conflict:
        raise Conflict("Email already registered")

    if row is None:
        raise NotFound("User not found")
    return _row_to_user(row)
