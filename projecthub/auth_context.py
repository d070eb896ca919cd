"""
projecthub/auth_context.py

Token service and request authentication for FastAPI dependency injection.

Contains:
- issue_token / verify_token: signed session tokens carrying {id, email, role}
- get_viewer: optional auth; anonymous callers resolve to None
- require_auth_context: mandatory auth; 401 when no valid token

The token is only a pointer to the user. The role used for authorization is
always read back from the credential store, so a demoted admin loses access
on the next request rather than when the token expires.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from projecthub import config, credentials
from projecthub.errors import ExpiredToken, InvalidToken, Unauthenticated
from projecthub.models import Identity

logger = logging.getLogger(__name__)

# Security scheme for HTTPBearer; missing headers are handled here, not by FastAPI
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------
# Token issue / verification
# ---------------------------------------------------------
def issue_token(identity: Identity) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": identity.id,
        "email": identity.email,
        "role": identity.role.value,
        "iat": now,
        "exp": now + timedelta(hours=config.TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(payload, config.SECRET_KEY, algorithm=config.ALGORITHM)


def verify_token(token: str) -> Identity:
    """
    Verify a session token and return the identity it carries.

    Raises:
        ExpiredToken: signature valid but past `exp`
        InvalidToken: bad signature, malformed token or missing claims
    """
    try:
        payload = jwt.decode(
            token,
            config.SECRET_KEY,
            algorithms=[config.ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise ExpiredToken("Token expired")
    except jwt.InvalidTokenError:
        raise InvalidToken("Invalid token")

    try:
        return Identity(id=payload["id"], email=payload["email"], role=payload["role"])
    except (KeyError, ValueError):
        raise InvalidToken("Invalid token payload")


def resolve_identity(token: str) -> Identity:
    """Verify `token` and reload the user so the role is current."""
    claimed = verify_token(token)
    user = credentials.find_by_id(claimed.id)
    if user is None:
        logger.info("Token for missing user_id=%s", claimed.id)
        raise Unauthenticated("User not found")
    return credentials.to_identity(user)


# ---------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------
def get_viewer(
    auth: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[Identity]:
    """
    Optional authentication.

    No Authorization header → anonymous (None). A header that is present but
    invalid is an error: callers are never silently downgraded to anonymous.
    """
    if auth is None:
        return None
    return resolve_identity(auth.credentials)


def require_auth_context(
    auth: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    if auth is None:
        raise Unauthenticated("Authentication required")
    identity = resolve_identity(auth.credentials)
    logger.debug("Authenticated user_id=%s role=%s", identity.id, identity.role.value)
    return identity
