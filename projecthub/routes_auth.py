"""
projecthub/routes_auth.py

Signup, login and current-user endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from projecthub import credentials
from projecthub.auth_context import issue_token, require_auth_context
from projecthub.errors import Unauthenticated
from projecthub.models import Identity, User
from projecthub.schemas import LoginRequest, SignupRequest, TokenResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
)


def _token_response(identity: Identity) -> TokenResponse:
    user = credentials.find_by_id(identity.id)
    if user is None:
        raise Unauthenticated("User not found")
    return TokenResponse(token=issue_token(identity), user=user)


@router.post("/signup", response_model=TokenResponse, status_code=201)
def signup(req: SignupRequest) -> TokenResponse:
    """Self-service registration. New accounts always get the `user` role."""
    identity = credentials.register(req.name, req.email, req.password)
    logger.info("Signup user_id=%s", identity.id)
    return _token_response(identity)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest) -> TokenResponse:
    identity = credentials.authenticate(req.email, req.password)
    return _token_response(identity)


@router.get("/me", response_model=User)
def me(ctx: Identity = Depends(require_auth_context)) -> User:
    user = credentials.find_by_id(ctx.id)
    if user is None:
        raise Unauthenticated("User not found")
    return user
