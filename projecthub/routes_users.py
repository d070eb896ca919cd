"""
projecthub/routes_users.py

Profile endpoints for the authenticated user.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from projecthub import credentials
from projecthub.auth_context import require_auth_context
from projecthub.errors import NotFound
from projecthub.models import Identity, User
from projecthub.schemas import ProfileUpdateRequest

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
)


@router.get("/profile", response_model=User)
def get_profile(ctx: Identity = Depends(require_auth_context)) -> User:
    user = credentials.find_by_id(ctx.id)
    if user is None:
        raise NotFound("User not found")
    return user


@router.put("/profile", response_model=User)
def update_profile(
    req: ProfileUpdateRequest,
    ctx: Identity = Depends(require_auth_context),
) -> User:
    """Change name and/or email. Emails stay unique across users (409 otherwise)."""
    return credentials.update_profile(ctx.id, name=req.name, email=req.email)
