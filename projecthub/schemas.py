"""
projecthub/schemas.py

Pydantic request/response schemas for the HTTP layer.

Request bodies that edit records forbid unknown keys, so attempts to smuggle
`status`, `authorId` or `role` through an edit endpoint fail with 400 instead
of being silently ignored. Emptiness checks live in the engine and the
credential store so they report the same errors to every caller.
"""

from __future__ import annotations

from typing import Optional

from pydantic import ConfigDict, Field

from projecthub.models import CamelModel, User


# ========================================================================
# PROJECT SCHEMAS
# ========================================================================

class StatusUpdateRequest(CamelModel):
    status: str = Field(..., description="pending | approved | rejected")


class ProjectUpdateRequest(CamelModel):
    """Admin edit. Omitted fields keep their stored value."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, max_length=300)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)


class CommentCreateRequest(CamelModel):
    content: Optional[str] = Field(None, max_length=5000)


# ========================================================================
# AUTH / USER SCHEMAS
# ========================================================================

class SignupRequest(CamelModel):
    name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=320)
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdateRequest(CamelModel):
    """Self-service profile edit. The role is not editable."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=320)


class TokenResponse(CamelModel):
    token: str
    user: User


class MessageResponse(CamelModel):
    message: str


class HealthResponse(CamelModel):
    status: str
