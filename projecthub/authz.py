"""
projecthub/authz.py

Role checks shared by the moderation engine and the route dependencies.

Pure Python logic - no FastAPI imports, no database access.

Role Hierarchy: admin > user
"""

from __future__ import annotations

import logging
from typing import Optional

from projecthub.errors import Forbidden, Unauthenticated
from projecthub.models import Identity, Role

logger = logging.getLogger(__name__)

ROLE_HIERARCHY = {
    Role.admin: 2,
    Role.user: 1,
}


def role_at_least(user_role: Role, required_role: Role) -> bool:
    """
    Example:
        role_at_least(Role.admin, Role.user) -> True
        role_at_least(Role.user, Role.admin) -> False
    """
    return ROLE_HIERARCHY.get(Role(user_role), 0) >= ROLE_HIERARCHY.get(Role(required_role), 0)


def require_authenticated(actor: Optional[Identity]) -> Identity:
    if actor is None:
        raise Unauthenticated("Authentication required")
    return actor


def require_admin(actor: Optional[Identity], action: str = "perform this action") -> Identity:
    """
    Raises:
        Unauthenticated: anonymous actor
        Forbidden: authenticated but not an admin
    """
    actor = require_authenticated(actor)
    if not role_at_least(actor.role, Role.admin):
        logger.warning("Admin action denied: action=%r user_id=%s role=%s", action, actor.id, actor.role.value)
        raise Forbidden(f"Only admins can {action}")
    return actor
