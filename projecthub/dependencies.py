"""
projecthub/dependencies.py

Reusable FastAPI dependencies for role enforcement.
"""

from __future__ import annotations

from fastapi import Depends

from projecthub.auth_context import require_auth_context
from projecthub.authz import require_admin as check_admin
from projecthub.models import Identity


def require_admin(ctx: Identity = Depends(require_auth_context)) -> Identity:
    """
    Route-level guard for admin-only endpoints.

    Usage in routes:
        @router.get("/stats")
        def stats(actor: Identity = Depends(require_admin)):
            ...

    Raises:
        Unauthenticated (401): missing or invalid token
        Forbidden (403): authenticated user is not an admin
    """
    return check_admin(ctx, "access this resource")
