# services/roles.py
from __future__ import annotations

from fastapi import Depends

from app.errors import ForbiddenError
from deps.auth import get_current_user, CurrentUser

REVIEWER_ROLES = {"owner", "admin", "member"}
ADMIN_ROLES = {"owner", "admin"}


def require_reviewer(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Anyone who may act on enrollments and the wallet. Viewers are read-only."""
    if user.role not in REVIEWER_ROLES:
        raise ForbiddenError("Your role cannot make changes")
    return user


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role not in ADMIN_ROLES:
        raise ForbiddenError()
    return user
