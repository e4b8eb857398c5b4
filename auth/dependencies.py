"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Identity comes from the Authorization: Bearer <token> header only. The token
is resolved to a PublicUser by UserService.get_user_from_token(), which
consults the cache before the store.

get_current_user() raises UnauthorizedError (401) if unauthenticated.
require_admin() wraps get_current_user() and raises ForbiddenError (403) if
the caller is not an ADMIN. ensure_self_or_admin() is the ownership check
for routes that act on a user id from the path.

Layer rule: no imports from api/ or cache/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import PublicUser, Role
from auth.service import UserService
from core.errors import ForbiddenError, UnauthorizedError

_BEARER_PREFIX = "Bearer "


def get_user_service(request: Request) -> UserService:
    """Return the UserService built by the application lifespan."""
    return request.app.state.user_service


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_BEARER_PREFIX):
        return None
    return auth_header[len(_BEARER_PREFIX) :].strip() or None


def get_current_user(request: Request) -> PublicUser:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: PublicUser = Depends(get_current_user)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise UnauthorizedError("Access token required")
    return get_user_service(request).get_user_from_token(token)


def require_admin(request: Request) -> PublicUser:
    """Require the ADMIN role. 401 if unauthenticated, 403 otherwise."""
    user = get_current_user(request)
    if user.role != Role.ADMIN.value:
        raise ForbiddenError("Admin access required")
    return user


def ensure_self_or_admin(current_user: PublicUser, user_id: str) -> None:
    """Raise 403 unless current_user is an ADMIN or is user_id themselves."""
    if current_user.role != Role.ADMIN.value and current_user.id != user_id:
        raise ForbiddenError("You can only update your own profile")
