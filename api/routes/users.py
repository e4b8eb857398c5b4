"""
api/routes/users.py -- User management REST endpoints.

Routes:
  GET    /api/users            -- list all users (admin only)
  GET    /api/users/{user_id}  -- single user (any authenticated caller)
  PUT    /api/users/{user_id}  -- update user (the user themselves, or an admin)
  DELETE /api/users/{user_id}  -- delete user (admin only, never yourself)

Administrative fields (email, role, verified, rating, balance) on PUT require
an admin even when the caller is editing their own record, so a user cannot
raise their own role or balance.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import MessageResponse, UserEnvelope, UserListResponse, UserResponse, UserUpdateRequest
from auth.dependencies import ensure_self_or_admin, get_current_user, get_user_service, require_admin
from auth.models import PublicUser, Role
from auth.service import ADMIN_FIELDS, UserService
from core.errors import ForbiddenError, NotFoundError

# Auth policy:
# - every route requires auth (router-level dependency)
# - GET /users and DELETE /users/{id} additionally require admin (require_admin)
# - PUT /users/{id} requires self or admin (ensure_self_or_admin)
router = APIRouter(dependencies=[Depends(get_current_user)])

# Columns that may be cleared by sending null.
_NULLABLE_FIELDS = frozenset({"phone", "district", "position", "party", "rating"})


@router.get("/users", response_model=UserListResponse)
def list_users(
    current_user: PublicUser = Depends(require_admin),
    service: UserService = Depends(get_user_service),
) -> UserListResponse:
    return UserListResponse(users=[UserResponse.from_user(u) for u in service.list_users()])


@router.get("/users/{user_id}", response_model=UserEnvelope)
def get_user(user_id: str, service: UserService = Depends(get_user_service)) -> UserEnvelope:
    user = service.find_user_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return UserEnvelope(user=UserResponse.from_user(user))


@router.put("/users/{user_id}", response_model=UserEnvelope)
def update_user(
    user_id: str,
    body: UserUpdateRequest,
    current_user: PublicUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> UserEnvelope:
    ensure_self_or_admin(current_user, user_id)
    changes = {
        k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k in _NULLABLE_FIELDS
    }
    if current_user.role != Role.ADMIN.value and ADMIN_FIELDS & changes.keys():
        raise ForbiddenError("Admin access required to change email, role, verification, rating or balance")
    if "role" in changes:
        changes["role"] = changes["role"].value
    user = service.update_user(user_id, **changes)
    return UserEnvelope(message="User updated successfully", user=UserResponse.from_user(user))


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    current_user: PublicUser = Depends(require_admin),
    service: UserService = Depends(get_user_service),
) -> MessageResponse:
    """Delete a user. 400 when an admin targets their own account."""
    service.delete_user(current_user.id, user_id)
    return MessageResponse(message="User deleted successfully")
