"""
api/routes/users.py -- User directory search and admin user management.

Routes:
  GET    /api/users/search          -- public profiles by skill/interest/position (auth)
  PATCH  /api/users/{id}/role       -- assign a role (admin only)
  DELETE /api/users/{id}            -- soft delete (admin only)

Security:
  [M4] Admins cannot change their own role or delete their own account, so
       an admin cannot lock themselves out by accident.
  Soft-deleted users keep their row and email; any token they still hold is
  rejected by get_current_user() because the store no longer returns them.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.models import RoleUpdate, UserResponse
from auth.dependencies import get_current_user, require_admin
from auth.models import User
from auth.store import UserStore
from core.errors import InternalFailure, NotFound, ValidationError

logger = logging.getLogger("hiredvalley.api.users")

# Auth policy:
# - GET    /api/users/search:     requires auth (get_current_user)
# - PATCH  /api/users/{id}/role:  requires admin (require_admin)
# - DELETE /api/users/{id}:       requires admin (require_admin)
router = APIRouter()


@router.get("/users/search", response_model=list[UserResponse])
def search_users(
    request: Request,
    skill: Optional[str] = Query(default=None, max_length=100),
    interest: Optional[str] = Query(default=None, max_length=100),
    position: Optional[str] = Query(default=None, max_length=255),
    limit: int = Query(default=50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
) -> list[UserResponse]:
    """Find public, active users. All given filters must match."""
    user_store: UserStore = request.app.state.user_store
    users = user_store.search_users(skill=skill, interest=interest, position=position, limit=limit)
    return [UserResponse.from_user(u) for u in users]


@router.patch("/users/{user_id}/role", response_model=UserResponse)
def update_role(
    request: Request,
    user_id: int,
    body: RoleUpdate,
    current_user: User = Depends(require_admin),
) -> UserResponse:
    """Assign any role, including instructor and admin. Admin only.

    Takes effect on the target's next request: roles are read from the store,
    not from the token.
    """
    user_store: UserStore = request.app.state.user_store

    if user_id == current_user.id:  # [M4]
        raise ValidationError("You cannot change your own role.")
    target = user_store.get_by_id(user_id)
    if target is None:
        raise NotFound("User not found.")

    user_store.update_user(user_id, role=body.role.value)
    logger.info("Admin id=%d set role of user id=%d to %s", current_user.id, user_id, body.role.value)
    updated = user_store.get_by_id(user_id)
    if updated is None:
        raise InternalFailure("User not found after write.")
    return UserResponse.from_user(updated)


@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(require_admin),
) -> Response:
    """Soft-delete a user. Admin only. The email stays reserved."""
    user_store: UserStore = request.app.state.user_store

    if user_id == current_user.id:  # [M4]
        raise ValidationError("You cannot delete your own account.")
    if not user_store.soft_delete_user(user_id):
        raise NotFound("User not found.")
    logger.info("Admin id=%d soft-deleted user id=%d", current_user.id, user_id)
    return Response(status_code=204)
