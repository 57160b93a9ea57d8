# fintrack/users.py

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from . import crud
from .cache import CATEGORIES_TTL, Cache, categories_key
from .database import get_db
from .deps import (
    CurrentUser,
    ensure_owner,
    get_cache,
    get_current_user,
    prevent_read_only,
    require_role,
)
from .errors import AuthenticationError, AuthorizationError
from .models import EntryType, Role
from .rate_limit import rate_limit
from .schemas import CategoryCreate, CategoryUpdate, PasswordChange, ProfileUpdate, RoleUpdate
from .security import verify_password

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(rate_limit("general"))],
)

admin_only = require_role(Role.ADMIN)


def _invalidate_category_scope(cache: Cache, owner_id):
    # global categories show up in every user's lists and reports
    if owner_id is None:
        cache.clear()
    else:
        cache.invalidate_user(owner_id)


# Profile management

@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    user: CurrentUser = Depends(prevent_read_only),
    db: Session = Depends(get_db),
):
    data = crud.update_profile(db, user.id, name=payload.name, email=payload.email)
    return {"success": True, "message": "Profile updated successfully", "data": data}


@router.put("/change-password")
def change_password(
    payload: PasswordChange,
    user: CurrentUser = Depends(prevent_read_only),
    db: Session = Depends(get_db),
):
    account = crud.get_user(db, user.id)
    if not verify_password(payload.current_password, account.password):
        raise AuthenticationError("Current password is incorrect")

    crud.set_password(db, account, payload.new_password)
    logger.info("User %s changed their password", user.id)
    return {"success": True, "message": "Password changed successfully"}


# Categories

@router.get("/categories")
def get_categories(
    type: Optional[EntryType] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    key = categories_key(user.id)
    data = cache.get(key)
    cached = data is not None
    if not cached:
        data = crud.get_all_categories(db, user.id)
        cache.set(key, data, CATEGORIES_TTL)

    if type is not None:
        data = [c for c in data if c["type"] == type.value]

    body = {"success": True, "data": data}
    if cached:
        body["cached"] = True
    return body


@router.post("/categories", status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    user: CurrentUser = Depends(prevent_read_only),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    if payload.is_global and not user.is_admin:
        raise AuthorizationError("Only administrators can create global categories")

    owner_id = None if payload.is_global else user.id
    data = crud.add_category(db, owner_id, payload.name, payload.type)
    _invalidate_category_scope(cache, owner_id)
    return {"success": True, "message": "Category created successfully", "data": data}


def _editable_category(db: Session, category_id: int, user: CurrentUser):
    category = crud.get_category_by_id(db, category_id, user)
    if category.user_id is None and not user.is_admin:
        raise AuthorizationError("Only administrators can modify global categories")
    ensure_owner(user, category.user_id)
    return category


@router.put("/categories/{category_id}")
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    user: CurrentUser = Depends(prevent_read_only),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    category = _editable_category(db, category_id, user)
    owner_id = category.user_id
    data = crud.update_category(db, category, payload.name)
    _invalidate_category_scope(cache, owner_id)
    return {"success": True, "message": "Category updated successfully", "data": data}


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: int,
    user: CurrentUser = Depends(prevent_read_only),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    category = _editable_category(db, category_id, user)
    owner_id = category.user_id
    crud.delete_category(db, category)
    _invalidate_category_scope(cache, owner_id)
    return {"success": True, "message": "Category deleted successfully"}


# Admin-only routes - user management

@router.get("", dependencies=[Depends(admin_only)])
def get_all_users(
    role: Optional[Role] = Query(None),
    search: Optional[str] = Query(None, max_length=255),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": crud.list_users(db, role, search)}


@router.get("/{user_id}", dependencies=[Depends(admin_only)])
def get_user_by_id(user_id: int, db: Session = Depends(get_db)):
    return {"success": True, "data": crud.user_to_dict(crud.get_user(db, user_id))}


@router.put("/{user_id}/role")
def update_user_role(
    user_id: int,
    payload: RoleUpdate,
    admin: CurrentUser = Depends(admin_only),
    db: Session = Depends(get_db),
):
    data = crud.update_user_role(db, user_id, payload.role)
    logger.info("Admin %s set role of user %s to %s", admin.id, user_id, payload.role.value)
    return {"success": True, "message": "User role updated successfully", "data": data}


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    # admins may delete anyone, everyone else only themselves
    ensure_owner(user, user_id, "You can only delete your own account")
    crud.delete_user(db, user_id)
    cache.invalidate_user(user_id)
    logger.info("User %s deleted account %s", user.id, user_id)
    return {"success": True, "message": "User deleted successfully"}
