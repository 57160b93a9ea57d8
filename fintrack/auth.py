# fintrack/auth.py

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from . import crud
from .config import Settings
from .database import get_db
from .deps import CurrentUser, get_current_user, get_settings_dep
from .errors import AuthenticationError, ValidationError
from .models import Role
from .rate_limit import rate_limit
from .schemas import LoginRequest, RegisterRequest
from .security import create_access_token, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_payload(user, settings: Settings) -> dict:
    return {"token": create_access_token(user, settings), "user": crud.user_to_dict(user)}


@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(rate_limit("auth"))])
def register(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    if payload.role is Role.ADMIN and not settings.allow_admin_signup:
        raise ValidationError.for_field("role", "Admin accounts can only be granted by an administrator")

    new_user = crud.create_user(db, payload.name, payload.email, payload.password, payload.role)
    logger.info("Registered user %s with role %s", new_user.id, new_user.role.value)

    return {
        "success": True,
        "message": "User registered successfully",
        "data": _auth_payload(new_user, settings),
    }


@router.post("/login", dependencies=[Depends(rate_limit("auth"))])
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    user = crud.get_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.password):
        raise AuthenticationError("Invalid email or password")

    return {"success": True, "message": "Login successful", "data": _auth_payload(user, settings)}


@router.get("/profile")
@router.get("/me", include_in_schema=False)
def profile(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "data": crud.user_to_dict(crud.get_user(db, user.id))}
