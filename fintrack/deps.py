# fintrack/deps.py

from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .cache import Cache
from .config import Settings
from .database import get_db
from .errors import AuthenticationError, AuthorizationError
from .models import Role, User
from .security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    email: str
    name: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_cache(request: Request) -> Cache:
    return request.app.state.cache


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")

    claims = decode_access_token(credentials.credentials, settings)

    user = db.get(User, claims["id"])
    if user is None:
        raise AuthenticationError("Account no longer exists")

    current = CurrentUser(id=user.id, email=user.email, name=user.name, role=Role(user.role))
    request.state.user = current
    return current


def require_role(*roles: Role):
    allowed = frozenset(roles)

    def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            raise AuthorizationError("Insufficient permissions. Access denied.")
        return user

    return dependency


def prevent_read_only(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.role.can_write:
        raise AuthorizationError("Read-only users cannot perform this action")
    return user


def ensure_owner(user: CurrentUser, owner_id, message="You can only modify your own resources"):
    if user.is_admin or user.id == owner_id:
        return
    raise AuthorizationError(message)


def resolve_target_user(user: CurrentUser, requested_id) -> int:
    """Pick whose data a read acts on: the caller, or anyone for admins."""
    if requested_id is None or requested_id == user.id:
        return user.id
    ensure_owner(user, requested_id, "You can only view your own data")
    return requested_id
