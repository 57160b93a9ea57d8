# fintrack/security.py

import re
from datetime import datetime, timedelta, timezone

import jwt
from passlib.hash import bcrypt

from .errors import AuthorizationError
from .models import Role

EMAIL_PATTERN = re.compile(r"^[\w\.\+-]+@[\w-]+(\.[\w-]+)*\.[A-Za-z]{2,}$")


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email) is not None


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.verify(password, hashed)
    except ValueError:
        # malformed hash in the store
        return False


def create_access_token(user, settings) -> str:
    """Sign a token carrying the user's id, email and role."""
    now = datetime.now(timezone.utc)
    payload = {
        "id": user.id,
        "email": user.email,
        "role": Role(user.role).value,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings) -> dict:
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp"]},
        )
    except jwt.PyJWTError:
        raise AuthorizationError("Invalid or expired token")

    if not isinstance(claims.get("id"), int) or claims.get("role") not in {r.value for r in Role}:
        raise AuthorizationError("Invalid or expired token")
    return claims
