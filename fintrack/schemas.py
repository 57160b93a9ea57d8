# fintrack/schemas.py

import datetime as dt
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from .models import EntryType, Role
from .security import is_valid_email


def _check_email(value: str) -> str:
    value = value.strip().lower()
    if not is_valid_email(value):
        raise ValueError("Invalid email format (e.g. name@example.com)")
    return value


def _check_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Name is required")
    return value


Email = Annotated[str, AfterValidator(_check_email)]
DisplayName = Annotated[str, Field(max_length=255), AfterValidator(_check_name)]
CategoryName = Annotated[str, Field(max_length=100), AfterValidator(_check_name)]


# --- auth ---

class RegisterRequest(BaseModel):
    name: DisplayName
    email: Email
    password: str = Field(..., min_length=6, max_length=72)
    role: Role = Role.USER


class LoginRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: Role
    created_at: Optional[dt.datetime] = None


# --- users ---

class RoleUpdate(BaseModel):
    role: Role


class ProfileUpdate(BaseModel):
    name: Optional[DisplayName] = None
    email: Optional[Email] = None


class PasswordChange(BaseModel):
    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=6, max_length=72)


# --- categories ---

class CategoryCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: CategoryName
    type: EntryType
    is_global: bool = Field(False, alias="global")


class CategoryUpdate(BaseModel):
    name: CategoryName


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: EntryType
    user_id: Optional[int] = None
    created_at: Optional[dt.datetime] = None


# --- transactions ---

class TransactionIn(BaseModel):
    amount: Decimal = Field(..., gt=0, lt=Decimal("100000000"), decimal_places=2)
    type: EntryType
    description: Optional[str] = Field(None, max_length=1000)
    date: Optional[dt.date] = None
    category_id: Optional[int] = None

    @field_validator("description")
    @classmethod
    def strip_description(cls, v):
        if v is None:
            return None
        return v.strip() or None


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    amount: float
    type: EntryType
    description: Optional[str] = None
    date: dt.date
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
