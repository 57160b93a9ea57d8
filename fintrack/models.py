# fintrack/models.py

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base


class Role(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"
    READ_ONLY = "read-only"

    @property
    def is_admin(self) -> bool:
        return self is Role.ADMIN

    @property
    def can_write(self) -> bool:
        if self is Role.ADMIN or self is Role.USER:
            return True
        if self is Role.READ_ONLY:
            return False
        raise AssertionError(f"unhandled role {self!r}")


class EntryType(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"


def _enum_column(enum_cls, **kwargs):
    return Column(
        Enum(
            enum_cls,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
            validate_strings=True,
        ),
        **kwargs,
    )


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password = Column(String(255), nullable=False)
    role = _enum_column(Role, nullable=False, default=Role.USER)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    transactions = relationship("Transaction", back_populates="owner", passive_deletes=True)
    categories = relationship("Category", back_populates="owner", passive_deletes=True)


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("name", "user_id", "type", name="uq_category_name_user_type"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    type = _enum_column(EntryType, nullable=False)
    # NULL owner = global category visible to every user
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    owner = relationship("User", back_populates="categories")
    transactions = relationship("Transaction", back_populates="category", passive_deletes=True)


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    type = _enum_column(EntryType, nullable=False, index=True)
    description = Column(Text)
    date = Column(Date, nullable=False, server_default=func.current_date(), index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    owner = relationship("User", back_populates="transactions")
    category = relationship("Category", back_populates="transactions")
