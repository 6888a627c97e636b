"""
User Models
------------

Models for reader accounts imported from the user export.

Models:
    - User: A catalog user keyed on its external ID
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Optional

# --- Third party imports ---
from sqlalchemy import CheckConstraint, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

# --- Local imports ---
from .base import Base, TimestampMixin
from .enums import UserRole


class User(Base, TimestampMixin):
    """
    Represents a catalog user.

    Attributes:
        id: External string ID carried over from the export (natural key)
        name: Display name
        email: Unique email address
        image: Avatar asset reference
        role: Account role (enum)
    """

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("email != ''", name="ck_user_non_empty_email"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    image: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, values_callable=lambda x: [e.value for e in x]),
        default=UserRole.USER,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
