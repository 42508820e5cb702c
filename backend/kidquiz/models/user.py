"""User model."""

import uuid
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, String, Uuid
from sqlalchemy.sql import func

from kidquiz.db.base import Base


class UserRole(str, Enum):
    """User role enum."""

    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"


class User(Base):
    """User model.

    Rows are provisioned by the identity-provider bridge; the API never
    stores credentials.
    """

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name = Column(String(255), nullable=True)
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(String, nullable=False, default=UserRole.STUDENT.value)
    grade = Column(String(20), nullable=True)  # e.g. "LKG", "UKG", "1"
    avatar_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=func.now(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @property
    def name(self) -> str:
        """API-friendly name; maps to full_name."""
        return self.full_name or ""

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value
