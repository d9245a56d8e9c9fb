"""
User ORM model — maps to the "users" table.

Only the fields the enrollment pipeline reads are modelled here: identity,
display name and role. Credentials live with the auth service.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base
from models.enums import UserRole


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(
        String(20), default=UserRole.STUDENT.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT.value

    def __repr__(self) -> str:
        return f"<User {self.id} {self.username} [{self.role}]>"
